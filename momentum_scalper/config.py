"""
Momentum Scalper Configuration
Short-hold momentum entries with hard capital and risk limits
All values can be overridden from the environment (.env supported)
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# Account Configuration
ACCOUNT_SIZE = _env_float('INITIAL_BALANCE', 100.0)  # USD starting capital

# Symbols watched for momentum (comma separated in env)
SYMBOLS = [s.strip() for s in os.getenv('SYMBOLS', 'BTCUSDT,ETHUSDT,SOLUSDT').split(',') if s.strip()]

# Risk Management
RISK_PARAMS = {
    'max_open_positions': _env_int('MAX_OPEN_POSITIONS', 5),
    'position_size_pct': _env_float('POSITION_SIZE_PCT', 20.0),    # % of free balance per position
    'min_position_size': _env_float('MIN_POSITION_SIZE', 10.0),    # $10 minimum position
    'max_position_size': _env_float('MAX_POSITION_SIZE', 1000.0),  # $1000 maximum position
    'max_daily_trades': _env_int('MAX_DAILY_TRADES', 20),
    'max_consecutive_losses': _env_int('MAX_CONSECUTIVE_LOSSES', 3),
    'max_drawdown_pct': _env_float('MAX_DRAWDOWN_PCT', 20.0),
}

# Exit Rules (percentages are in percent, not fractions)
EXIT_PARAMS = {
    'target_profit_pct': _env_float('TARGET_PROFIT_PCT', 0.8),
    'min_profit_floor_pct': _env_float('MIN_PROFIT_FLOOR_PCT', 0.4),  # momentum fade exits only above this
    'stop_loss_pct': _env_float('STOP_LOSS_PCT', 0.5),
    'max_hold_duration_seconds': _env_float('MAX_HOLD_DURATION_SECONDS', 300),
    'stale_feed_seconds': _env_float('STALE_FEED_SECONDS', 10),
    'fade_acceleration_floor': -0.00001,
    'history_size': 10,
}

# Momentum Signal Detection
SIGNAL_CONFIG = {
    'max_samples': 10,               # bounded price window
    'min_samples': 5,                # window used for velocity/acceleration
    'reversal_drop_pct': 0.2,        # any single step down > 0.2% = reversal
    'prediction_seconds': 5,         # projection horizon
    'min_predicted_change_pct': 0.8,
    'min_confidence': 0.7,
    'min_acceleration': -0.00001,
    'strong_velocity': 0.0001,       # 0.01%/sec bonus threshold
    'signal_cooldown_seconds': _env_float('SIGNAL_COOLDOWN_SECONDS', 10),
}

# Execution Parameters
EXECUTION_PARAMS = {
    'order_timeout_seconds': _env_float('ORDER_TIMEOUT_SECONDS', 10),
    'shutdown_sell_retries': _env_int('SHUTDOWN_SELL_RETRIES', 3),
    'shutdown_retry_delay_seconds': _env_float('SHUTDOWN_RETRY_DELAY_SECONDS', 1),
    'paper_fee_pct': _env_float('PAPER_FEE_PCT', 0.1),        # taker fee
    'paper_slippage_pct': _env_float('PAPER_SLIPPAGE_PCT', 0.02),
}

# Real-time Processing
REALTIME_CONFIG = {
    'signal_interval_seconds': _env_float('SIGNAL_INTERVAL_SECONDS', 1),
    'check_interval_seconds': _env_float('CHECK_INTERVAL_SECONDS', 2),
    'status_log_seconds': 10,
    'balance_sync_seconds': 60,
    'signal_queue_size': 100,
}

# Price Feed (public market data only)
FEED_CONFIG = {
    'base_url': os.getenv('BYBIT_BASE_URL', 'https://api.bybit.com'),
    'category': 'spot',
    'request_timeout_seconds': 10,
    'min_request_delay': 0.05,
    'retries': 2,
}

# Trade event log
TRADE_LOG_CONFIG = {
    'log_dir': os.getenv('LOG_DIR', './logs'),
    'flush_interval_seconds': 5,
    'max_buffer_size': 1000,
    'enabled': os.getenv('TRADE_LOG_ENABLED', 'true').lower() == 'true',
}

# Logging Configuration
LOGGING_CONFIG = {
    'level': os.getenv('LOG_LEVEL', 'INFO'),
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'file': os.getenv('LOG_FILE', 'momentum_scalper.log'),
    'max_size_mb': 50,
    'backup_count': 5,
}


def validate_configuration() -> list:
    """Return a list of configuration errors (empty when valid)"""
    errors = []

    if ACCOUNT_SIZE <= 0:
        errors.append("INITIAL_BALANCE must be positive")

    if not SYMBOLS:
        errors.append("SYMBOLS must list at least one symbol")

    if RISK_PARAMS['max_open_positions'] <= 0:
        errors.append("MAX_OPEN_POSITIONS must be positive")

    if RISK_PARAMS['min_position_size'] <= 0:
        errors.append("MIN_POSITION_SIZE must be positive")

    if RISK_PARAMS['max_position_size'] < RISK_PARAMS['min_position_size']:
        errors.append("MAX_POSITION_SIZE must be >= MIN_POSITION_SIZE")

    if not 0 < RISK_PARAMS['position_size_pct'] <= 100:
        errors.append("POSITION_SIZE_PCT must be in (0, 100]")

    if RISK_PARAMS['max_drawdown_pct'] <= 0:
        errors.append("MAX_DRAWDOWN_PCT must be positive")

    if EXIT_PARAMS['target_profit_pct'] <= 0:
        errors.append("TARGET_PROFIT_PCT must be positive")

    if EXIT_PARAMS['stop_loss_pct'] <= 0:
        errors.append("STOP_LOSS_PCT must be positive")

    if EXIT_PARAMS['min_profit_floor_pct'] > EXIT_PARAMS['target_profit_pct']:
        errors.append("MIN_PROFIT_FLOOR_PCT must not exceed TARGET_PROFIT_PCT")

    if EXIT_PARAMS['max_hold_duration_seconds'] <= 0:
        errors.append("MAX_HOLD_DURATION_SECONDS must be positive")

    return errors
