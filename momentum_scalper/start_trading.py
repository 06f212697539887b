"""
Entry Point for Momentum Scalping System
Configures logging, validates configuration and runs the system until interrupted
"""

import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler

from momentum_scalper import config
from momentum_scalper.main import main as run_system

logger = logging.getLogger(__name__)


def setup_logging():
    log_config = config.LOGGING_CONFIG
    logging.basicConfig(
        level=getattr(logging, log_config['level'].upper(), logging.INFO),
        format=log_config['format'],
        handlers=[
            RotatingFileHandler(
                log_config['file'],
                maxBytes=log_config['max_size_mb'] * 1024 * 1024,
                backupCount=log_config['backup_count'],
            ),
            logging.StreamHandler()
        ]
    )
    # aiohttp access noise
    logging.getLogger('aiohttp').setLevel(logging.WARNING)


def validate_configuration():
    """Validate required configuration before startup"""
    errors = config.validate_configuration()
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  {error}")
        return False
    return True


def log_configuration():
    """Log key configuration parameters"""
    logger.info("Configuration Summary:")
    logger.info(f"   Initial Balance: ${config.ACCOUNT_SIZE:,.2f}")
    logger.info(f"   Symbols: {', '.join(config.SYMBOLS)}")
    logger.info(f"   Position Size: {config.RISK_PARAMS['position_size_pct']}% of free balance "
                f"(min ${config.RISK_PARAMS['min_position_size']}, max ${config.RISK_PARAMS['max_position_size']})")
    logger.info(f"   Max Open Positions: {config.RISK_PARAMS['max_open_positions']}")
    logger.info(f"   Max Daily Trades: {config.RISK_PARAMS['max_daily_trades']}")
    logger.info(f"   Max Consecutive Losses: {config.RISK_PARAMS['max_consecutive_losses']}")
    logger.info(f"   Max Drawdown: {config.RISK_PARAMS['max_drawdown_pct']}%")
    logger.info(f"   Take Profit: {config.EXIT_PARAMS['target_profit_pct']}%")
    logger.info(f"   Stop Loss: {config.EXIT_PARAMS['stop_loss_pct']}%")
    logger.info(f"   Signal Interval: {config.REALTIME_CONFIG['signal_interval_seconds']}s")
    logger.info(f"   Check Interval: {config.REALTIME_CONFIG['check_interval_seconds']}s")


async def main():
    """Main entry point"""
    if not validate_configuration():
        logger.error("Configuration validation failed. Exiting.")
        return 1

    log_configuration()

    logger.info("Starting Momentum Scalping System...")
    exit_code = await run_system()
    logger.info("Momentum Scalping System stopped")
    return exit_code


def run():
    """Console script entry"""
    setup_logging()
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
