"""
Momentum Scalping System
Short-hold long entries on accelerating price momentum

Entry: positive velocity, non-negative acceleration, predicted move >= 0.8% in 5s
Exit: timeout, take profit, momentum fade, stale feed, stop loss (first match wins)
Risk: position caps, daily trade limit, consecutive-loss and drawdown circuit breaker
"""

__version__ = "1.0.0"
__author__ = "Momentum Trader"
__description__ = "Momentum scalping position lifecycle engine"

# Core system components
from .capital_ledger import CapitalLedger
from .risk_manager import RiskManager
from .momentum_detector import MomentumDetector, PairWatcher, calculate_momentum
from .position_manager import PositionManager
from .trade_logger import TradeLogger
from .bybit_client import BybitClient, PriceFeedError
from .paper_adapter import PaperOrderAdapter
from .main import MomentumScalperSystem

__all__ = [
    'CapitalLedger',
    'RiskManager',
    'MomentumDetector',
    'PairWatcher',
    'calculate_momentum',
    'PositionManager',
    'TradeLogger',
    'BybitClient',
    'PriceFeedError',
    'PaperOrderAdapter',
    'MomentumScalperSystem'
]

# System configuration
SYSTEM_INFO = {
    'name': 'Momentum Scalping System',
    'version': __version__,
    'strategy': 'Velocity / acceleration projection over a 5-sample window',
    'entry_method': 'Predicted change >= 0.8%, confidence >= 0.7, no reversal',
    'exit_method': 'Take profit 0.8%, stop loss 0.5%, momentum fade, 300s max hold',
    'data_requirements': 'Last-trade price polled every second',
    'risk_management': '20% of free balance per position, max 5 open, stop latch on 3 losses or 20% drawdown'
}
