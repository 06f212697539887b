"""
Core data types for the position lifecycle engine
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Optional, Union


class PositionStatus(str, Enum):
    OPENING = 'opening'
    ACTIVE = 'active'
    CLOSING = 'closing'
    CLOSED = 'closed'
    FAILED = 'failed'


@dataclass(frozen=True)
class PriceSample:
    price: float
    timestamp: float  # seconds


@dataclass(frozen=True)
class MomentumSignal:
    """Result of one detector tick. Ephemeral, never persisted."""
    symbol: str = ''
    velocity: float = 0.0           # fraction of price per second
    acceleration: float = 0.0       # fraction of price per second^2
    predicted_price: float = 0.0
    predicted_change_pct: float = 0.0
    confidence: float = 0.0
    has_reversal: bool = False
    is_valid: bool = False
    last_price: float = 0.0
    timestamp: float = 0.0

    @classmethod
    def invalid(cls, symbol: str = '', timestamp: float = 0.0) -> 'MomentumSignal':
        return cls(symbol=symbol, timestamp=timestamp)


@dataclass
class Position:
    symbol: str
    entry_price: float
    invested_amount: float
    quantity: float
    entry_time: float
    exit_deadline: float
    take_profit_target: float
    peak_price: float
    last_price_update: float
    current_price: float
    status: PositionStatus = PositionStatus.OPENING
    trade_id: str = ''
    close_attempts: int = 0
    realized_profit: float = 0.0       # from partial sells
    realized_cost: float = 0.0         # invested amount already settled by partial sells
    pending_exit: Optional[str] = None  # exit reason still owed after a partial sell
    price_history: Deque[PriceSample] = field(default_factory=lambda: deque(maxlen=10))

    def record_price(self, price: float, timestamp: float):
        """Append a fresh price sample and update peak/current"""
        self.price_history.append(PriceSample(price, timestamp))
        self.current_price = price
        self.last_price_update = timestamp
        if price > self.peak_price:
            self.peak_price = price

    def profit_pct(self, price: Optional[float] = None) -> float:
        price = self.current_price if price is None else price
        if self.entry_price <= 0:
            return 0.0
        return (price - self.entry_price) / self.entry_price * 100

    @property
    def multiplier(self) -> float:
        if self.entry_price <= 0 or self.current_price <= 0:
            return 1.0
        return self.current_price / self.entry_price


@dataclass(frozen=True)
class RiskState:
    can_trade: bool
    reason: Optional[str]
    daily_trades_count: int
    consecutive_losses: int
    current_drawdown_pct: float
    trading_stopped: bool
    stop_reason: str = ''


@dataclass(frozen=True)
class OrderFilled:
    filled: float                 # base quantity actually filled
    average_price: float
    order_id: str = ''
    success: bool = True


@dataclass(frozen=True)
class OrderFailed:
    reason: str
    success: bool = False


OrderResult = Union[OrderFilled, OrderFailed]
