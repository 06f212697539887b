"""
Risk Manager for Momentum Scalping
Admission gate for new positions plus a sticky stop-trading latch
driven by consecutive losses and drawdown
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

import pytz

from momentum_scalper import config
from momentum_scalper.models import RiskState

logger = logging.getLogger(__name__)


def utc_today() -> str:
    return datetime.now(pytz.UTC).strftime('%Y-%m-%d')


class RiskManager:
    """Trade limits and circuit breaker. The stop latch only clears on resume_trading()."""

    def __init__(self, initial_balance: float, params: Optional[Dict] = None,
                 today: Callable[[], str] = utc_today):
        self.params = {**config.RISK_PARAMS, **(params or {})}
        self._today = today

        self.daily_trades = 0
        self.consecutive_losses = 0
        self.last_trade_date = today()
        self.peak_balance = initial_balance
        self.current_balance = initial_balance
        self.current_drawdown_pct = 0.0
        self.trading_stopped = False
        self.stop_reason = ''

    def _roll_daily_counter(self):
        today = self._today()
        if today != self.last_trade_date:
            logger.info(f"New UTC day {today}: resetting daily trade count ({self.daily_trades})")
            self.daily_trades = 0
            self.last_trade_date = today

    def _state(self, can_trade: bool, reason: Optional[str] = None) -> RiskState:
        return RiskState(
            can_trade=can_trade,
            reason=reason,
            daily_trades_count=self.daily_trades,
            consecutive_losses=self.consecutive_losses,
            current_drawdown_pct=self.current_drawdown_pct,
            trading_stopped=self.trading_stopped,
            stop_reason=self.stop_reason,
        )

    def can_open_position(self, max_open_positions: int, current_open_positions: int) -> RiskState:
        """Check admission. The first failing rule wins."""
        if self.trading_stopped:
            return self._state(False, f"Trading stopped: {self.stop_reason}")

        if current_open_positions >= max_open_positions:
            return self._state(False, f"Max open positions reached: {current_open_positions}/{max_open_positions}")

        self._roll_daily_counter()
        max_daily_trades = self.params['max_daily_trades']
        if self.daily_trades >= max_daily_trades:
            return self._state(False, f"Daily trades limit reached: {self.daily_trades}/{max_daily_trades}")

        if self.consecutive_losses >= self.params['max_consecutive_losses']:
            reason = f"Consecutive losses: {self.consecutive_losses}"
            self.stop_trading(reason)
            return self._state(False, reason)

        return self._state(True)

    def on_position_opened(self):
        self._roll_daily_counter()
        self.daily_trades += 1

    def on_position_closed(self, profit: float):
        if profit > 0:
            self.consecutive_losses = 0
        else:
            self.consecutive_losses += 1
            logger.info(f"Losing close ({profit:+.4f}), consecutive losses: {self.consecutive_losses}")
            if self.consecutive_losses >= self.params['max_consecutive_losses']:
                self.stop_trading(f"Consecutive losses: {self.consecutive_losses}")

    def update_balance(self, balance: float):
        """Recompute drawdown from peak; trips the stop latch once on breach"""
        self.current_balance = balance
        if balance > self.peak_balance:
            self.peak_balance = balance

        if self.peak_balance > 0:
            self.current_drawdown_pct = (self.peak_balance - balance) / self.peak_balance * 100
        else:
            self.current_drawdown_pct = 0.0

        max_drawdown_pct = self.params['max_drawdown_pct']
        if self.current_drawdown_pct >= max_drawdown_pct:
            self.stop_trading(
                f"Max drawdown exceeded: {self.current_drawdown_pct:.2f}% >= {max_drawdown_pct}%"
            )

    def stop_trading(self, reason: str):
        if self.trading_stopped:
            return
        self.trading_stopped = True
        self.stop_reason = reason
        logger.warning(f"🛑 Trading stopped - {reason}")

    def resume_trading(self):
        """Operator call: clear the stop latch and the loss streak"""
        if not self.trading_stopped:
            return
        self.trading_stopped = False
        self.stop_reason = ''
        self.consecutive_losses = 0
        logger.info("✅ Trading resumed")

    def get_risk_state(self) -> RiskState:
        return self._state(not self.trading_stopped, self.stop_reason or None)

    def reset_daily_metrics(self):
        self.daily_trades = 0
        self.last_trade_date = self._today()
        logger.info("Daily risk metrics reset")
