"""
Paper Trading Adapter
Simulated market orders against the live price feed, with slippage and fees
Reported average prices are fee-inclusive, so quantity * price is the
quote actually spent (buy) or received (sell)
"""

import asyncio
import itertools
import logging
from typing import Dict, Optional

from momentum_scalper import config
from momentum_scalper.interfaces import OrderAdapter, PriceFeed
from momentum_scalper.models import OrderFailed, OrderFilled, OrderResult

logger = logging.getLogger(__name__)


class PaperOrderAdapter(OrderAdapter):
    """Fills every order at the current feed price. Tracks quote cash and holdings."""

    def __init__(self, price_feed: PriceFeed, initial_balance: Optional[float] = None,
                 params: Optional[Dict] = None):
        self.price_feed = price_feed
        self.params = {**config.EXECUTION_PARAMS, **(params or {})}
        self.cash_balance = config.ACCOUNT_SIZE if initial_balance is None else initial_balance
        self.holdings: Dict[str, float] = {}
        self._order_ids = itertools.count(1)

    async def _mark_price(self, symbol: str) -> float:
        price = await self.price_feed.get_price(symbol)
        if not price or price <= 0:
            raise ValueError(f"Invalid mark price for {symbol}: {price}")
        return price

    def _order_id(self) -> str:
        return f"paper-{next(self._order_ids)}"

    async def execute_buy(self, symbol: str, amount: float) -> OrderResult:
        if amount <= 0:
            return OrderFailed(f"Invalid buy amount {amount}")
        if amount > self.cash_balance + 1e-9:
            return OrderFailed(f"Insufficient paper balance: {self.cash_balance:.2f} < {amount:.2f}")

        try:
            mark_price = await self._mark_price(symbol)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ PAPER BUY FAILED: {symbol} | {e}")
            return OrderFailed(str(e))

        execution_price = mark_price * (1 + self.params['paper_slippage_pct'] / 100)
        quantity = amount * (1 - self.params['paper_fee_pct'] / 100) / execution_price

        self.cash_balance -= amount
        self.holdings[symbol] = self.holdings.get(symbol, 0.0) + quantity
        order_id = self._order_id()

        logger.info(f"📄 PAPER BUY: {symbol} | amount={amount:.2f}, markPrice={mark_price:.8f}, "
                    f"executionPrice={execution_price:.8f}, quantity={quantity:.8f}, "
                    f"order={order_id}, cash={self.cash_balance:.2f}")
        return OrderFilled(filled=quantity, average_price=amount / quantity, order_id=order_id)

    async def execute_sell(self, symbol: str, quantity: float) -> OrderResult:
        owned = self.holdings.get(symbol, 0.0)
        if owned <= 0:
            return OrderFailed(f"No paper position for {symbol}")
        quantity = min(quantity, owned)
        if quantity <= 0:
            return OrderFailed(f"Invalid sell quantity {quantity}")

        try:
            mark_price = await self._mark_price(symbol)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ PAPER SELL FAILED: {symbol} | {e}")
            return OrderFailed(str(e))

        execution_price = mark_price * (1 - self.params['paper_slippage_pct'] / 100)
        proceeds = quantity * execution_price * (1 - self.params['paper_fee_pct'] / 100)

        self.cash_balance += proceeds
        remaining = owned - quantity
        if remaining > 0:
            self.holdings[symbol] = remaining
        else:
            self.holdings.pop(symbol, None)
        order_id = self._order_id()

        logger.info(f"📄 PAPER SELL: {symbol} | quantity={quantity:.8f}, markPrice={mark_price:.8f}, "
                    f"executionPrice={execution_price:.8f}, proceeds={proceeds:.2f}, "
                    f"order={order_id}, cash={self.cash_balance:.2f}")
        return OrderFilled(filled=quantity, average_price=proceeds / quantity, order_id=order_id)

    async def get_balance(self) -> float:
        """Quote cash, used for periodic ledger sync"""
        return self.cash_balance
