"""
Shared test doubles: scripted price feed, order adapter and clock
"""

import asyncio

import pytest

from momentum_scalper.interfaces import OrderAdapter, PriceFeed
from momentum_scalper.models import MomentumSignal, OrderFailed, OrderFilled


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakePriceFeed(PriceFeed):
    """Returns prices[symbol]; symbols in `failing` raise"""

    def __init__(self, prices=None):
        self.prices = dict(prices or {})
        self.failing = set()
        self.calls = 0

    async def get_price(self, symbol):
        self.calls += 1
        if symbol in self.failing:
            raise ConnectionError(f"feed down for {symbol}")
        return self.prices.get(symbol, 0.0)


class FakeOrderAdapter(OrderAdapter):
    """Fills at the feed's current price unless told to fail"""

    def __init__(self, feed):
        self.feed = feed
        self.fail_buy = False
        self.fail_sell = False
        self.buy_delay = 0.0
        self.fill_ratio = 1.0
        self.sell_fill_ratio = 1.0
        self.buys = []
        self.sells = []

    async def execute_buy(self, symbol, amount):
        self.buys.append((symbol, amount))
        if self.buy_delay:
            await asyncio.sleep(self.buy_delay)
        if self.fail_buy:
            return OrderFailed('exchange rejected buy')
        price = self.feed.prices.get(symbol, 0.0)
        return OrderFilled(filled=amount * self.fill_ratio / price, average_price=price)

    async def execute_sell(self, symbol, quantity):
        self.sells.append((symbol, quantity))
        if self.fail_sell:
            return OrderFailed('exchange rejected sell')
        return OrderFilled(filled=quantity * self.sell_fill_ratio, average_price=self.feed.prices.get(symbol, 0.0))


def make_signal(symbol='XUSDT', last_price=1.0, is_valid=True):
    return MomentumSignal(
        symbol=symbol,
        velocity=0.002,
        acceleration=0.0,
        predicted_price=last_price * 1.01,
        predicted_change_pct=1.0,
        confidence=1.0,
        has_reversal=False,
        is_valid=is_valid,
        last_price=last_price,
        timestamp=1000.0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def feed():
    return FakePriceFeed({'XUSDT': 1.0, 'YUSDT': 2.0, 'ZUSDT': 4.0})


@pytest.fixture
def adapter(feed):
    return FakeOrderAdapter(feed)


@pytest.fixture
def signal_factory():
    return make_signal
