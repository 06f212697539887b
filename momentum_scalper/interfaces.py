from abc import ABC, abstractmethod

from momentum_scalper.models import OrderResult


class PriceFeed(ABC):
    """Last-trade price source. May raise or return 0 on transient failures."""

    @abstractmethod
    async def get_price(self, symbol: str) -> float:
        pass


class OrderAdapter(ABC):
    """Full-size market buy/sell primitive"""

    @abstractmethod
    async def execute_buy(self, symbol: str, amount: float) -> OrderResult:
        """Spend `amount` of quote currency on `symbol`"""
        pass

    @abstractmethod
    async def execute_sell(self, symbol: str, quantity: float) -> OrderResult:
        """Sell `quantity` units of `symbol`"""
        pass

    async def close(self):
        pass
