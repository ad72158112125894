"""
Exchange client contracts consumed by the grid engine.

Implementations must be safe to call concurrently from several runner tasks.
Failures are reported by raising spotgrid.errors.ApiError subclasses.
"""

from typing import Optional, Protocol, runtime_checkable

from spotgrid.models import Candle, Interval, Symbol


@runtime_checkable
class MarketDataClient(Protocol):
    """Market data capabilities: connectivity, latest price, candles."""

    async def ping(self) -> bool:
        ...

    async def ticker_price(self, symbol: Symbol) -> float:
        ...

    async def k_lines(self, symbol: Symbol, interval: Interval, limit: int) -> list[Candle]:
        """Most recent `limit` candles, oldest first."""
        ...


@runtime_checkable
class TradeClient(Protocol):
    """Order placement capabilities.

    buy/sell return the fill price, or None when the order was accepted
    without fill information.
    """

    async def buy(self, symbol: Symbol, quantity: float) -> Optional[float]:
        ...

    async def sell(self, symbol: Symbol, quantity: float) -> Optional[float]:
        ...
