"""Binance-specific adapter for the spotgrid client contracts.

This package provides:
- Signed REST client implementing MarketDataClient and TradeClient
- Parsing of Binance REST payloads into spotgrid models
- Per-key rate limiting
"""

from binance_adapter.parsing import Ticker24h
from binance_adapter.rest_client import BinanceRestClient
from binance_adapter.rate_limiter import RateLimiter, RateLimitConfig

__all__ = [
    "BinanceRestClient",
    "Ticker24h",
    "RateLimiter",
    "RateLimitConfig",
]
