"""
spotgrid - Volatility-adjusted spot grid trading core.

This package contains the per-symbol decision engine, its state model, the
pure pricing functions and the client contracts an exchange adapter has to
implement. It has no exchange-specific dependencies.
"""

from spotgrid.errors import (
    GridError,
    ConfigError,
    ConnectivityError,
    ApiError,
    NetworkError,
    DecodeError,
    ExchangeRejected,
    InvariantViolation,
    RepricingDeferred,
)
from spotgrid.models import Symbol, Action, Interval, CoinConfig, Candle, GridState
from spotgrid.clients import MarketDataClient, TradeClient
from spotgrid.pricing import reprice, calc_volatility, calc_profit
from spotgrid.engine import GridEngine

__version__ = "0.1.0"

__all__ = [
    "GridError",
    "ConfigError",
    "ConnectivityError",
    "ApiError",
    "NetworkError",
    "DecodeError",
    "ExchangeRejected",
    "InvariantViolation",
    "RepricingDeferred",
    "Symbol",
    "Action",
    "Interval",
    "CoinConfig",
    "Candle",
    "GridState",
    "MarketDataClient",
    "TradeClient",
    "reprice",
    "calc_volatility",
    "calc_profit",
    "GridEngine",
]
