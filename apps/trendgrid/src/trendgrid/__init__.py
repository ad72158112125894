"""
trendgrid - Spot grid trading agent for Binance.

Runs one volatility-adjusted grid per configured coin, each in its own
asyncio task, against the Binance REST API.
"""

from trendgrid.config import TrendgridConfig, load_config
from trendgrid.notifier import Notifier
from trendgrid.runner import RunnerState, SymbolRunner
from trendgrid.supervisor import Supervisor

__version__ = "0.1.0"

__all__ = [
    "TrendgridConfig",
    "load_config",
    "Notifier",
    "RunnerState",
    "SymbolRunner",
    "Supervisor",
]
