"""
Data models for the grid trading agent.

Symbols and actions are closed enumerations. CoinConfig and Candle are
immutable; GridState is the only mutable model and is owned by exactly one
GridEngine.
"""

from dataclasses import dataclass, field
from enum import Enum

from spotgrid.errors import ConfigError


class Symbol(Enum):
    """Supported coins mapped to their exchange pair strings."""
    ETH = "ETHUSDT"
    BTC = "BTCUSDT"
    BNB = "BNBUSDT"

    @property
    def pair(self) -> str:
        """Exchange pair string (e.g. 'ETHUSDT')."""
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "Symbol":
        """Resolve a config key such as 'eth' or 'ETH'."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ConfigError(f"Unknown coin '{name}', expected one of {[s.name.lower() for s in cls]}")


class Action(Enum):
    """Outcome of one GridEngine evaluation."""
    BOUGHT = "bought"
    SOLD = "sold"
    HELD = "held"


class Interval(Enum):
    """Exchange kline intervals."""
    MIN_1 = "1m"
    MIN_3 = "3m"
    MIN_5 = "5m"
    MIN_15 = "15m"
    MIN_30 = "30m"
    HOUR_1 = "1h"
    HOUR_2 = "2h"
    HOUR_4 = "4h"
    HOUR_6 = "6h"
    HOUR_8 = "8h"
    HOUR_12 = "12h"
    DAY_1 = "1d"
    DAY_3 = "3d"
    WEEK_1 = "1w"
    MONTH_1 = "1M"


@dataclass(frozen=True)
class CoinConfig:
    """
    Per-coin grid parameters.

    Attributes:
        buy_price: Initial buy threshold
        sell_price: Initial sell threshold
        profit_ratio: Fractional sell-side width, in [0, 1) (0.02 means 2%)
        double_throw_ratio: Fractional buy-side width, in [0, 1)
        quantity: Fixed order size per leg
    """
    buy_price: float
    sell_price: float
    profit_ratio: float
    double_throw_ratio: float
    quantity: float

    def __post_init__(self):
        """Validate configuration parameters."""
        if self.quantity <= 0:
            raise ConfigError(f"quantity must be positive, got {self.quantity}")
        if not (0 <= self.profit_ratio < 1):
            raise ConfigError(f"profit_ratio must be in [0, 1), got {self.profit_ratio}")
        if not (0 <= self.double_throw_ratio < 1):
            raise ConfigError(f"double_throw_ratio must be in [0, 1), got {self.double_throw_ratio}")
        if self.buy_price <= 0:
            raise ConfigError(f"buy_price must be positive, got {self.buy_price}")
        if self.sell_price <= self.buy_price:
            raise ConfigError(
                f"sell_price must be above buy_price, got buy={self.buy_price} sell={self.sell_price}"
            )


@dataclass(frozen=True)
class Candle:
    """One kline row. Times are exchange milliseconds."""
    open_time: int
    open: float
    high: float
    low: float
    close: float
    close_time: int
    count: int


@dataclass
class GridState:
    """
    Mutable grid state for one symbol.

    history is a LIFO stack of entry fill prices, one per open buy leg.
    """
    buy: float
    sell: float
    quantity: float
    profit_ratio: float
    double_throw_ratio: float
    history: list[float] = field(default_factory=list)

    @classmethod
    def from_coin(cls, coin: CoinConfig) -> "GridState":
        return cls(
            buy=coin.buy_price,
            sell=coin.sell_price,
            quantity=coin.quantity,
            profit_ratio=coin.profit_ratio,
            double_throw_ratio=coin.double_throw_ratio,
        )

    def is_air(self) -> bool:
        """True when flat: no open leg waiting to be sold."""
        return not self.history
