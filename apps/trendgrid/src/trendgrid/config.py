"""Configuration models for trendgrid.

Loads trading agent configuration from YAML file with Pydantic validation.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from spotgrid import CoinConfig, Interval, Symbol


class MarketConfig(BaseModel):
    """Exchange connection configuration."""

    url: str = Field(
        default="https://api.binance.com/api/v3/",
        description="REST API root used for orders (and market data unless market_url is set)",
    )
    market_url: Optional[str] = Field(default=None, description="Separate REST root for public market data")
    proxy: Optional[str] = Field(default=None, description="HTTP(S) proxy URL")
    api_key: str = Field(..., description="Binance API key")
    api_secret: str = Field(..., repr=False, description="Binance API secret")
    timeout: float = Field(default=10.0, gt=0, description="HTTP timeout in seconds")
    recv_window: int = Field(default=5000, gt=0, le=60000, description="Signed request validity in ms")


class RotationType(str, Enum):
    """Log file rotation schedule."""

    HOURLY = "hourly"
    DAILY = "daily"
    NEVER = "never"


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Root log level")
    enable_log_file: bool = Field(default=False, description="Also write logs to a file")
    path: str = Field(default="logs/trendgrid.log", description="Log file path")
    rotation: RotationType = Field(default=RotationType.DAILY, description="Log file rotation")
    json_format: bool = Field(default=False, description="Write the log file as JSON lines")

    @field_validator("level", mode="before")
    @classmethod
    def parse_level(cls, v):
        """Normalize and check the level name."""
        level = str(v).upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level '{v}'")
        return level


class CoinSettings(BaseModel):
    """Grid parameters for one coin.

    Ratios are fractions (0.02 means 2%), not percentages.
    """

    buy_price: float = Field(..., gt=0, description="Initial buy threshold")
    sell_price: float = Field(..., gt=0, description="Initial sell threshold")
    profit_ratio: float = Field(..., ge=0, lt=1, description="Sell-side grid width")
    double_throw_ratio: float = Field(..., ge=0, lt=1, description="Buy-side grid width")
    quantity: float = Field(..., gt=0, description="Order size per leg")

    @model_validator(mode="after")
    def validate_thresholds(self):
        """Ensure the initial grid is not crossed."""
        if self.sell_price <= self.buy_price:
            raise ValueError(
                f"sell_price ({self.sell_price}) must be above buy_price ({self.buy_price})"
            )
        return self

    def to_coin_config(self) -> CoinConfig:
        return CoinConfig(
            buy_price=self.buy_price,
            sell_price=self.sell_price,
            profit_ratio=self.profit_ratio,
            double_throw_ratio=self.double_throw_ratio,
            quantity=self.quantity,
        )


class RunnerConfig(BaseModel):
    """Polling loop timing and volatility window."""

    poll_interval: float = Field(default=1.0, ge=0, description="Seconds between ticks when holding")
    error_backoff: float = Field(default=1.0, ge=0, description="Seconds to wait after a failed price fetch")
    cooldown: float = Field(default=90.0, ge=0, description="Seconds to wait after a trade")
    kline_interval: Interval = Field(default=Interval.HOUR_1, description="Candle interval for volatility")
    kline_limit: int = Field(default=24, gt=0, le=1000, description="Candles in the volatility window")
    shutdown_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for runners on shutdown")


class TelegramConfig(BaseModel):
    """Telegram notification configuration."""

    bot_token: str = Field(..., description="Telegram bot token")
    chat_id: str = Field(..., description="Telegram chat ID for alerts")


class NotificationConfig(BaseModel):
    """Notification configuration."""

    telegram: Optional[TelegramConfig] = None


class TrendgridConfig(BaseModel):
    """Root configuration for trendgrid."""

    market: MarketConfig
    log: LogConfig = Field(default_factory=LogConfig)
    coins: dict[str, CoinSettings] = Field(default_factory=dict)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    notification: Optional[NotificationConfig] = None

    @field_validator("coins", mode="before")
    @classmethod
    def validate_coin_names(cls, v):
        """Coin keys must name a supported symbol (eth, btc, bnb)."""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        normalized = {}
        for name, settings in v.items():
            key = Symbol.from_name(str(name)).name.lower()
            if key in normalized:
                raise ValueError(f"Coin '{name}' configured more than once")
            normalized[key] = settings
        return normalized

    def get_coins(self) -> dict[Symbol, CoinConfig]:
        """Configured coins in symbol declaration order."""
        coins = {}
        for symbol in Symbol:
            settings = self.coins.get(symbol.name.lower())
            if settings is not None:
                coins[symbol] = settings.to_coin_config()
        return coins


def load_config(config_path: Optional[str] = None) -> TrendgridConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, checks:
            1. TRENDGRID_CONFIG environment variable
            2. conf/trendgrid.yaml
            3. trendgrid.yaml

    Returns:
        Validated TrendgridConfig

    Raises:
        FileNotFoundError: If no config file found
        ValueError: If the file is not valid YAML or config validation fails
    """
    if config_path is None:
        config_path = os.environ.get("TRENDGRID_CONFIG")

    if config_path is None:
        search_paths = [
            Path("conf/trendgrid.yaml"),
            Path("trendgrid.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path is None:
        raise FileNotFoundError(
            "No config file found. Set TRENDGRID_CONFIG or create conf/trendgrid.yaml"
        )

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Config file {config_path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    return TrendgridConfig(**data)
