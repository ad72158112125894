"""Test fixtures for trendgrid tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from spotgrid import Candle, GridEngine, Symbol

from trendgrid.config import CoinSettings, MarketConfig, RunnerConfig, TrendgridConfig
from trendgrid.notifier import Notifier


@pytest.fixture
def sample_market_config():
    """Sample exchange configuration."""
    return MarketConfig(api_key="test_key", api_secret="test_secret")


@pytest.fixture
def sample_coin_settings():
    """ETH grid with buy=100, sell=103."""
    return CoinSettings(
        buy_price=100.0,
        sell_price=103.0,
        profit_ratio=0.03,
        double_throw_ratio=0.02,
        quantity=2.0,
    )


@pytest.fixture
def fast_runner_config():
    """Runner timing with no real waiting."""
    return RunnerConfig(poll_interval=0, error_backoff=0, cooldown=0, shutdown_timeout=1.0)


@pytest.fixture
def sample_trendgrid_config(sample_market_config, sample_coin_settings, fast_runner_config):
    """Config with ETH and BTC grids."""
    return TrendgridConfig(
        market=sample_market_config,
        coins={
            "eth": sample_coin_settings,
            "btc": CoinSettings(
                buy_price=40000.0,
                sell_price=41000.0,
                profit_ratio=0.01,
                double_throw_ratio=0.01,
                quantity=0.001,
            ),
        },
        runner=fast_runner_config,
    )


@pytest.fixture
def market():
    """Market data client: ping ok, candles average to a 0.02 ratio."""
    client = AsyncMock()
    client.ping.return_value = True
    client.ticker_price.return_value = 101.0
    client.k_lines.return_value = [
        Candle(open_time=0, open=100.0, high=102.0, low=100.0, close=101.0, close_time=3_599_999, count=10)
    ]
    return client


@pytest.fixture
def trade():
    return AsyncMock()


@pytest.fixture
def notifier():
    """Notifier spy (no Telegram)."""
    return MagicMock(spec=Notifier)


@pytest.fixture
def engine(sample_coin_settings, market, trade):
    return GridEngine(Symbol.ETH, sample_coin_settings.to_coin_config(), market, trade)

