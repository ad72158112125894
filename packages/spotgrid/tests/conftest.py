"""Test fixtures for spotgrid tests."""

from unittest.mock import AsyncMock

import pytest

from spotgrid.engine import GridEngine
from spotgrid.models import Candle, CoinConfig, Symbol


def _make_candle(open_, high, low, close=None, open_time=0):
    """Build a candle with only the fields the volatility math reads."""
    return Candle(
        open_time=open_time,
        open=open_,
        high=high,
        low=low,
        close=close if close is not None else open_,
        close_time=open_time + 3_599_999,
        count=100,
    )


@pytest.fixture
def coin():
    """Grid with buy=100, sell=103, dtr=2%, profit=3%."""
    return CoinConfig(
        buy_price=100.0,
        sell_price=103.0,
        profit_ratio=0.03,
        double_throw_ratio=0.02,
        quantity=2.0,
    )


@pytest.fixture
def market():
    """Market data client whose candles average to a 0.02 ratio."""
    client = AsyncMock()
    client.ping.return_value = True
    client.k_lines.return_value = [_make_candle(100.0, 102.0, 100.0)]
    return client


@pytest.fixture
def trade():
    """Trade client that fills at whatever price the test sets."""
    return AsyncMock()


@pytest.fixture
def engine(coin, market, trade):
    return GridEngine(Symbol.ETH, coin, market, trade)


@pytest.fixture
def make_candle():
    """Factory for candles: make_candle(open, high, low)."""
    return _make_candle
