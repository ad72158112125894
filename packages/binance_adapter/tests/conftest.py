"""Test fixtures for binance_adapter tests."""

import httpx
import pytest

from binance_adapter.rest_client import BinanceRestClient


@pytest.fixture
def sample_kline_row():
    """Sample Binance klines row (1h ETHUSDT)."""
    return [
        1704639600000,
        "2250.10000000",
        "2262.40000000",
        "2241.00000000",
        "2255.55000000",
        "1532.84210000",
        1704643199999,
        "3452711.49211000",
        8123,
        "801.11000000",
        "1804455.10100000",
        "0",
    ]


@pytest.fixture
def sample_order_response():
    """Sample FULL response of a MARKET buy."""
    return {
        "symbol": "ETHUSDT",
        "orderId": 28,
        "orderListId": -1,
        "clientOrderId": "6gCrw2kRUAF9CvJDGP16IP",
        "transactTime": 1507725176595,
        "price": "0.00000000",
        "origQty": "0.01000000",
        "executedQty": "0.01000000",
        "status": "FILLED",
        "type": "MARKET",
        "side": "BUY",
        "fills": [
            {"price": "2255.50000000", "qty": "0.00600000", "commission": "0.00000600", "commissionAsset": "ETH"},
            {"price": "2255.60000000", "qty": "0.00400000", "commission": "0.00000400", "commissionAsset": "ETH"},
        ],
    }


@pytest.fixture
def make_client():
    """Build a BinanceRestClient whose HTTP traffic goes to `handler`."""
    def _make(handler, **kwargs):
        client = BinanceRestClient(
            api_key="test_key",
            api_secret="test_secret",
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        return client

    return _make
