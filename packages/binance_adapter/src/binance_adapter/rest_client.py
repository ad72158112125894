"""REST API client for Binance spot market data and market orders.

This module implements both spotgrid client contracts (MarketDataClient and
TradeClient) over one pooled httpx.AsyncClient:
- Connectivity check
- Latest price and 24 hour statistics
- Kline history for volatility
- Signed MARKET orders with FULL responses

Reference:
- General info: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/general-api-information
- Signed endpoints: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/endpoint-security-type
- Error codes: https://developers.binance.com/docs/binance-spot-api-docs/errors
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from spotgrid.errors import ConfigError, DecodeError, ExchangeRejected, NetworkError
from spotgrid.models import Candle, Interval, Symbol

from binance_adapter.parsing import (
    Ticker24h,
    parse_error_body,
    parse_fill_price,
    parse_klines,
    parse_ticker_24hr,
    parse_ticker_price,
)
from binance_adapter.rate_limiter import RateLimiter, RateLimitConfig, RequestType


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.binance.com/api/v3/"

_RATE_LIMIT_STATUSES = (418, 429)


def _base_url(url: str) -> httpx.URL:
    """Validate an API root and make sure relative paths join under it."""
    try:
        parsed = httpx.URL(url if url.endswith("/") else url + "/")
    except httpx.InvalidURL as e:
        raise ConfigError(f"Invalid exchange URL '{url}': {e}")
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ConfigError(f"Invalid exchange URL '{url}': expected an absolute http(s) URL")
    return parsed


def format_quantity(quantity: float) -> str:
    """Render a quantity in plain decimal notation (no exponent)."""
    return format(Decimal(repr(quantity)).normalize(), "f")


@dataclass
class BinanceRestClient:
    """REST API client for the Binance spot exchange.

    One instance is shared by every symbol runner; httpx pools connections
    internally and the rate limiter is per API key.

    Example:
        client = BinanceRestClient(api_key="xxx", api_secret="yyy")

        if await client.ping():
            price = await client.ticker_price(Symbol.ETH)
            fill = await client.buy(Symbol.ETH, 0.01)

        await client.aclose()
    """

    api_key: str
    api_secret: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    market_url: Optional[str] = None
    proxy: Optional[str] = None
    timeout: float = 10.0
    recv_window: int = 5000
    rate_limit_config: RateLimitConfig = field(default_factory=RateLimitConfig)
    transport: Optional[httpx.AsyncBaseTransport] = field(default=None, repr=False)

    _trade_root: httpx.URL = field(default=None, init=False, repr=False)
    _market_root: httpx.URL = field(default=None, init=False, repr=False)
    _http: httpx.AsyncClient = field(default=None, init=False, repr=False)
    _rate_limiter: RateLimiter = field(default=None, init=False, repr=False)

    def __post_init__(self):
        """Validate URLs, create the HTTP pool and the rate limiter."""
        self._trade_root = _base_url(self.base_url)
        self._market_root = _base_url(self.market_url) if self.market_url else self._trade_root

        client_kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self.proxy:
            client_kwargs["proxy"] = self.proxy
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        self._http = httpx.AsyncClient(**client_kwargs)
        self._rate_limiter = RateLimiter(config=self.rate_limit_config)

    async def __aenter__(self) -> "BinanceRestClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    def get_rate_limit_status(self) -> dict[str, int | float]:
        """Return current rate limit status for debugging/monitoring."""
        return {
            "query_available": self._rate_limiter.get_available_capacity("query"),
            "order_available": self._rate_limiter.get_available_capacity("order"),
            "backoff_remaining": self._rate_limiter.get_backoff_remaining(),
        }

    # ------------------------------------------------------------------
    # MarketDataClient
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        """Test connectivity to the REST API.

        Returns:
            True if the exchange answered with a non-empty body
        """
        response = await self._send("GET", self._market_root, "ping")
        return bool(response.content.strip())

    async def ticker_price(self, symbol: Symbol) -> float:
        """Latest trade price for a symbol.

        Raises:
            NetworkError, DecodeError, ExchangeRejected
        """
        payload = await self._request("GET", self._market_root, "ticker/price", {"symbol": symbol.pair})
        price = parse_ticker_price(payload)
        logger.debug(f"{symbol.pair} price {price}")
        return price

    async def k_lines(
        self,
        symbol: Symbol,
        interval: Interval = Interval.HOUR_1,
        limit: int = 24,
    ) -> list[Candle]:
        """Fetch the most recent candles for a symbol.

        Args:
            symbol: Coin to query
            interval: Candle interval
            limit: Number of candles (max 1000)

        Returns:
            Candles ordered oldest first
        """
        params = {"symbol": symbol.pair, "interval": interval.value, "limit": min(limit, 1000)}
        payload = await self._request("GET", self._market_root, "klines", params)
        candles = parse_klines(payload)
        logger.debug(f"Fetched {len(candles)} {interval.value} klines for {symbol.pair}")
        return candles

    async def ticker_24hr(self, symbol: Symbol) -> Ticker24h:
        """Rolling 24 hour price statistics for a symbol."""
        payload = await self._request("GET", self._market_root, "ticker/24hr", {"symbol": symbol.pair})
        return parse_ticker_24hr(payload)

    # ------------------------------------------------------------------
    # TradeClient
    # ------------------------------------------------------------------

    async def buy(self, symbol: Symbol, quantity: float) -> Optional[float]:
        """Place a MARKET buy. Returns the first fill price, or None."""
        return await self.place_market_order(symbol, "BUY", quantity)

    async def sell(self, symbol: Symbol, quantity: float) -> Optional[float]:
        """Place a MARKET sell. Returns the first fill price, or None."""
        return await self.place_market_order(symbol, "SELL", quantity)

    async def place_market_order(self, symbol: Symbol, side: str, quantity: float) -> Optional[float]:
        """Place a signed MARKET order.

        Args:
            symbol: Coin to trade
            side: 'BUY' or 'SELL'
            quantity: Base asset quantity

        Returns:
            Price of the first fill, or None if the response has no fills

        Raises:
            NetworkError, DecodeError, ExchangeRejected
        """
        params = {
            "symbol": symbol.pair,
            "side": side,
            "type": "MARKET",
            "quantity": format_quantity(quantity),
            "newOrderRespType": "FULL",
        }
        payload = await self._request(
            "POST", self._trade_root, "order", params, signed=True, request_type="order"
        )
        fill_price = parse_fill_price(payload)
        logger.info(
            f"Placed {side} MARKET order: {symbol.pair} qty={params['quantity']} "
            f"order_id={payload.get('orderId')} fill={fill_price}"
        )
        return fill_price

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def sign(self, query: str) -> str:
        """Hex HMAC-SHA256 of a canonical query string."""
        return hmac.new(
            self.api_secret.encode("utf-8"),
            query.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _build_url(
        self,
        root: httpx.URL,
        path: str,
        params: Optional[dict] = None,
        signed: bool = False,
    ) -> str:
        """Join path under root and append the (signed) query string."""
        params = dict(params or {})
        if signed:
            params["recvWindow"] = self.recv_window
            params["timestamp"] = int(time.time() * 1000)
        query = urlencode(params)
        if signed:
            signature = self.sign(query)
            query = f"{query}&signature={signature}" if query else f"signature={signature}"
        url = str(root.join(path))
        return f"{url}?{query}" if query else url

    async def _send(
        self,
        method: str,
        root: httpx.URL,
        path: str,
        params: Optional[dict] = None,
        signed: bool = False,
        request_type: RequestType = "query",
    ) -> httpx.Response:
        """Send one request and map failures onto the spotgrid error taxonomy."""
        url = self._build_url(root, path, params, signed)
        headers = {"X-MBX-APIKEY": self.api_key} if signed else {}

        await self._rate_limiter.acquire(request_type)
        try:
            response = await self._http.request(method, url, headers=headers)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        if response.status_code in _RATE_LIMIT_STATUSES:
            backoff = self._rate_limiter.record_rate_limit_hit()
            logger.warning(f"Rate limited on {path} (HTTP {response.status_code}), backing off {backoff:.1f}s")
        else:
            self._rate_limiter.record_success()

        if response.status_code >= 400:
            try:
                error = parse_error_body(response.json())
            except ValueError:
                error = None
            if error is not None:
                code, message = error
            else:
                code, message = response.status_code, response.text[:200] or response.reason_phrase
            logger.debug(f"Binance API error in {path}: [{code}] {message}")
            raise ExchangeRejected(code, message)

        return response

    async def _request(
        self,
        method: str,
        root: httpx.URL,
        path: str,
        params: Optional[dict] = None,
        signed: bool = False,
        request_type: RequestType = "query",
    ) -> Any:
        """Send a request and decode its JSON body."""
        response = await self._send(method, root, path, params, signed, request_type)
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {path}: {e}") from e
