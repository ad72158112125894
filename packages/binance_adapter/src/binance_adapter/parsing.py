"""Convert Binance REST payloads to spotgrid models.

Binance encodes prices and quantities as JSON strings. Every parser here
raises spotgrid.DecodeError when the payload does not have the expected
shape, so callers only ever see the spotgrid error taxonomy.

Binance API Reference:
- Ticker price: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/market-data-endpoints#symbol-price-ticker
- Klines: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/market-data-endpoints#klinecandlestick-data
- 24hr ticker: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/market-data-endpoints#24hr-ticker-price-change-statistics
- New order: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/trading-endpoints#new-order-trade
"""

from dataclasses import dataclass
from typing import Any, Optional

from spotgrid.errors import DecodeError
from spotgrid.models import Candle


@dataclass(frozen=True)
class Ticker24h:
    """Rolling 24 hour statistics for one symbol."""

    symbol: str
    price_change: float
    price_change_percent: float
    last_price: float
    open_price: float
    high_price: float
    low_price: float
    volume: float
    open_time: int
    close_time: int
    count: int


def parse_float(value: Any) -> float:
    """Parse a numeric-from-string field.

    An empty string decodes to 0.0, matching how Binance leaves some
    numeric fields blank.
    """
    if isinstance(value, bool):
        raise DecodeError(f"Expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if value == "":
            return 0.0
        try:
            return float(value)
        except ValueError:
            raise DecodeError(f"Invalid numeric string {value!r}")
    raise DecodeError(f"Expected a numeric string, got {type(value).__name__}")


def parse_price(value: Any) -> float:
    """Parse a trade or ticker price, which must be strictly positive."""
    price = parse_float(value)
    if not price > 0:
        raise DecodeError(f"Expected a positive price, got {value!r}")
    return price


def _field(payload: Any, name: str) -> Any:
    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
    try:
        return payload[name]
    except KeyError:
        raise DecodeError(f"Missing field '{name}'")


def parse_ticker_price(payload: Any) -> float:
    """Parse GET ticker/price response.

    Format:
        {"symbol": "ETHUSDT", "price": "1835.27000000"}
    """
    return parse_price(_field(payload, "price"))


def parse_kline(row: Any) -> Candle:
    """Parse one klines row.

    Format (positional):
        [open_time, open, high, low, close, volume, close_time,
         quote_volume, count, taker_base, taker_quote, ignore]
    """
    if not isinstance(row, (list, tuple)) or len(row) < 9:
        raise DecodeError(f"Malformed kline row: {row!r}")
    try:
        return Candle(
            open_time=int(row[0]),
            open=parse_float(row[1]),
            high=parse_float(row[2]),
            low=parse_float(row[3]),
            close=parse_float(row[4]),
            close_time=int(row[6]),
            count=int(row[8]),
        )
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed kline row {row!r}: {e}")


def parse_klines(payload: Any) -> list[Candle]:
    """Parse GET klines response, returned oldest first."""
    if not isinstance(payload, list):
        raise DecodeError(f"Expected a list of klines, got {type(payload).__name__}")
    candles = [parse_kline(row) for row in payload]
    candles.sort(key=lambda c: c.open_time)
    return candles


def parse_ticker_24hr(payload: Any) -> Ticker24h:
    """Parse GET ticker/24hr response for a single symbol."""
    try:
        return Ticker24h(
            symbol=_field(payload, "symbol"),
            price_change=parse_float(_field(payload, "priceChange")),
            price_change_percent=parse_float(_field(payload, "priceChangePercent")),
            last_price=parse_float(_field(payload, "lastPrice")),
            open_price=parse_float(_field(payload, "openPrice")),
            high_price=parse_float(_field(payload, "highPrice")),
            low_price=parse_float(_field(payload, "lowPrice")),
            volume=parse_float(_field(payload, "volume")),
            open_time=int(_field(payload, "openTime")),
            close_time=int(_field(payload, "closeTime")),
            count=int(_field(payload, "count")),
        )
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed 24hr ticker: {e}")


def parse_fill_price(payload: Any) -> Optional[float]:
    """Parse the first fill price of a FULL order response.

    Format:
        {"symbol": "ETHUSDT", "orderId": 28, "status": "FILLED", ...,
         "fills": [{"price": "1835.27", "qty": "0.01", ...}, ...]}

    Returns:
        Price of fills[0], or None when the order carries no fills.
    """
    if not isinstance(payload, dict):
        raise DecodeError(f"Expected a JSON object, got {type(payload).__name__}")
    fills = payload.get("fills")
    if not fills:
        return None
    if not isinstance(fills, list):
        raise DecodeError(f"Expected fills to be a list, got {type(fills).__name__}")
    return parse_price(_field(fills[0], "price"))


def parse_error_body(payload: Any) -> Optional[tuple[int, str]]:
    """Extract (code, msg) from a Binance error body, if it is one.

    Format:
        {"code": -1121, "msg": "Invalid symbol."}
    """
    if isinstance(payload, dict) and "code" in payload and "msg" in payload:
        try:
            return int(payload["code"]), str(payload["msg"])
        except (TypeError, ValueError):
            return None
    return None
