"""
Pure pricing functions for the grid.

No I/O happens here; the engine calls these between exchange round trips.
"""

from typing import Sequence

from spotgrid.errors import DecodeError, InvariantViolation
from spotgrid.models import Candle


def reprice(
    anchor_price: float,
    market_price: float,
    profit_ratio: float,
    double_throw_ratio: float,
) -> tuple[float, float]:
    """
    Compute a new (buy, sell) band around an anchor price.

    The band is widened to include the live market price so that neither
    threshold is immediately triggerable.

    Args:
        anchor_price: Price the band is centred on
        market_price: Latest market price
        profit_ratio: Fractional sell-side width
        double_throw_ratio: Fractional buy-side width

    Returns:
        Tuple (buy, sell)
    """
    buy = anchor_price * (1 - double_throw_ratio)
    sell = anchor_price * (1 + profit_ratio)
    if market_price <= buy:
        buy = market_price * (1 - double_throw_ratio)
    if market_price > sell:
        sell = market_price * (1 + profit_ratio)
    return buy, sell


def calc_volatility(candles: Sequence[Candle]) -> float:
    """
    Average of abs(high - open) / low over the given candles.

    Raises:
        DecodeError: If no candles were returned
        InvariantViolation: If a candle has a non-positive low
    """
    if not candles:
        raise DecodeError("No candles to compute volatility from")

    total = 0.0
    for candle in candles:
        if candle.low <= 0:
            raise InvariantViolation(
                f"Candle at {candle.open_time} has non-positive low {candle.low}"
            )
        total += abs(candle.high - candle.open) / candle.low
    return total / len(candles)


def calc_profit(entry_price: float, fill_price: float, quantity: float) -> float:
    """Realized profit of closing one leg: (fill - entry) * quantity."""
    return (fill_price - entry_price) * quantity
