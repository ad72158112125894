"""Tests for pure pricing functions."""

import pytest

from spotgrid.errors import DecodeError, InvariantViolation
from spotgrid.pricing import calc_profit, calc_volatility, reprice


class TestReprice:
    """Test band computation around an anchor."""

    def test_market_at_anchor(self):
        """Market at the anchor leaves the computed band as is."""
        buy, sell = reprice(100.0, 100.0, profit_ratio=0.03, double_throw_ratio=0.02)
        assert buy == pytest.approx(98.0)
        assert sell == pytest.approx(103.0)

    def test_market_below_buy_overrides_buy(self):
        """Market under the computed buy pushes buy below the market."""
        buy, sell = reprice(100.0, 95.0, profit_ratio=0.03, double_throw_ratio=0.02)
        assert buy == pytest.approx(93.1)  # 95 * (1 - 0.02)
        assert sell == pytest.approx(103.0)

    def test_market_above_sell_overrides_sell(self):
        """Market over the computed sell pushes sell above the market."""
        buy, sell = reprice(100.0, 110.0, profit_ratio=0.03, double_throw_ratio=0.02)
        assert buy == pytest.approx(98.0)
        assert sell == pytest.approx(113.3)  # 110 * (1 + 0.03)

    def test_market_exactly_on_buy_overrides(self):
        """Market equal to the computed buy counts as crossing it."""
        buy, _ = reprice(100.0, 98.0, profit_ratio=0.03, double_throw_ratio=0.02)
        assert buy == pytest.approx(98.0 * 0.98)

    def test_market_exactly_on_sell_keeps_sell(self):
        """Sell is only overridden when market is strictly above it."""
        _, sell = reprice(100.0, 103.0, profit_ratio=0.03, double_throw_ratio=0.02)
        assert sell == pytest.approx(103.0)

    @pytest.mark.parametrize("market", [50.0, 98.0, 100.0, 103.0, 150.0])
    def test_band_straddles_market(self, market):
        """Neither threshold is immediately triggerable after re-pricing."""
        buy, sell = reprice(100.0, market, profit_ratio=0.03, double_throw_ratio=0.02)
        assert buy < market <= sell


class TestCalcVolatility:
    """Test volatility ratio from candles."""

    def test_average_of_two_candles(self, make_candle):
        """avg(|11-10|/9, |19-20|/18)."""
        candles = [make_candle(10.0, 11.0, 9.0), make_candle(20.0, 19.0, 18.0)]
        result = calc_volatility(candles)
        assert result == pytest.approx((1 / 9 + 1 / 18) / 2)
        assert result == pytest.approx(0.0833, abs=1e-4)

    def test_single_candle(self, make_candle):
        assert calc_volatility([make_candle(100.0, 102.0, 100.0)]) == pytest.approx(0.02)

    def test_flat_candles(self, make_candle):
        """Candles that never trade above their open give zero."""
        assert calc_volatility([make_candle(10.0, 10.0, 9.0)]) == 0.0

    def test_empty_raises_decode_error(self):
        with pytest.raises(DecodeError):
            calc_volatility([])

    def test_zero_low_is_invariant_violation(self, make_candle):
        with pytest.raises(InvariantViolation):
            calc_volatility([make_candle(10.0, 11.0, 0.0)])


class TestCalcProfit:
    """Test realized profit of one leg."""

    def test_profit(self):
        assert calc_profit(100.0, 110.0, 2.0) == 20.0

    def test_loss(self):
        assert calc_profit(100.0, 95.0, 2.0) == -10.0

    def test_breakeven(self):
        assert calc_profit(100.0, 100.0, 2.0) == 0.0
