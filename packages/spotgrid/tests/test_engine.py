"""
Unit tests for GridEngine module.

Tests the buy/sell/hold decision rule, re-pricing after fills and the
all-or-nothing state update around trade calls.
"""

import copy
import logging

import pytest

from spotgrid.engine import GridEngine
from spotgrid.errors import (
    DecodeError,
    ExchangeRejected,
    InvariantViolation,
    NetworkError,
    RepricingDeferred,
)
from spotgrid.models import Action, Interval, Symbol


class TestGridEngineBasic:
    """Basic engine functionality tests."""

    def test_engine_initialization(self, engine, coin):
        """Engine starts flat with thresholds from config."""
        assert engine.symbol is Symbol.ETH
        assert engine.state.buy == coin.buy_price
        assert engine.state.sell == coin.sell_price
        assert engine.is_air() is True
        assert engine.kline_interval is Interval.HOUR_1
        assert engine.kline_limit == 24

    def test_invalid_kline_limit(self, coin, market, trade):
        with pytest.raises(ValueError):
            GridEngine(Symbol.ETH, coin, market, trade, kline_limit=0)

    @pytest.mark.asyncio
    async def test_held_inside_band(self, engine, trade, market):
        """Price between buy and sell does nothing."""
        before = copy.deepcopy(engine.state)

        action = await engine.evaluate(101.0)

        assert action == Action.HELD
        assert engine.state == before
        trade.buy.assert_not_awaited()
        trade.sell.assert_not_awaited()
        market.k_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_held_exactly_on_sell(self, engine, trade):
        """Sell triggers only strictly above the threshold."""
        action = await engine.evaluate(103.0)

        assert action == Action.HELD
        trade.sell.assert_not_awaited()


class TestGridEngineBuy:
    """Buy leg tests."""

    @pytest.mark.asyncio
    async def test_buy_below_threshold(self, engine, trade, market):
        """Fill is recorded and band re-anchored at the market price."""
        trade.buy.return_value = 99.1

        action = await engine.evaluate(99.0)

        assert action == Action.BOUGHT
        trade.buy.assert_awaited_once_with(Symbol.ETH, 2.0)
        market.k_lines.assert_awaited_once_with(Symbol.ETH, Interval.HOUR_1, 24)
        assert engine.state.history == [99.1]
        assert engine.state.profit_ratio == pytest.approx(0.02)
        assert engine.state.double_throw_ratio == pytest.approx(0.02)
        assert engine.state.buy == pytest.approx(99.0 * 0.98)
        assert engine.state.sell == pytest.approx(99.0 * 1.02)

    @pytest.mark.asyncio
    async def test_buy_exactly_on_threshold(self, engine, trade):
        trade.buy.return_value = 100.0

        action = await engine.evaluate(100.0)

        assert action == Action.BOUGHT
        assert engine.state.history == [100.0]

    @pytest.mark.asyncio
    async def test_consecutive_buys_stack_legs(self, engine, trade):
        """Each buy pushes one more leg."""
        trade.buy.side_effect = [99.0, 96.0]

        await engine.evaluate(99.0)
        await engine.evaluate(96.0)

        assert engine.state.history == [99.0, 96.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        NetworkError("timeout"),
        DecodeError("bad json"),
        ExchangeRejected(-2010, "Account has insufficient balance"),
    ])
    async def test_buy_failure_leaves_state_unchanged(self, engine, trade, market, error):
        trade.buy.side_effect = error
        before = copy.deepcopy(engine.state)

        action = await engine.evaluate(99.0)

        assert action == Action.HELD
        assert engine.state == before
        market.k_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejection_logged_with_code(self, engine, trade, caplog):
        trade.buy.side_effect = ExchangeRejected(-2010, "Account has insufficient balance")

        with caplog.at_level(logging.WARNING, logger="spotgrid.engine"):
            await engine.evaluate(99.0)

        assert "-2010" in caplog.text
        assert "insufficient balance" in caplog.text

    @pytest.mark.asyncio
    async def test_buy_without_fill_is_noop(self, engine, trade, market, caplog):
        trade.buy.return_value = None
        before = copy.deepcopy(engine.state)

        with caplog.at_level(logging.WARNING, logger="spotgrid.engine"):
            action = await engine.evaluate(99.0)

        assert action == Action.HELD
        assert engine.state == before
        assert "without fill" in caplog.text
        market.k_lines.assert_not_awaited()


class TestGridEngineSell:
    """Sell leg and drift tests."""

    @pytest.mark.asyncio
    async def test_flat_above_sell_drifts(self, engine, trade):
        """No position: thresholds move up without a trade."""
        action = await engine.evaluate(110.0)

        assert action == Action.HELD
        trade.sell.assert_not_awaited()
        # Anchored at old sell 103 with the configured ratios
        assert engine.state.buy == pytest.approx(103.0 * 0.98)
        # Market 110 is above 103 * 1.03, so sell follows the market
        assert engine.state.sell == pytest.approx(110.0 * 1.03)
        assert engine.state.profit_ratio == 0.03
        assert engine.state.double_throw_ratio == 0.02

    @pytest.mark.asyncio
    async def test_flat_drift_just_above_sell(self, engine):
        await engine.evaluate(104.0)

        assert engine.state.buy == pytest.approx(100.94)
        assert engine.state.sell == pytest.approx(106.09)

    @pytest.mark.asyncio
    async def test_sell_open_leg(self, engine, trade, market):
        """Fill closes the top leg and re-anchors at its entry price."""
        engine.state.history.append(99.0)
        trade.sell.return_value = 104.5

        action = await engine.evaluate(104.0)

        assert action == Action.SOLD
        trade.sell.assert_awaited_once_with(Symbol.ETH, 2.0)
        market.k_lines.assert_awaited_once()
        assert engine.state.history == []
        assert engine.state.buy == pytest.approx(99.0 * 0.98)
        # 104 is above 99 * 1.02, so sell follows the market
        assert engine.state.sell == pytest.approx(104.0 * 1.02)

    @pytest.mark.asyncio
    async def test_sell_logs_profit(self, engine, trade, caplog):
        engine.state.history.append(100.0)
        engine.state.sell = 105.0
        trade.sell.return_value = 110.0

        with caplog.at_level(logging.INFO, logger="spotgrid.engine"):
            await engine.evaluate(110.0)

        assert "profit=20.00000000" in caplog.text

    @pytest.mark.asyncio
    async def test_sell_is_lifo(self, engine, trade):
        engine.state.history.extend([95.0, 99.0])
        trade.sell.return_value = 104.0

        await engine.evaluate(104.0)

        assert engine.state.history == [95.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        NetworkError("connection reset"),
        ExchangeRejected(-1013, "Filter failure: LOT_SIZE"),
    ])
    async def test_sell_failure_restores_leg(self, engine, trade, market, error):
        engine.state.history.extend([95.0, 99.0])
        trade.sell.side_effect = error
        before = copy.deepcopy(engine.state)

        action = await engine.evaluate(104.0)

        assert action == Action.HELD
        assert engine.state == before
        market.k_lines.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sell_without_fill_is_noop(self, engine, trade):
        engine.state.history.append(99.0)
        trade.sell.return_value = None
        before = copy.deepcopy(engine.state)

        action = await engine.evaluate(104.0)

        assert action == Action.HELD
        assert engine.state == before


class TestGridEngineVolatility:
    """Volatility recompute after fills."""

    @pytest.mark.asyncio
    async def test_candle_fetch_failure_keeps_fill(self, engine, trade, market):
        """Trade effect is kept, re-pricing is skipped."""
        trade.buy.return_value = 99.0
        market.k_lines.side_effect = NetworkError("timeout")

        with pytest.raises(RepricingDeferred) as exc_info:
            await engine.evaluate(99.0)

        assert exc_info.value.action == Action.BOUGHT
        assert isinstance(exc_info.value.cause, NetworkError)
        assert engine.state.history == [99.0]
        assert engine.state.buy == 100.0
        assert engine.state.sell == 103.0
        assert engine.state.profit_ratio == 0.03
        assert engine.state.double_throw_ratio == 0.02

    @pytest.mark.asyncio
    async def test_empty_candles_defer_repricing(self, engine, trade, market):
        engine.state.history.append(99.0)
        trade.sell.return_value = 104.0
        market.k_lines.return_value = []

        with pytest.raises(RepricingDeferred) as exc_info:
            await engine.evaluate(104.0)

        assert exc_info.value.action == Action.SOLD
        assert isinstance(exc_info.value.cause, DecodeError)
        assert engine.state.history == []

    @pytest.mark.asyncio
    async def test_ratio_out_of_range_defers(self, engine, trade, market, make_candle):
        """The leg is kept and the runner is not stopped."""
        trade.buy.return_value = 99.0
        market.k_lines.return_value = [make_candle(1.0, 3.0, 1.0)]

        with pytest.raises(RepricingDeferred) as exc_info:
            await engine.evaluate(99.0)

        assert exc_info.value.action == Action.BOUGHT
        assert isinstance(exc_info.value.cause, InvariantViolation)
        assert engine.state.history == [99.0]
        assert engine.state.buy == 100.0
        assert engine.state.sell == 103.0

    @pytest.mark.asyncio
    async def test_zero_volatility_defers(self, engine, trade, market, make_candle):
        """A zero ratio would collapse buy onto sell; the fill is kept."""
        trade.buy.return_value = 99.0
        market.k_lines.return_value = [make_candle(10.0, 10.0, 9.0)]

        with pytest.raises(RepricingDeferred) as exc_info:
            await engine.evaluate(99.0)

        assert "crosses" in str(exc_info.value.cause)
        assert engine.state.history == [99.0]
        assert engine.state.buy == 100.0
        assert engine.state.sell == 103.0
        assert engine.state.profit_ratio == 0.03

    @pytest.mark.asyncio
    async def test_non_positive_low_defers(self, engine, trade, market, make_candle):
        engine.state.history.append(99.0)
        trade.sell.return_value = 104.0
        market.k_lines.return_value = [make_candle(1.0, 2.0, 0.0)]

        with pytest.raises(RepricingDeferred) as exc_info:
            await engine.evaluate(104.0)

        assert exc_info.value.action == Action.SOLD
        assert engine.state.history == []
        assert engine.state.sell == 103.0

    @pytest.mark.asyncio
    async def test_leg_sold_after_deferred_repricing(self, engine, trade, market, make_candle):
        """After a deferred buy the old band still applies and the leg can be sold."""
        trade.buy.return_value = 99.0
        market.k_lines.return_value = [make_candle(10.0, 10.0, 9.0)]
        with pytest.raises(RepricingDeferred):
            await engine.evaluate(99.0)

        trade.sell.return_value = 104.0
        market.k_lines.return_value = [make_candle(100.0, 102.0, 100.0)]
        action = await engine.evaluate(104.0)

        assert action == Action.SOLD
        assert engine.is_air()


class TestGridEngineInputGuards:
    """Bad prices and inconsistent state."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", [0.0, -1.0])
    async def test_non_positive_price_rejected(self, engine, trade, price):
        before = copy.deepcopy(engine.state)

        with pytest.raises(DecodeError, match="non-positive"):
            await engine.evaluate(price)

        trade.buy.assert_not_awaited()
        assert engine.state == before

    @pytest.mark.asyncio
    async def test_sell_with_empty_stack(self, engine, trade):
        """Selling with no open leg is an invariant violation, not an IndexError."""
        with pytest.raises(InvariantViolation, match="no open position"):
            await engine._sell(104.0)

        trade.sell.assert_not_awaited()


class TestGridEngineScenario:
    """Multi-tick scenarios."""

    @pytest.mark.asyncio
    async def test_buy_then_sell(self, engine, trade):
        """Prices [101, 99, 105] against buy=100 sell=103."""
        trade.buy.side_effect = lambda symbol, qty: 99.0
        trade.sell.side_effect = lambda symbol, qty: 105.0

        assert await engine.evaluate(101.0) == Action.HELD

        assert await engine.evaluate(99.0) == Action.BOUGHT
        assert engine.state.history == [99.0]
        # Fresh ratio 0.02 from candles, anchored at 99
        assert engine.state.buy == pytest.approx(97.02)
        assert engine.state.sell == pytest.approx(100.98)

        # 105 > 100.98, so the leg is sold
        assert await engine.evaluate(105.0) == Action.SOLD
        assert engine.state.history == []
        assert engine.state.buy == pytest.approx(97.02)
        assert engine.state.sell == pytest.approx(107.1)

    @pytest.mark.asyncio
    async def test_band_never_crosses(self, engine, trade):
        """sell > buy and is_air() <=> empty history after every tick."""
        trade.buy.side_effect = lambda symbol, qty: prices[i]
        trade.sell.side_effect = lambda symbol, qty: prices[i]
        prices = [101.0, 99.0, 97.0, 94.0, 96.0, 100.0, 104.0, 109.0, 120.0, 90.0, 85.0, 130.0]

        for i in range(len(prices)):
            await engine.evaluate(prices[i])
            assert engine.state.sell > engine.state.buy
            assert engine.is_air() == (len(engine.state.history) == 0)
