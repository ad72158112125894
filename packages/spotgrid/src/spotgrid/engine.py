"""
Grid trading decision engine.

One GridEngine per symbol. Each call to evaluate() looks at a single price
observation and decides to buy, sell or hold. Grid state is mutated only after
the exchange confirms a fill, so a failed trade leaves the state exactly as it
was before the call.
"""

import logging
from typing import Optional

from spotgrid.clients import MarketDataClient, TradeClient
from spotgrid.errors import ApiError, DecodeError, ExchangeRejected, InvariantViolation, RepricingDeferred
from spotgrid.models import Action, CoinConfig, GridState, Interval, Symbol
from spotgrid.pricing import calc_profit, calc_volatility, reprice

logger = logging.getLogger(__name__)

DEFAULT_KLINE_INTERVAL = Interval.HOUR_1
DEFAULT_KLINE_LIMIT = 24


class GridEngine:
    """
    Per-symbol grid engine.

    Owns the GridState exclusively. Not safe for concurrent evaluate() calls;
    the runner drives it strictly sequentially.
    """

    def __init__(self, symbol: Symbol, coin: CoinConfig,
                 market: MarketDataClient, trade: TradeClient,
                 kline_interval: Interval = DEFAULT_KLINE_INTERVAL,
                 kline_limit: int = DEFAULT_KLINE_LIMIT):
        """
        Initialize grid engine.

        Args:
            symbol: Coin traded by this engine
            coin: Initial thresholds, ratios and order size
            market: Market data client, used for candles after each fill
            trade: Trade client for market orders
            kline_interval: Candle interval for the volatility window
            kline_limit: Number of candles in the volatility window
        """
        if kline_limit <= 0:
            raise ValueError(f"kline_limit must be positive, got {kline_limit}")
        self.symbol = symbol
        self.market = market
        self.trade = trade
        self.kline_interval = kline_interval
        self.kline_limit = kline_limit
        self.state = GridState.from_coin(coin)

    def is_air(self) -> bool:
        """True when there is no open leg to sell."""
        return self.state.is_air()

    async def evaluate(self, price: float) -> Action:
        """
        Evaluate one price observation.

        Args:
            price: Latest market price

        Returns:
            Action taken (BOUGHT, SOLD or HELD)

        Raises:
            DecodeError: Price is not positive; nothing is traded
            RepricingDeferred: Trade succeeded but no valid new band could be
                computed; the fill is recorded and thresholds are left as they were
            InvariantViolation: Grid state is inconsistent (drift would cross
                the band, or a sell was attempted with no open leg)
        """
        if not price > 0:
            raise DecodeError(f"{self.symbol.name}: refusing non-positive price {price}")

        state = self.state

        if price <= state.buy:
            return await self._buy(price)

        if price > state.sell:
            if state.is_air():
                self._drift(price)
                return Action.HELD
            return await self._sell(price)

        logger.debug('%s: Held at %s (buy=%s sell=%s)', self.symbol.name, price, state.buy, state.sell)
        return Action.HELD

    async def _buy(self, price: float) -> Action:
        state = self.state
        try:
            fill = await self.trade.buy(self.symbol, state.quantity)
        except ApiError as e:
            self._log_trade_failure('buy', e)
            return Action.HELD

        if fill is None:
            logger.warning('%s: Buy accepted without fill information, state unchanged', self.symbol.name)
            return Action.HELD

        state.history.append(fill)
        logger.info('%s: Bought %s at %s (market %s), open legs=%d',
                    self.symbol.name, state.quantity, fill, price, len(state.history))

        await self._reprice_after_fill(Action.BOUGHT, anchor_price=price, market_price=price)
        return Action.BOUGHT

    async def _sell(self, price: float) -> Action:
        state = self.state
        if not state.history:
            raise InvariantViolation(f"{self.symbol.name}: sell requested with no open position")
        # Peek only: the leg is removed once the exchange reports a fill
        entry = state.history[-1]
        try:
            fill = await self.trade.sell(self.symbol, state.quantity)
        except ApiError as e:
            self._log_trade_failure('sell', e)
            return Action.HELD

        if fill is None:
            logger.warning('%s: Sell accepted without fill information, state unchanged', self.symbol.name)
            return Action.HELD

        state.history.pop()

        profit = calc_profit(entry, fill, state.quantity)
        logger.info('%s: Sold %s at %s (entry %s), profit=%.8f, open legs=%d',
                    self.symbol.name, state.quantity, fill, entry, profit, len(state.history))

        await self._reprice_after_fill(Action.SOLD, anchor_price=entry, market_price=price)
        return Action.SOLD

    def _drift(self, price: float) -> None:
        """Move a flat grid up behind the market without trading."""
        self._apply(anchor_price=self.state.sell, market_price=price)
        logger.info('%s: Flat above sell, drifted grid to buy=%s sell=%s',
                    self.symbol.name, self.state.buy, self.state.sell)

    async def _reprice_after_fill(self, action: Action, anchor_price: float, market_price: float) -> None:
        """Recompute volatility and re-price; any failure keeps the fill and defers."""
        ratio = await self._recompute_ratio(action)
        try:
            self._apply(anchor_price=anchor_price, market_price=market_price, ratio=ratio)
        except InvariantViolation as e:
            logger.warning('%s: Re-pricing after %s rejected: %s', self.symbol.name, action.value, e)
            raise RepricingDeferred(action, e) from e

    async def _recompute_ratio(self, action: Action) -> float:
        """Fetch recent candles and return the new ratio for both sides."""
        try:
            candles = await self.market.k_lines(self.symbol, self.kline_interval, self.kline_limit)
            ratio = calc_volatility(candles)
        except (ApiError, InvariantViolation) as e:
            logger.warning('%s: Volatility recompute failed after %s: %s',
                           self.symbol.name, action.value, e)
            raise RepricingDeferred(action, e) from e

        if not (0 <= ratio < 1):
            cause = InvariantViolation(f"{self.symbol.name}: volatility ratio {ratio} outside [0, 1)")
            logger.warning('%s: %s after %s', self.symbol.name, cause, action.value)
            raise RepricingDeferred(action, cause)
        return ratio

    def _apply(self, anchor_price: float, market_price: float, ratio: Optional[float] = None) -> None:
        """
        Re-price the grid and commit the new band.

        Args:
            anchor_price: Price the new band is centred on
            market_price: Latest market price
            ratio: New value for both ratios, or None to keep the current ones
        """
        state = self.state
        profit_ratio = state.profit_ratio if ratio is None else ratio
        double_throw_ratio = state.double_throw_ratio if ratio is None else ratio

        buy, sell = reprice(anchor_price, market_price, profit_ratio, double_throw_ratio)
        if not sell > buy:
            raise InvariantViolation(
                f"{self.symbol.name}: re-pricing at anchor {anchor_price} crosses the grid (buy={buy} sell={sell})"
            )

        state.profit_ratio = profit_ratio
        state.double_throw_ratio = double_throw_ratio
        state.buy = buy
        state.sell = sell
        logger.debug('%s: Re-priced at anchor %s: buy=%s sell=%s ratio=%s/%s',
                     self.symbol.name, anchor_price, buy, sell, profit_ratio, double_throw_ratio)

    def _log_trade_failure(self, side: str, error: ApiError) -> None:
        if isinstance(error, ExchangeRejected):
            logger.warning('%s: %s rejected by exchange [%s] %s, state unchanged',
                           self.symbol.name, side, error.code, error.message)
        else:
            logger.warning('%s: %s failed (%s): %s, state unchanged',
                           self.symbol.name, side, type(error).__name__, error)
