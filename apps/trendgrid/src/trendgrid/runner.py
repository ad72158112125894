"""Symbol runner that drives one GridEngine from a polling loop.

The runner is responsible for:
- Fetching the latest price for its symbol
- Feeding each price to the engine
- Pacing the loop (poll interval, trade cool-down, error back-off)
- Isolating recoverable failures so only invariant violations stop it
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from spotgrid import (
    Action,
    ApiError,
    GridEngine,
    GridError,
    InvariantViolation,
    MarketDataClient,
    RepricingDeferred,
    Symbol,
)

from trendgrid.config import RunnerConfig
from trendgrid.notifier import Notifier


logger = logging.getLogger(__name__)


class RunnerState(str, Enum):
    """Lifecycle state of a SymbolRunner."""

    RUNNING = "running"
    STOPPED = "stopped"


class SymbolRunner:
    """Runs the polling loop for a single symbol.

    Each runner owns its engine exclusively; runners for different symbols
    share only the (stateless) exchange clients.

    Example:
        engine = GridEngine(Symbol.ETH, coin, market=client, trade=client)
        runner = SymbolRunner(engine, market=client)
        await runner.run(shutdown_event)
    """

    def __init__(
        self,
        engine: GridEngine,
        market: MarketDataClient,
        config: Optional[RunnerConfig] = None,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize runner.

        Args:
            engine: Grid engine for this symbol.
            market: Client used to fetch the current price.
            config: Loop timing (defaults apply if None).
            notifier: Alert notifier (optional, log-only if None).
        """
        self._engine = engine
        self._market = market
        self._config = config or RunnerConfig()
        self._notifier = notifier or Notifier()
        self._state = RunnerState.STOPPED

        self.ticks = 0
        self.errors = 0
        self.trades = 0

    @property
    def symbol(self) -> Symbol:
        """Symbol driven by this runner."""
        return self._engine.symbol

    @property
    def engine(self) -> GridEngine:
        return self._engine

    @property
    def state(self) -> RunnerState:
        return self._state

    async def run(self, shutdown: asyncio.Event) -> None:
        """Tick until shutdown is requested.

        Raises:
            InvariantViolation: Grid state became invalid; the runner stops
                and the error propagates to the supervisor.
        """
        name = self.symbol.name
        self._state = RunnerState.RUNNING
        logger.info(f"{name}: Runner started (buy={self._engine.state.buy}, sell={self._engine.state.sell})")
        try:
            while not shutdown.is_set():
                await self.tick(shutdown)
        except InvariantViolation as e:
            self._notifier.alert(
                f"Trendgrid: {name} stopped on invariant violation: {e}",
                error_key=f"runner_{name}",
            )
            raise
        finally:
            self._state = RunnerState.STOPPED
            logger.info(
                f"{name}: Runner stopped (ticks={self.ticks}, trades={self.trades}, errors={self.errors})"
            )

    async def tick(self, shutdown: Optional[asyncio.Event] = None) -> Optional[Action]:
        """Run one iteration: fetch price, evaluate, then pace.

        Args:
            shutdown: Event that interrupts the trailing sleep when set.

        Returns:
            Action taken by the engine, or None if no price was available
            or the engine failed recoverably.
        """
        name = self.symbol.name
        self.ticks += 1

        try:
            price = await self._market.ticker_price(self.symbol)
        except ApiError as e:
            self.errors += 1
            logger.warning(f"{name}: Price fetch failed ({type(e).__name__}): {e}")
            await self._sleep(self._config.error_backoff, shutdown)
            return None

        try:
            action = await self._engine.evaluate(price)
        except RepricingDeferred as e:
            self.trades += 1
            self.errors += 1
            logger.warning(f"{name}: {e}")
            self._notifier.alert(f"Trendgrid: {name} {e}", error_key=f"reprice_{name}")
            await self._sleep(self._config.cooldown, shutdown)
            return e.action
        except InvariantViolation:
            self.errors += 1
            raise
        except GridError as e:
            self.errors += 1
            logger.error(f"{name}: Evaluation failed ({type(e).__name__}): {e}")
            return None

        if action is Action.HELD:
            await self._sleep(self._config.poll_interval, shutdown)
            return action

        self.trades += 1
        state = self._engine.state
        self._notifier.notify(
            f"Trendgrid: {name} {action.value} at {price}, "
            f"grid buy={state.buy:.8g} sell={state.sell:.8g}, open legs={len(state.history)}"
        )
        await self._sleep(self._config.cooldown, shutdown)
        return action

    @staticmethod
    async def _sleep(seconds: float, shutdown: Optional[asyncio.Event]) -> None:
        """Sleep, waking early if shutdown is set."""
        if seconds <= 0:
            # Still yield so other runners get a turn
            await asyncio.sleep(0)
            return
        if shutdown is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
