"""Supervisor for multi-symbol coordination.

The supervisor is the top-level component of trendgrid. It:
- Verifies exchange connectivity once at startup
- Creates one GridEngine and SymbolRunner per configured coin
- Runs every runner as an independent asyncio task
- Collects runner failures without letting them affect other symbols
- Stops all runners on shutdown
"""

import asyncio
import logging
from typing import Optional

from spotgrid import (
    ApiError,
    ConnectivityError,
    GridEngine,
    MarketDataClient,
    Symbol,
    TradeClient,
)

from trendgrid.config import TrendgridConfig
from trendgrid.notifier import Notifier
from trendgrid.runner import SymbolRunner


logger = logging.getLogger(__name__)


class Supervisor:
    """Coordinates one runner per configured symbol.

    Example:
        config = load_config("conf/trendgrid.yaml")
        client = BinanceRestClient(api_key=..., api_secret=...)

        supervisor = Supervisor(config, market=client, trade=client)
        await supervisor.start()
        await supervisor.wait()
        await supervisor.stop()
    """

    def __init__(
        self,
        config: TrendgridConfig,
        market: MarketDataClient,
        trade: TradeClient,
        notifier: Optional[Notifier] = None,
    ):
        """Initialize supervisor.

        Args:
            config: Trendgrid configuration.
            market: Market data client shared by all runners.
            trade: Trade client shared by all runners.
            notifier: Alert notifier (optional, log-only if None).
        """
        self._config = config
        self._market = market
        self._trade = trade
        self._notifier = notifier or Notifier()

        self._runners: dict[Symbol, SymbolRunner] = {}
        self._tasks: dict[Symbol, asyncio.Task] = {}
        self._shutdown_event = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        """Whether supervisor is running."""
        return self._running

    @property
    def runners(self) -> dict[Symbol, SymbolRunner]:
        """Runners keyed by symbol."""
        return dict(self._runners)

    async def start(self) -> None:
        """Check connectivity and spawn one runner task per coin.

        Raises:
            ConnectivityError: The exchange did not answer the startup ping.
                No runner is created in that case.
        """
        if self._running:
            return

        logger.info("Starting supervisor")
        await self._check_connectivity()

        coins = self._config.get_coins()
        if not coins:
            logger.warning("No coins configured, nothing to run")

        runner_config = self._config.runner
        for symbol, coin in coins.items():
            engine = GridEngine(
                symbol,
                coin,
                market=self._market,
                trade=self._trade,
                kline_interval=runner_config.kline_interval,
                kline_limit=runner_config.kline_limit,
            )
            runner = SymbolRunner(engine, self._market, config=runner_config, notifier=self._notifier)
            self._runners[symbol] = runner
            self._tasks[symbol] = asyncio.create_task(
                runner.run(self._shutdown_event), name=f"runner-{symbol.name}"
            )
            logger.info(
                f"Initialized runner: {symbol.name} ({symbol.pair}, qty={coin.quantity}, "
                f"buy={coin.buy_price}, sell={coin.sell_price})"
            )

        self._running = True
        logger.info(f"Supervisor started with {len(self._runners)} runners")

    async def wait(self) -> None:
        """Wait for every runner to finish.

        A runner that terminates with an error is logged and alerted; the
        error is never propagated, and the other runners keep going.
        """
        if not self._tasks:
            return

        symbols = list(self._tasks)
        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        for symbol, result in zip(symbols, results):
            if isinstance(result, asyncio.CancelledError):
                logger.info(f"{symbol.name}: Runner cancelled")
            elif isinstance(result, BaseException):
                self._notifier.alert_exception(
                    f"runner {symbol.name}", result, error_key=f"runner_{symbol.name}"
                )

    async def stop(self) -> None:
        """Signal shutdown and wait for runners, cancelling stragglers."""
        if not self._running:
            return

        logger.info("Stopping supervisor")
        self._running = False
        self._shutdown_event.set()

        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            _, still_running = await asyncio.wait(
                pending, timeout=self._config.runner.shutdown_timeout
            )
            for task in still_running:
                logger.warning(f"{task.get_name()}: Did not stop in time, cancelling")
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)

        logger.info("Supervisor stopped")

    def request_shutdown(self) -> None:
        """Ask all runners to stop after their current tick."""
        self._shutdown_event.set()

    async def _check_connectivity(self) -> None:
        try:
            ok = await self._market.ping()
        except ApiError as e:
            raise ConnectivityError(f"Exchange ping failed: {e}") from e
        if not ok:
            raise ConnectivityError("Exchange ping returned an empty response")
        logger.info("Exchange connectivity OK")
