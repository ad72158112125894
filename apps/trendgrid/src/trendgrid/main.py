"""Main entry point for trendgrid.

Usage:
    python -m trendgrid.main
    python -m trendgrid.main --config path/to/config.yaml
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from binance_adapter import BinanceRestClient
from spotgrid import ConfigError, ConnectivityError

from trendgrid.config import LogConfig, RotationType, load_config
from trendgrid.notifier import Notifier
from trendgrid.supervisor import Supervisor


_CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ROTATION_WHEN = {
    RotationType.HOURLY: "H",
    RotationType.DAILY: "midnight",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record):
        log_dict = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict)


def _file_handler(path: str, rotation: RotationType) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    when = _ROTATION_WHEN.get(rotation)
    if when is None:
        return logging.FileHandler(path)
    return TimedRotatingFileHandler(path, when=when, backupCount=0)


def setup_logging(log_config: Optional[LogConfig] = None, json_file: Optional[str] = None) -> None:
    """Set up logging with console output and optional file output.

    Args:
        log_config: Level and log file settings (defaults apply if None).
        json_file: Extra JSON log file, independent of log_config (optional).
    """
    log_config = log_config or LogConfig()
    level = logging.getLevelNamesMapping()[log_config.level]

    # Console handler (human-readable)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_config.enable_log_file:
        try:
            file_handler = _file_handler(log_config.path, log_config.rotation)
            file_handler.setLevel(level)
            if log_config.json_format:
                file_handler.setFormatter(JsonFormatter())
            else:
                file_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.warning(f"Failed to set up log file {log_config.path}: {e}")

    if json_file:
        try:
            json_handler = logging.FileHandler(json_file)
            json_handler.setLevel(logging.DEBUG)
            json_handler.setFormatter(JsonFormatter())
            root_logger.addHandler(json_handler)
        except OSError as e:
            logging.warning(f"Failed to set up JSON logging: {e}")

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def main(config_path: Optional[str] = None) -> int:
    """Main async entry point.

    Args:
        config_path: Path to configuration file.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    # Load configuration
    try:
        config = load_config(config_path)
        logger.info(f"Loaded configuration with {len(config.coins)} coins")
    except FileNotFoundError as e:
        logger.error(f"Configuration file not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    market = config.market
    try:
        client = BinanceRestClient(
            api_key=market.api_key,
            api_secret=market.api_secret,
            base_url=market.url,
            market_url=market.market_url,
            proxy=market.proxy,
            timeout=market.timeout,
            recv_window=market.recv_window,
        )
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    # Create notifier
    telegram_config = None
    if config.notification and config.notification.telegram:
        telegram_config = config.notification.telegram
    notifier = Notifier(telegram_config)

    supervisor = Supervisor(config, market=client, trade=client, notifier=notifier)

    # Set up signal handlers
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}, initiating shutdown")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        try:
            await supervisor.start()
        except ConnectivityError as e:
            notifier.alert(f"Trendgrid: startup failed - {e}", error_key="connectivity")
            return 1
        logger.info("Trendgrid started successfully")

        # Run until every runner is done or a shutdown signal arrives
        wait_task = asyncio.create_task(supervisor.wait())
        shutdown_task = asyncio.create_task(shutdown_event.wait())
        await asyncio.wait({wait_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
        shutdown_task.cancel()
        await asyncio.gather(shutdown_task, return_exceptions=True)

        await supervisor.stop()
        await wait_task

    finally:
        logger.info("Shutting down trendgrid")
        await supervisor.stop()
        await client.aclose()

    logger.info("Trendgrid stopped")
    return 0


def cli() -> None:
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Trendgrid - volatility-adjusted spot grid trading agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to configuration file (default: conf/trendgrid.yaml)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Path to JSON log file (optional)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    # Logging settings live in the config file; fall back to defaults so
    # config errors are still reported on the console.
    log_config = None
    try:
        log_config = load_config(args.config).log
    except (FileNotFoundError, ValueError):
        pass
    setup_logging(log_config, json_file=args.log_file)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        for handler in logging.getLogger().handlers:
            handler.setLevel(logging.DEBUG)

    # Run main
    try:
        exit_code = asyncio.run(main(args.config))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
