"""Operator notifications over Telegram.

Alerts (errors) are throttled per key so a runner stuck in a failure loop
sends at most one message per throttle window. Trade notices are not
throttled. Messages are sent from a daemon thread so the event loop never
blocks on the Telegram API.
"""

import logging
import threading
import traceback
from datetime import datetime, UTC, timedelta
from typing import Optional

from trendgrid.config import TelegramConfig

logger = logging.getLogger(__name__)

_DEFAULT_THROTTLE_SECONDS = 60


class Notifier:
    """Logs every message and forwards it to Telegram when configured.

    Without a Telegram config it is log-only.
    """

    def __init__(
        self,
        telegram_config: Optional[TelegramConfig] = None,
        throttle_seconds: int = _DEFAULT_THROTTLE_SECONDS,
    ):
        self._telegram_config = telegram_config
        self._throttle_seconds = throttle_seconds
        self._bot = None
        self._lock = threading.Lock()
        self._last_sent: dict[str, datetime] = {}

        if telegram_config:
            try:
                import telebot

                self._bot = telebot.TeleBot(telegram_config.bot_token)
                logger.info("Telegram notifier initialized")
            except ImportError:
                logger.warning(
                    "pyTelegramBotAPI not installed, Telegram alerts disabled. "
                    "Install with: pip install pyTelegramBotAPI"
                )
            except Exception as e:
                logger.warning(f"Failed to initialize Telegram bot: {e}")

    @property
    def enabled(self) -> bool:
        """Whether messages are forwarded to Telegram."""
        return self._bot is not None

    def alert(self, message: str, error_key: Optional[str] = None) -> None:
        """Log an error and forward it unless throttled.

        Args:
            message: Alert text.
            error_key: Throttle key (e.g. 'runner_ETH'). Defaults to the message.
        """
        logger.error(f"ALERT: {message}")

        if self._bot is None or self._throttled(error_key or message):
            return
        self._dispatch(message)

    def alert_exception(
        self, context: str, exc: BaseException, error_key: Optional[str] = None
    ) -> None:
        """Log an exception with traceback and alert a one-line summary."""
        tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
        logger.error(f"Exception in {context}: {exc}\n{''.join(tb)}")

        self.alert(f"Trendgrid: {context} - {type(exc).__name__}: {exc}", error_key=error_key or context)

    def notify(self, message: str) -> None:
        """Forward an informational message (e.g. a fill) without throttling."""
        logger.info(message)

        if self._bot is None:
            return
        self._dispatch(message)

    def _throttled(self, key: str) -> bool:
        now = datetime.now(UTC)
        with self._lock:
            last = self._last_sent.get(key)
            if last and (now - last) < timedelta(seconds=self._throttle_seconds):
                return True
            self._last_sent[key] = now
        return False

    def _dispatch(self, message: str) -> None:
        thread = threading.Thread(target=self._send_telegram, args=(message,), daemon=True)
        thread.start()

    def _send_telegram(self, message: str) -> None:
        """Send a message via Telegram (runs in background thread)."""
        try:
            self._bot.send_message(chat_id=self._telegram_config.chat_id, text=message)
        except Exception as e:
            logger.warning(f"Failed to send Telegram message: {e}")
