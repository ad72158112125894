"""
Error taxonomy for the grid trading agent.

Tick-local errors (ApiError and its subclasses) are recoverable: the runner
logs them and moves on to the next tick. ConnectivityError is fatal at
startup only, and InvariantViolation is fatal to the runner that raised it.
"""

from typing import Optional


class GridError(Exception):
    """Base class for all grid trading errors."""


class ConfigError(GridError, ValueError):
    """Invalid or missing coin/exchange parameters."""


class ConnectivityError(GridError):
    """Exchange could not be reached during the startup ping."""


class ApiError(GridError):
    """Any failure of an exchange API call. Recoverable, tick-local."""


class NetworkError(ApiError):
    """Connection failure or timeout talking to the exchange."""


class DecodeError(ApiError):
    """Exchange response could not be decoded into the expected shape."""


class ExchangeRejected(ApiError):
    """The exchange answered with an error code.

    Attributes:
        code: Exchange error code (Binance `code`, or the HTTP status when the
            body carries none).
        message: Exchange error message.
    """

    def __init__(self, code: int, message: str):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message


class InvariantViolation(GridError):
    """Grid state would break one of its invariants (e.g. a crossed band)."""


class RepricingDeferred(GridError):
    """A trade completed but the follow-up volatility recompute failed.

    The fill is already recorded; only the re-pricing was skipped.

    Attributes:
        action: The action that completed (bought or sold).
        cause: The error raised while fetching or averaging candles.
    """

    def __init__(self, action, cause: Optional[Exception] = None):
        super().__init__(f"{action.value} completed, re-pricing deferred: {cause}")
        self.action = action
        self.cause = cause
