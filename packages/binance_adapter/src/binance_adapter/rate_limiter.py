"""Per-key request rate limiting for the Binance spot REST API.

Binance enforces separate budgets for order placement and for general
(weighted) queries. This module keeps a sliding window per budget and an
exponential backoff that is armed whenever the exchange answers 429 or 418.

Reference: https://developers.binance.com/docs/binance-spot-api-docs/rest-api/limits
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Literal


RequestType = Literal["order", "query"]


@dataclass
class RateLimitConfig:
    """Configuration for Binance rate limits.

    Attributes:
        order_rate: Maximum order requests per window (default: 10)
        query_rate: Maximum query requests per window (default: 20)
        window_seconds: Sliding window size in seconds (default: 1.0)
        backoff_base: Base delay in seconds for exponential backoff (default: 1.0)
        max_backoff: Maximum backoff delay in seconds (default: 60.0)
    """

    order_rate: int = 10
    query_rate: int = 20
    window_seconds: float = 1.0
    backoff_base: float = 1.0
    max_backoff: float = 60.0


@dataclass
class RateLimiter:
    """Sliding-window limiter shared by every task using one API key.

    Timestamps come from time.monotonic(). acquire() is the only coroutine;
    the rest is synchronous bookkeeping and never suspends, so concurrent
    tasks on one event loop cannot interleave inside it.

    Example:
        limiter = RateLimiter()

        await limiter.acquire("order")
        response = await client.post(...)
        if response.status_code == 429:
            limiter.record_rate_limit_hit()
        else:
            limiter.record_success()
    """

    config: RateLimitConfig = field(default_factory=RateLimitConfig)
    _order_timestamps: deque = field(default_factory=deque, init=False)
    _query_timestamps: deque = field(default_factory=deque, init=False)
    _backoff_until: float = field(default=0.0, init=False)
    _consecutive_hits: int = field(default=0, init=False)

    async def acquire(self, request_type: RequestType = "query") -> None:
        """Wait until a request slot is free, then claim it."""
        wait = self.wait_time(request_type)
        while wait > 0:
            await asyncio.sleep(wait)
            wait = self.wait_time(request_type)
        self.record_request(request_type)

    def can_request(self, request_type: RequestType) -> bool:
        """Check if a request can be made right now."""
        return self.wait_time(request_type) == 0.0

    def record_request(self, request_type: RequestType) -> None:
        """Record a request timestamp."""
        self._get_timestamps(request_type).append(time.monotonic())

    def wait_time(self, request_type: RequestType) -> float:
        """Seconds to wait before the next request is allowed (0.0 if none)."""
        now = time.monotonic()

        if now < self._backoff_until:
            return self._backoff_until - now

        self._cleanup_old_timestamps(now)

        timestamps = self._get_timestamps(request_type)
        if len(timestamps) < self._get_limit(request_type):
            return 0.0

        return max(0.0, timestamps[0] + self.config.window_seconds - now)

    def record_rate_limit_hit(self) -> float:
        """Arm exponential backoff after a 429/418 answer.

        Returns:
            The backoff delay in seconds.
        """
        self._consecutive_hits += 1
        backoff = min(
            self.config.backoff_base * (2 ** (self._consecutive_hits - 1)),
            self.config.max_backoff,
        )
        self._backoff_until = time.monotonic() + backoff
        return backoff

    def record_success(self) -> None:
        """Reset the consecutive hit counter after a normal answer."""
        self._consecutive_hits = 0

    def get_backoff_remaining(self) -> float:
        return max(0.0, self._backoff_until - time.monotonic())

    def get_available_capacity(self, request_type: RequestType) -> int:
        """Number of requests that can be made immediately."""
        now = time.monotonic()
        if now < self._backoff_until:
            return 0
        self._cleanup_old_timestamps(now)
        return max(0, self._get_limit(request_type) - len(self._get_timestamps(request_type)))

    def reset(self) -> None:
        self._order_timestamps.clear()
        self._query_timestamps.clear()
        self._backoff_until = 0.0
        self._consecutive_hits = 0

    def _cleanup_old_timestamps(self, now: float) -> None:
        window_start = now - self.config.window_seconds
        for timestamps in (self._order_timestamps, self._query_timestamps):
            while timestamps and timestamps[0] <= window_start:
                timestamps.popleft()

    def _get_timestamps(self, request_type: RequestType) -> deque:
        if request_type == "order":
            return self._order_timestamps
        return self._query_timestamps

    def _get_limit(self, request_type: RequestType) -> int:
        if request_type == "order":
            return self.config.order_rate
        return self.config.query_rate
