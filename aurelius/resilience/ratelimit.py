"""
Client-side rate limiting for vendor APIs.

Each provider in the catalogue declares a budget of `requests` per
`window` seconds. The limiter keeps a sliding window of call timestamps
per key (usually "provider:user_id") and refuses calls beyond the budget.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a local rate limit rejects a call."""

    def __init__(
        self,
        key: str,
        limit: int,
        window: float,
        retry_after: float | None = None,
    ):
        self.key = key
        self.limit = limit
        self.window = window
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for key '{key}': "
            f"{limit} requests per {window}s"
            + (f", retry after {retry_after:.2f}s" if retry_after else "")
        )


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Result of a limiter check."""

    allowed: bool
    remaining: int
    reset_after: float
    retry_after: float | None = None


@dataclass
class SlidingWindowLimiter:
    """
    Sliding window rate limiter.

    Example:
        limiter = SlidingWindowLimiter(max_requests=300, window_seconds=900.0)
        if not await limiter.acquire("twitter:user-1"):
            ...
    """

    max_requests: int
    window_seconds: float
    _windows: dict[str, list[float]] = field(default_factory=dict, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def _live(self, key: str) -> list[float]:
        cutoff = time.monotonic() - self.window_seconds
        stamps = [t for t in self._windows.get(key, []) if t > cutoff]
        self._windows[key] = stamps
        return stamps

    def _decision(self, stamps: list[float], allowed: bool) -> RateLimitDecision:
        now = time.monotonic()
        reset_after = (min(stamps) + self.window_seconds - now) if stamps else 0.0
        reset_after = max(0.0, reset_after)
        return RateLimitDecision(
            allowed=allowed,
            remaining=max(0, self.max_requests - len(stamps)),
            reset_after=reset_after,
            retry_after=None if allowed else reset_after,
        )

    async def acquire(self, key: str) -> bool:
        """Record a call if the budget allows it. Returns False when limited."""
        return (await self.consume(key)).allowed

    async def consume(self, key: str) -> RateLimitDecision:
        async with self._lock:
            stamps = self._live(key)
            if len(stamps) < self.max_requests:
                stamps.append(time.monotonic())
                return self._decision(stamps, True)
            return self._decision(stamps, False)

    async def wait(self, key: str, timeout: float | None = None) -> bool:
        """Wait until the budget allows a call, or until timeout elapses."""
        start = time.monotonic()

        while True:
            decision = await self.consume(key)
            if decision.allowed:
                return True

            wait_time = max(0.01, decision.reset_after)
            if timeout is not None and time.monotonic() - start + wait_time > timeout:
                return False

            await asyncio.sleep(min(wait_time, 1.0))

    async def check(self, key: str) -> RateLimitDecision:
        """Inspect the window without consuming budget."""
        async with self._lock:
            stamps = self._live(key)
            return self._decision(stamps, len(stamps) < self.max_requests)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._windows.pop(key, None)


__all__ = [
    "RateLimitDecision",
    "RateLimitExceeded",
    "SlidingWindowLimiter",
]
