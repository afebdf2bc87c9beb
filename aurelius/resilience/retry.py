"""
Retry and circuit breaking for outbound vendor calls.

Provides:
- BackoffStrategy: Delay calculation between attempts
- RetryPolicy / with_retry: Re-run a failing coroutine
- CircuitBreaker: Fail fast while a vendor endpoint is down

Circuits are keyed by "provider:operation" in the protection service,
so one broken endpoint does not block the rest of an adapter.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Backoff Strategies
# =============================================================================


class BackoffStrategy(ABC):
    """Computes how long to wait before the next attempt."""

    @abstractmethod
    def get_delay(self, attempt: int) -> float:
        """
        Delay in seconds before the next attempt.

        Args:
            attempt: 1-indexed attempt that just failed
        """
        ...


@dataclass
class NoBackoff(BackoffStrategy):
    """Retry immediately. Mostly useful in tests."""

    def get_delay(self, attempt: int) -> float:
        return 0.0


@dataclass
class ConstantBackoff(BackoffStrategy):
    delay: float = 1.0

    def get_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """
    delay = base * (multiplier ^ (attempt - 1)), capped at max_delay.

    Example:
        backoff = ExponentialBackoff(base=1.0, multiplier=2.0)
        # 1s, 2s, 4s, 8s, ...
    """

    base: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    jitter: bool = False
    jitter_factor: float = 0.25

    def get_delay(self, attempt: int) -> float:
        delay = min(self.base * (self.multiplier ** (attempt - 1)), self.max_delay)

        if self.jitter:
            spread = delay * self.jitter_factor
            delay = max(0.0, delay + random.uniform(-spread, spread))

        return delay


# =============================================================================
# Retry Policy
# =============================================================================


@dataclass
class RetryPolicy:
    """
    How many times to try an operation and which errors allow another go.

    Example:
        policy = RetryPolicy.from_retries(2)   # 3 attempts, 1s then 2s
    """

    max_attempts: int = 1
    backoff: BackoffStrategy = field(default_factory=NoBackoff)
    retry_on: tuple[type[Exception], ...] = (Exception,)
    give_up_on: tuple[type[Exception], ...] = ()

    @classmethod
    def from_retries(
        cls,
        retries: int,
        *,
        base_delay: float = 1.0,
        give_up_on: tuple[type[Exception], ...] = (),
    ) -> RetryPolicy:
        """Policy for `retries` extra attempts with doubling delays."""
        return cls(
            max_attempts=retries + 1,
            backoff=ExponentialBackoff(base=base_delay, multiplier=2.0),
            give_up_on=give_up_on,
        )

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if attempt >= self.max_attempts:
            return False
        if self.give_up_on and isinstance(error, self.give_up_on):
            return False
        if getattr(error, "retryable", True) is False:
            return False
        return isinstance(error, self.retry_on)

    def get_delay(self, attempt: int) -> float:
        return self.backoff.get_delay(attempt)


NO_RETRY = RetryPolicy(max_attempts=1)


# =============================================================================
# Retry Executor
# =============================================================================


@dataclass
class RetryResult:
    """Outcome of a retried operation."""

    success: bool
    result: Any = None
    attempts: int = 0
    total_delay: float = 0.0
    errors: list[Exception] = field(default_factory=list)

    @property
    def final_error(self) -> Exception | None:
        return self.errors[-1] if self.errors else None


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str = "operation",
) -> RetryResult:
    """
    Run an async operation under a retry policy.

    Never raises the operation's error; callers inspect
    `result.success` and `result.final_error`.

    Example:
        result = await with_retry(lambda: client.get_user("42"), policy, "twitter:get_user")
        if not result.success:
            raise result.final_error
    """
    errors: list[Exception] = []
    total_delay = 0.0
    attempt = 0

    while True:
        attempt += 1

        try:
            value = await operation()
            return RetryResult(
                success=True,
                result=value,
                attempts=attempt,
                total_delay=total_delay,
                errors=errors,
            )

        except Exception as e:
            errors.append(e)

            if not policy.should_retry(attempt, e):
                if attempt > 1:
                    logger.error(
                        f"{operation_name}: Failed after {attempt} attempts, last error: {e}"
                    )
                return RetryResult(
                    success=False,
                    attempts=attempt,
                    total_delay=total_delay,
                    errors=errors,
                )

            delay = policy.get_delay(attempt)
            total_delay += delay
            logger.warning(
                f"{operation_name}: Attempt {attempt}/{policy.max_attempts} "
                f"failed with {type(e).__name__}: {e}, retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)


# =============================================================================
# Circuit Breaker
# =============================================================================


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised when a call is rejected by an open circuit."""

    def __init__(self, circuit_name: str, reset_after: float):
        self.circuit_name = circuit_name
        self.reset_after = reset_after
        super().__init__(
            f"Circuit breaker is open for {circuit_name}, "
            f"next attempt in {reset_after:.1f}s"
        )


@dataclass
class CircuitBreaker:
    """
    Three-state circuit breaker.

    CLOSED counts consecutive failures; reaching failure_threshold opens
    the circuit. After recovery_timeout the circuit goes HALF_OPEN and lets
    trial calls through; success_threshold successes close it again, any
    failure reopens it. Errors for which is_failure returns False pass
    through without touching the counts.

    Example:
        breaker = CircuitBreaker(name="twitter:get_user", failure_threshold=5)
        user = await breaker.call(lambda: client.get_user("42"))
    """

    name: str = "circuit"
    failure_threshold: int = 5
    success_threshold: int = 3
    recovery_timeout: float = 60.0
    is_failure: Callable[[Exception], bool] | None = None

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _success_count: int = field(default=0, init=False)
    _last_failure_time: float | None = field(default=None, init=False)
    _total_calls: int = field(default=0, init=False)
    _total_failures: int = field(default=0, init=False)

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit moves to HALF_OPEN here."""
        if self._state == CircuitState.OPEN and self._should_attempt_reset():
            logger.info(f"Circuit '{self.name}': OPEN -> HALF_OPEN")
            self._state = CircuitState.HALF_OPEN
            self._success_count = 0
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_time is None:
            return False
        return time.monotonic() - self._last_failure_time >= self.recovery_timeout

    def _reset_after(self) -> float:
        elapsed = time.monotonic() - (self._last_failure_time or 0)
        return max(0.0, self.recovery_timeout - elapsed)

    def _open(self) -> None:
        logger.warning(
            f"Circuit '{self.name}': {self._state.value} -> OPEN "
            f"(failures={self._failure_count})"
        )
        self._state = CircuitState.OPEN
        self._last_failure_time = time.monotonic()
        self._success_count = 0

    def _counts(self, error: Exception) -> bool:
        return self.is_failure is None or self.is_failure(error)

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                logger.info(f"Circuit '{self.name}': HALF_OPEN -> CLOSED")
                self._state = CircuitState.CLOSED
                self._failure_count = 0
                self._success_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._total_failures += 1
        self._last_failure_time = time.monotonic()

        if self._state == CircuitState.HALF_OPEN:
            self._open()
        elif self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
            self._open()

    def before_call(self) -> None:
        """Raise CircuitOpenError if a call may not proceed."""
        if self.state == CircuitState.OPEN:
            raise CircuitOpenError(self.name, self._reset_after())
        self._total_calls += 1

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run operation through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open
            Exception: Whatever the operation raised
        """
        self.before_call()

        try:
            result = await operation()
        except Exception as e:
            if self._counts(e):
                self.record_failure()
            raise

        self.record_success()
        return result

    async def __aenter__(self) -> CircuitBreaker:
        self.before_call()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.record_success()
        elif self._counts(exc_val):
            self.record_failure()

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = None

    def get_stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "total_calls": self._total_calls,
            "total_failures": self._total_failures,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "reset_after": self._reset_after() if self._state == CircuitState.OPEN else None,
        }


__all__ = [
    "NO_RETRY",
    "BackoffStrategy",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ConstantBackoff",
    "ExponentialBackoff",
    "NoBackoff",
    "RetryPolicy",
    "RetryResult",
    "with_retry",
]
