"""
Protected execution of vendor API calls.

ProtectionService.execute() is what an adapter's
execute_with_protection() delegates to. Per call it:

    1. consumes the provider's rate limit budget for the user
    2. passes through the "provider:operation" circuit breaker, which only
       counts retryable failures
    3. optionally retries (retries=N means N extra attempts)
    4. records success/failure/latency in ProviderMetrics

Errors from the operation are re-raised unchanged.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, TypeVar

from aurelius.integrations.health import ProviderMetrics

from .ratelimit import RateLimitExceeded, SlidingWindowLimiter
from .retry import CircuitBreaker, CircuitOpenError, RetryPolicy, with_retry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from aurelius.config.settings import ProviderEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_breaker_failure(error: Exception) -> bool:
    # Non-retryable client errors never open a circuit
    return getattr(error, "retryable", True)


class ProtectionService:
    """
    Rate limiting, circuit breaking and metrics for all providers.

    Example:
        protection = ProtectionService.from_catalog(get_catalog())
        user = await protection.execute(
            "twitter", "get_user", lambda: client.get_user("42"), key="user-1"
        )
    """

    def __init__(
        self,
        catalog: dict[str, ProviderEntry] | None = None,
        *,
        retry_base_delay: float = 1.0,
    ):
        self._catalog = catalog or {}
        self.retry_base_delay = retry_base_delay
        self._breakers: dict[str, CircuitBreaker] = {}
        self._limiters: dict[str, SlidingWindowLimiter] = {}
        self._metrics: dict[str, ProviderMetrics] = {}

    @classmethod
    def from_catalog(cls, catalog: dict[str, ProviderEntry], **kwargs: Any) -> ProtectionService:
        return cls(catalog, **kwargs)

    # -------------------------------------------------------------------------
    # Per-provider state
    # -------------------------------------------------------------------------

    def get_breaker(self, provider: str, operation: str) -> CircuitBreaker:
        key = f"{provider}:{operation}"
        breaker = self._breakers.get(key)
        if breaker is None:
            entry = self._catalog.get(provider)
            if entry is not None:
                breaker = CircuitBreaker(
                    name=key,
                    failure_threshold=entry.circuit.failure_threshold,
                    success_threshold=entry.circuit.success_threshold,
                    recovery_timeout=entry.circuit.recovery_timeout,
                    is_failure=_is_breaker_failure,
                )
            else:
                breaker = CircuitBreaker(name=key, is_failure=_is_breaker_failure)
            self._breakers[key] = breaker
        return breaker

    def get_limiter(self, provider: str) -> SlidingWindowLimiter | None:
        """Limiter for a catalogued provider; uncatalogued providers are unlimited."""
        limiter = self._limiters.get(provider)
        if limiter is None:
            entry = self._catalog.get(provider)
            if entry is None:
                return None
            limiter = SlidingWindowLimiter(
                max_requests=entry.rate_limit.requests,
                window_seconds=entry.rate_limit.window,
            )
            self._limiters[provider] = limiter
        return limiter

    def get_metrics(self, provider: str) -> ProviderMetrics:
        metrics = self._metrics.get(provider)
        if metrics is None:
            metrics = ProviderMetrics(provider=provider)
            self._metrics[provider] = metrics
        return metrics

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(
        self,
        provider: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        *,
        retries: int | None = None,
        key: str | None = None,
    ) -> T:
        """
        Run fn under rate limit, circuit breaker and optional retry.

        Args:
            provider: Provider key, e.g. "twitter"
            operation: Operation name, used for the circuit key and metrics
            fn: Zero-argument coroutine factory
            retries: Extra attempts on retryable failures
            key: Rate limit bucket within the provider (usually the user id)

        Raises:
            RateLimitExceeded: Local budget exhausted
            CircuitOpenError: Circuit for provider:operation is open
            Exception: The last error raised by fn
        """
        metrics = self.get_metrics(provider)
        limiter = self.get_limiter(provider)

        if limiter is not None:
            bucket = f"{provider}:{key}" if key else provider
            decision = await limiter.consume(bucket)
            if not decision.allowed:
                metrics.record_rejected(operation, "rate_limited")
                logger.warning(f"[{provider}] Local rate limit hit for {operation}")
                raise RateLimitExceeded(
                    bucket,
                    limiter.max_requests,
                    limiter.window_seconds,
                    retry_after=decision.retry_after,
                )

        breaker = self.get_breaker(provider, operation)

        async def attempt() -> T:
            start = time.perf_counter()
            try:
                result = await breaker.call(fn)
            except CircuitOpenError:
                metrics.record_rejected(operation, "circuit_open")
                raise
            except Exception as e:
                metrics.record_failure(operation, str(e), (time.perf_counter() - start) * 1000)
                raise
            metrics.record_success(operation, (time.perf_counter() - start) * 1000)
            return result

        if not retries:
            return await attempt()

        policy = RetryPolicy.from_retries(
            retries,
            base_delay=self.retry_base_delay,
            give_up_on=(CircuitOpenError,),
        )
        outcome = await with_retry(attempt, policy, operation_name=f"{provider}:{operation}")
        if outcome.success:
            return outcome.result
        raise outcome.final_error

    def get_stats(self) -> dict[str, Any]:
        return {
            "circuits": {k: b.get_stats() for k, b in self._breakers.items()},
            "metrics": {k: m.to_dict() for k, m in self._metrics.items()},
        }

    def reset(self) -> None:
        self._breakers.clear()
        self._limiters.clear()
        self._metrics.clear()


_global_protection: ProtectionService | None = None


def get_protection_service() -> ProtectionService:
    """Process-wide service built from the configured catalogue."""
    global _global_protection
    if _global_protection is None:
        from aurelius.config.settings import get_catalog

        _global_protection = ProtectionService.from_catalog(get_catalog())
    return _global_protection


def set_protection_service(service: ProtectionService | None) -> None:
    """Replace the global service (for testing)."""
    global _global_protection
    _global_protection = service


__all__ = [
    "ProtectionService",
    "get_protection_service",
    "set_protection_service",
]
