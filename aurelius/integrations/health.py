"""
Connection health and API call metrics for integrations.

ProviderMetrics is fed by the protection service on every protected
call. ConnectionHealthChecker probes a live adapter with its own
test_connection() and grades the result by latency.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .base import BaseIntegration

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    """Health status for an integration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of probing one connected integration."""

    provider: str
    user_id: str
    status: HealthStatus
    latency_ms: float | None = None
    message: str | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "user_id": self.user_id,
            "status": self.status.value,
            "latency_ms": self.latency_ms,
            "message": self.message,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class ProviderMetrics:
    """API call counters for one provider."""

    provider: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    total_latency_ms: float = 0.0
    operations: dict[str, int] = field(default_factory=dict)
    last_request_time: datetime | None = None
    last_error: str | None = None
    last_error_time: datetime | None = None

    @property
    def avg_latency_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_latency_ms / self.total_requests

    @property
    def success_rate(self) -> float:
        """Success rate (0.0 to 1.0)."""
        if self.total_requests == 0:
            return 1.0
        return self.successful_requests / self.total_requests

    def _touch(self, operation: str, latency_ms: float) -> None:
        self.total_requests += 1
        self.total_latency_ms += latency_ms
        self.operations[operation] = self.operations.get(operation, 0) + 1
        self.last_request_time = datetime.now(timezone.utc)

    def record_success(self, operation: str, latency_ms: float) -> None:
        self._touch(operation, latency_ms)
        self.successful_requests += 1

    def record_failure(self, operation: str, error: str, latency_ms: float = 0.0) -> None:
        self._touch(operation, latency_ms)
        self.failed_requests += 1
        self.last_error = error
        self.last_error_time = datetime.now(timezone.utc)

    def record_rejected(self, operation: str, reason: str) -> None:
        """A call refused locally (open circuit or rate limit) before reaching the vendor."""
        self.rejected_requests += 1
        self.last_error = reason
        self.last_error_time = datetime.now(timezone.utc)

    def reset(self) -> None:
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.rejected_requests = 0
        self.total_latency_ms = 0.0
        self.operations = {}
        self.last_request_time = None
        self.last_error = None
        self.last_error_time = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "rejected_requests": self.rejected_requests,
            "avg_latency_ms": self.avg_latency_ms,
            "success_rate": self.success_rate,
            "operations": dict(self.operations),
            "last_request_time": self.last_request_time.isoformat() if self.last_request_time else None,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
        }


class ConnectionHealthChecker:
    """
    Probes connected integrations and keeps the last result per connection.
    """

    LATENCY_DEGRADED_MS = 5000
    LATENCY_UNHEALTHY_MS = 30000

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds
        self._last_checks: dict[str, HealthCheckResult] = {}

    async def check(self, integration: BaseIntegration) -> HealthCheckResult:
        """
        Run integration.test_connection() under a timeout.

        Never raises; failures become UNHEALTHY results.
        """
        provider = integration.provider
        user_id = integration.user_id
        start_time = time.perf_counter()

        try:
            status = await asyncio.wait_for(
                integration.test_connection(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            result = HealthCheckResult(
                provider=provider,
                user_id=user_id,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.perf_counter() - start_time) * 1000,
                error=f"Timeout after {self.timeout_seconds}s",
            )
        except Exception as e:
            logger.warning(f"[{provider}] Health check raised: {e}")
            result = HealthCheckResult(
                provider=provider,
                user_id=user_id,
                status=HealthStatus.UNHEALTHY,
                latency_ms=(time.perf_counter() - start_time) * 1000,
                error=str(e),
            )
        else:
            latency_ms = (time.perf_counter() - start_time) * 1000

            if not status.is_connected or latency_ms > self.LATENCY_UNHEALTHY_MS:
                grade = HealthStatus.UNHEALTHY
            elif latency_ms > self.LATENCY_DEGRADED_MS:
                grade = HealthStatus.DEGRADED
            else:
                grade = HealthStatus.HEALTHY

            result = HealthCheckResult(
                provider=provider,
                user_id=user_id,
                status=grade,
                latency_ms=latency_ms,
                message="Connection is operational" if status.is_connected else None,
                error=status.error,
                metadata=status.details,
            )

        self._last_checks[f"{provider}:{user_id}"] = result
        return result

    def get_last_check(self, provider: str, user_id: str) -> HealthCheckResult | None:
        return self._last_checks.get(f"{provider}:{user_id}")

    def get_all_checks(self) -> list[HealthCheckResult]:
        return list(self._last_checks.values())

    def forget(self, provider: str, user_id: str) -> None:
        self._last_checks.pop(f"{provider}:{user_id}", None)

    def clear(self) -> None:
        self._last_checks.clear()


_global_health_checker: ConnectionHealthChecker | None = None


def get_health_checker() -> ConnectionHealthChecker:
    """Get the global health checker."""
    global _global_health_checker
    if _global_health_checker is None:
        _global_health_checker = ConnectionHealthChecker()
    return _global_health_checker


def set_health_checker(checker: ConnectionHealthChecker | None) -> None:
    """Replace the global health checker (for testing)."""
    global _global_health_checker
    _global_health_checker = checker


__all__ = [
    "ConnectionHealthChecker",
    "HealthCheckResult",
    "HealthStatus",
    "ProviderMetrics",
    "get_health_checker",
    "set_health_checker",
]
