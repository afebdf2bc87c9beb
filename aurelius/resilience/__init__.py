"""
Resilience for outbound vendor calls.

    retry       Backoff, retry policies, circuit breaker
    ratelimit   Sliding window rate limiter
    protection  ProtectionService combining the above with metrics
"""

from .protection import ProtectionService, get_protection_service, set_protection_service
from .ratelimit import RateLimitDecision, RateLimitExceeded, SlidingWindowLimiter
from .retry import (
    NO_RETRY,
    BackoffStrategy,
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    ConstantBackoff,
    ExponentialBackoff,
    NoBackoff,
    RetryPolicy,
    RetryResult,
    with_retry,
)

__all__ = [
    "NO_RETRY",
    "BackoffStrategy",
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "ConstantBackoff",
    "ExponentialBackoff",
    "NoBackoff",
    "ProtectionService",
    "RateLimitDecision",
    "RateLimitExceeded",
    "RetryPolicy",
    "RetryResult",
    "SlidingWindowLimiter",
    "get_protection_service",
    "set_protection_service",
    "with_retry",
]
