"""
Integration exceptions.

HTTP failures map onto the hierarchy in BaseIntegration._check_response:

    401/403  AuthenticationError
    404      NotFoundError
    400/422  ValidationError
    429      RateLimitError (retryable)
    5xx      IntegrationError (retryable)
"""

from __future__ import annotations

from typing import Any


class IntegrationError(Exception):
    """Base exception for integration errors."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.integration = integration
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable

    @property
    def message(self) -> str:
        return self.args[0]

    def __str__(self) -> str:
        parts = [f"[{self.integration}] {self.args[0]}"]
        if self.status_code:
            parts.append(f"(status={self.status_code})")
        return " ".join(parts)


class AuthenticationError(IntegrationError):
    """Raised when credentials are rejected (401/403) or missing."""

    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class RateLimitError(IntegrationError):
    """Raised when the vendor answers 429."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, integration, retryable=True, **kwargs)
        self.retry_after = retry_after


class NotFoundError(IntegrationError):
    def __init__(self, message: str, integration: str, **kwargs):
        super().__init__(message, integration, retryable=False, **kwargs)


class ValidationError(IntegrationError):
    """Raised when the vendor rejects a request body (400/422)."""

    def __init__(
        self,
        message: str,
        integration: str,
        *,
        validation_errors: list[dict[str, Any]] | None = None,
        **kwargs,
    ):
        super().__init__(message, integration, retryable=False, **kwargs)
        self.validation_errors = validation_errors or []


class SyncError(IntegrationError):
    """Raised when every branch of a sync fails."""


class WebhookError(IntegrationError):
    """Raised for webhooks that cannot be parsed or verified."""


class UnsupportedProviderError(IntegrationError):
    def __init__(self, provider: str, supported: list[str] | None = None):
        message = f"Unsupported integration provider: {provider}"
        if supported:
            message += f" (supported: {', '.join(sorted(supported))})"
        super().__init__(message, provider, status_code=None)
        self.supported = supported or []


__all__ = [
    "AuthenticationError",
    "IntegrationError",
    "NotFoundError",
    "RateLimitError",
    "SyncError",
    "UnsupportedProviderError",
    "ValidationError",
    "WebhookError",
]
