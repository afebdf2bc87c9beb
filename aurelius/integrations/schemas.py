"""
Shared result types for the integration contract.

Every adapter returns these from the BaseIntegration operations;
vendor-specific DTOs live in each adapter's own schemas module.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthResult(BaseModel):
    """Outcome of authenticate() / refresh_token()."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: list[str] = Field(default_factory=list)
    error: str | None = None


class IntegrationCapability(BaseModel):
    """A feature an adapter offers and the OAuth scopes it needs."""

    name: str
    description: str
    enabled: bool = True
    required_scopes: list[str] = Field(default_factory=list)


class SyncResult(BaseModel):
    """
    Outcome of a sync run.

    items_skipped counts failed sync branches; errors holds one
    message per failure.
    """

    success: bool
    items_processed: int = 0
    items_skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebhookPayload(BaseModel):
    """A vendor webhook after normalization."""

    model_config = ConfigDict(extra="ignore")

    provider: str
    event: str
    data: Any = None
    timestamp: datetime = Field(default_factory=_utc_now)
    signature: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)


class RateLimitInfo(BaseModel):
    """Vendor rate limit state, as last reported in response headers."""

    limit: int
    remaining: int
    reset_time: datetime | None = None


class ConnectionStatus(BaseModel):
    is_connected: bool
    last_checked: datetime = Field(default_factory=_utc_now)
    error: str | None = None
    rate_limit_info: RateLimitInfo | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ApiResponse(BaseModel):
    """Generic success/failure envelope, returned by webhook handling."""

    success: bool
    data: Any = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, data: Any = None, message: str | None = None) -> ApiResponse:
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str) -> ApiResponse:
        return cls(success=False, error=error)


__all__ = [
    "ApiResponse",
    "AuthResult",
    "ConnectionStatus",
    "IntegrationCapability",
    "RateLimitInfo",
    "SyncResult",
    "WebhookPayload",
]
