"""
Integration contract and vendor adapters.

Adapters are imported lazily through the registry
(aurelius.integrations.registry); import a vendor package directly to
use its adapter without the registry.
"""

from .base import BaseIntegration, IntegrationConfig
from .errors import (
    AuthenticationError,
    IntegrationError,
    NotFoundError,
    RateLimitError,
    SyncError,
    UnsupportedProviderError,
    ValidationError,
    WebhookError,
)
from .schemas import (
    ApiResponse,
    AuthResult,
    ConnectionStatus,
    IntegrationCapability,
    RateLimitInfo,
    SyncResult,
    WebhookPayload,
)

__all__ = [
    "ApiResponse",
    "AuthResult",
    "AuthenticationError",
    "BaseIntegration",
    "ConnectionStatus",
    "IntegrationCapability",
    "IntegrationConfig",
    "IntegrationError",
    "NotFoundError",
    "RateLimitError",
    "RateLimitInfo",
    "SyncError",
    "SyncResult",
    "UnsupportedProviderError",
    "ValidationError",
    "WebhookError",
    "WebhookPayload",
]
