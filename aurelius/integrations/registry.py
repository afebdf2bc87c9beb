"""
Integration registry.

Maps provider keys from the catalogue to adapter classes, builds adapter
instances with credentials merged from the environment, and keeps the
live (connected) instances per provider and user.

Adapter modules are imported lazily, on first use of a provider.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from typing import Any

import httpx

from aurelius.config.settings import (
    ProviderEntry,
    get_catalog,
    get_provider_settings,
    get_settings,
)
from aurelius.resilience.protection import ProtectionService, get_protection_service

from .base import BaseIntegration, IntegrationConfig
from .errors import UnsupportedProviderError, ValidationError
from .health import ConnectionHealthChecker, HealthCheckResult, HealthStatus
from .schemas import AuthResult

logger = logging.getLogger(__name__)


class IntegrationRegistry:
    """
    Factory and live-instance store for integrations.

    Usage:
        registry = IntegrationRegistry()
        result = await registry.connect("linear", "user-1", access_token="lin_...")
        linear = registry.get("linear", "user-1")
        await linear.sync_data()
        await registry.disconnect("linear", "user-1")
    """

    def __init__(
        self,
        catalog: dict[str, ProviderEntry] | None = None,
        protection: ProtectionService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        health_checker: ConnectionHealthChecker | None = None,
    ):
        """
        Args:
            catalog: Provider catalogue (defaults to the packaged one)
            protection: Protection service handed to every adapter
            transport: httpx transport handed to every adapter, used by tests
            health_checker: Checker used by check_health()
        """
        self._catalog = catalog if catalog is not None else get_catalog()
        self._protection = protection
        self._transport = transport
        self._health_checker = health_checker or ConnectionHealthChecker(
            timeout_seconds=get_settings().health_check_timeout
        )
        self._classes: dict[str, type[BaseIntegration]] = {}
        self._instances: dict[tuple[str, str], BaseIntegration] = {}

    # ==================== Catalogue ====================

    def supported_providers(self) -> list[str]:
        return sorted(self._catalog)

    def is_supported(self, provider: str) -> bool:
        return provider in self._catalog

    def get_entry(self, provider: str) -> ProviderEntry:
        self.validate_provider(provider)
        return self._catalog[provider]

    def validate_provider(self, provider: str) -> None:
        """
        Raises:
            UnsupportedProviderError: If the provider is not catalogued
        """
        if not self.is_supported(provider):
            raise UnsupportedProviderError(provider, self.supported_providers())

    def get_integration_class(self, provider: str) -> type[BaseIntegration]:
        """Import and return the adapter class for a provider."""
        cls = self._classes.get(provider)
        if cls is not None:
            return cls

        entry = self.get_entry(provider)
        module = importlib.import_module(entry.module)
        cls = getattr(module, entry.class_name)
        if not (isinstance(cls, type) and issubclass(cls, BaseIntegration)):
            raise TypeError(f"{entry.module}.{entry.class_name} is not a BaseIntegration")

        self._classes[provider] = cls
        logger.debug(f"[registry] Loaded {entry.module}.{entry.class_name}")
        return cls

    def clear_module_cache(self) -> None:
        self._classes.clear()

    # ==================== Construction ====================

    def _build_config(
        self,
        provider: str,
        cls: type[BaseIntegration],
        config: IntegrationConfig | dict[str, Any] | None,
    ) -> IntegrationConfig:
        if isinstance(config, IntegrationConfig):
            return config

        app = get_settings()
        env = get_provider_settings(provider)
        values: dict[str, Any] = {
            "timeout": app.request_timeout,
            "max_retries": app.max_retries,
        }
        from_env = {
            "client_id": env.client_id,
            "client_secret": env.client_secret.get_secret_value(),
            "redirect_uri": env.redirect_uri,
            "webhook_secret": env.webhook_secret.get_secret_value(),
            "base_url": env.api_url,
            "scopes": tuple(env.scopes),
        }
        values.update({k: v for k, v in from_env.items() if v})
        values.update(config or {})
        if isinstance(values.get("scopes"), list):
            values["scopes"] = tuple(values["scopes"])

        try:
            return cls.config_class(**values)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid configuration: {e}", provider) from e

    def create(
        self,
        provider: str,
        user_id: str,
        access_token: str = "",
        refresh_token: str | None = None,
        config: IntegrationConfig | dict[str, Any] | None = None,
    ) -> BaseIntegration:
        """
        Build an adapter instance. It is not tracked until connect() succeeds.

        Raises:
            UnsupportedProviderError: Unknown provider
            ValidationError: Configuration rejected by the adapter
        """
        cls = self.get_integration_class(provider)
        return cls(
            user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            config=self._build_config(provider, cls, config),
            protection=self._protection if self._protection is not None else get_protection_service(),
            transport=self._transport,
        )

    # ==================== Live instances ====================

    async def connect(
        self,
        provider: str,
        user_id: str,
        access_token: str = "",
        refresh_token: str | None = None,
        config: IntegrationConfig | dict[str, Any] | None = None,
    ) -> AuthResult:
        """Create, authenticate and, on success, track an integration."""
        integration = self.create(provider, user_id, access_token, refresh_token, config)
        result = await integration.authenticate()
        if not result.success:
            await integration.close()
            return result

        previous = self._instances.pop((provider, user_id), None)
        if previous is not None:
            await previous.close()
        self._health_checker.forget(provider, user_id)
        self._instances[(provider, user_id)] = integration
        logger.info(f"[registry] Connected {provider} for user {user_id}")
        return result

    def get(self, provider: str, user_id: str) -> BaseIntegration | None:
        return self._instances.get((provider, user_id))

    def instances(self, provider: str | None = None) -> list[BaseIntegration]:
        return [
            integration
            for (p, _), integration in self._instances.items()
            if provider is None or p == provider
        ]

    async def disconnect(self, provider: str, user_id: str) -> bool:
        """Revoke and forget a live integration. False if none was tracked."""
        integration = self._instances.pop((provider, user_id), None)
        if integration is None:
            return False
        await integration.revoke_access()
        self._health_checker.forget(provider, user_id)
        logger.info(f"[registry] Disconnected {provider} for user {user_id}")
        return True

    async def close_all(self) -> None:
        await asyncio.gather(*(i.close() for i in self._instances.values()))
        self._instances.clear()
        self._health_checker.clear()

    # ==================== Health ====================

    async def check_health(self, provider: str | None = None) -> list[HealthCheckResult]:
        """Probe live integrations concurrently."""
        targets = self.instances(provider)
        if not targets:
            return []
        results = await asyncio.gather(*(self._health_checker.check(i) for i in targets))
        return list(results)

    def get_health_summary(self) -> dict[str, Any]:
        """Summary of the last health check of every live integration."""
        checks = [
            c for c in self._health_checker.get_all_checks() if (c.provider, c.user_id) in self._instances
        ]

        healthy = sum(1 for c in checks if c.status == HealthStatus.HEALTHY)
        degraded = sum(1 for c in checks if c.status == HealthStatus.DEGRADED)
        unhealthy = sum(1 for c in checks if c.status == HealthStatus.UNHEALTHY)

        if unhealthy:
            overall = HealthStatus.UNHEALTHY
        elif degraded:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        return {
            "providers": len(self._catalog),
            "connections": len(self._instances),
            "checked": len(checks),
            "healthy": healthy,
            "degraded": degraded,
            "unhealthy": unhealthy,
            "overall_status": overall.value,
        }


# =============================================================================
# Global registry
# =============================================================================

_global_registry: IntegrationRegistry | None = None


def get_registry() -> IntegrationRegistry:
    """Get the global integration registry."""
    global _global_registry
    if _global_registry is None:
        _global_registry = IntegrationRegistry()
    return _global_registry


def set_registry(registry: IntegrationRegistry | None) -> None:
    """Replace the global registry (for testing)."""
    global _global_registry
    _global_registry = registry


def reset_registry() -> None:
    set_registry(None)


__all__ = [
    "IntegrationRegistry",
    "get_registry",
    "reset_registry",
    "set_registry",
]
