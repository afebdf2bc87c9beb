"""
Dependency wiring for the Aurelius service.

Provides the shared registry and the startup/shutdown hooks that
build the registry and protection service for the FastAPI lifespan.
"""
from __future__ import annotations

import logging

from aurelius.config.settings import AppSettings, get_catalog, get_settings
from aurelius.integrations.registry import IntegrationRegistry, get_registry
from aurelius.resilience.protection import get_protection_service

logger = logging.getLogger(__name__)


def get_app_settings() -> AppSettings:
    return get_settings()


def get_integration_registry() -> IntegrationRegistry:
    """FastAPI dependency returning the global registry."""
    return get_registry()


async def initialize_services() -> None:
    """
    Load the catalogue and build the shared services.

    Called from the FastAPI lifespan.
    """
    catalog = get_catalog()
    get_protection_service()
    get_registry()
    logger.info(f"[app] Loaded {len(catalog)} providers: {', '.join(sorted(catalog))}")


async def shutdown_services() -> None:
    """Close every live integration's HTTP client."""
    await get_registry().close_all()
