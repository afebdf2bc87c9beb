"""Settings and provider catalogue."""

from .settings import (
    AppSettings,
    CircuitSettings,
    ProviderEntry,
    ProviderSettings,
    RateLimitSettings,
    get_catalog,
    get_provider_settings,
    get_settings,
    load_catalog,
)

__all__ = [
    "AppSettings",
    "CircuitSettings",
    "ProviderEntry",
    "ProviderSettings",
    "RateLimitSettings",
    "get_catalog",
    "get_provider_settings",
    "get_settings",
    "load_catalog",
]
