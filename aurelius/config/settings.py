"""
Settings for the integrations service.

Three sources:
    AppSettings       AURELIUS_* environment variables
    ProviderSettings  <PROVIDER>_* environment variables, one set per vendor
    Catalogue         catalog.yaml shipped with the package

Security:
    Client secrets and webhook secrets use SecretStr so they never show
    up in reprs or logs. Read them with `.get_secret_value()`.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).with_name("catalog.yaml")


class AppSettings(BaseModel):
    """Service-level settings."""

    model_config = ConfigDict(extra="ignore")

    service_name: str = "aurelius-integrations"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    api_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Outbound HTTP
    request_timeout: float = Field(30.0, gt=0)
    max_retries: int = Field(3, ge=0)
    health_check_timeout: float = Field(10.0, gt=0)

    catalog_path: str = str(CATALOG_PATH)


class RateLimitSettings(BaseModel):
    requests: int = Field(100, ge=1)
    window: float = Field(60.0, gt=0)


class CircuitSettings(BaseModel):
    failure_threshold: int = Field(5, ge=1)
    success_threshold: int = Field(3, ge=1)
    recovery_timeout: float = Field(60.0, ge=0)


class ProviderEntry(BaseModel):
    """One provider in the catalogue."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    key: str
    name: str
    category: str = "other"
    module: str
    class_name: str = Field(..., alias="class")
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    circuit: CircuitSettings = Field(default_factory=CircuitSettings)


class ProviderSettings(BaseModel):
    """
    Credentials for one provider, read from the environment.

    Example (twitter):
        TWITTER_CLIENT_ID, TWITTER_CLIENT_SECRET, TWITTER_REDIRECT_URI,
        TWITTER_SCOPES (comma separated), TWITTER_WEBHOOK_SECRET,
        TWITTER_API_URL
    """

    provider: str
    client_id: str = ""
    client_secret: SecretStr = SecretStr("")
    redirect_uri: str = ""
    scopes: list[str] = Field(default_factory=list)
    webhook_url: str = ""
    webhook_secret: SecretStr = SecretStr("")
    api_url: str = ""

    @property
    def has_webhook_secret(self) -> bool:
        return bool(self.webhook_secret.get_secret_value())


# =============================================================================
# Loaders
# =============================================================================


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Cached; call get_settings.cache_clear() after changing the environment.
    """
    origins = os.getenv("AURELIUS_CORS_ORIGINS", "*")
    return AppSettings(
        service_name=os.getenv("AURELIUS_SERVICE_NAME", "aurelius-integrations"),
        environment=os.getenv("AURELIUS_ENVIRONMENT", "development"),
        debug=_env_bool("AURELIUS_DEBUG"),
        log_level=os.getenv("AURELIUS_LOG_LEVEL", "INFO"),
        api_prefix=os.getenv("AURELIUS_API_PREFIX", "/api/v1"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        request_timeout=float(os.getenv("AURELIUS_REQUEST_TIMEOUT", "30")),
        max_retries=int(os.getenv("AURELIUS_MAX_RETRIES", "3")),
        health_check_timeout=float(os.getenv("AURELIUS_HEALTH_CHECK_TIMEOUT", "10")),
        catalog_path=os.getenv("AURELIUS_CATALOG_PATH", str(CATALOG_PATH)),
    )


def get_provider_settings(provider: str) -> ProviderSettings:
    """Read <PROVIDER>_* variables for one provider. Not cached."""
    prefix = provider.upper().replace("-", "_")
    scopes = os.getenv(f"{prefix}_SCOPES", "")
    return ProviderSettings(
        provider=provider,
        client_id=os.getenv(f"{prefix}_CLIENT_ID", ""),
        client_secret=SecretStr(os.getenv(f"{prefix}_CLIENT_SECRET", "")),
        redirect_uri=os.getenv(f"{prefix}_REDIRECT_URI", ""),
        scopes=[s.strip() for s in scopes.split(",") if s.strip()],
        webhook_url=os.getenv(f"{prefix}_WEBHOOK_URL", ""),
        webhook_secret=SecretStr(os.getenv(f"{prefix}_WEBHOOK_SECRET", "")),
        api_url=os.getenv(f"{prefix}_API_URL", ""),
    )


def _merge(defaults: dict[str, Any], overrides: dict[str, Any] | None) -> dict[str, Any]:
    return {**defaults, **(overrides or {})}


def load_catalog(path: str | Path | None = None) -> dict[str, ProviderEntry]:
    """
    Parse the provider catalogue YAML.

    Per-provider rate_limit/circuit blocks override the `defaults` block
    key by key.
    """
    path = Path(path) if path else CATALOG_PATH

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    defaults = raw.get("defaults", {})
    providers = raw.get("providers") or {}

    catalog: dict[str, ProviderEntry] = {}
    for key, data in providers.items():
        data = dict(data or {})
        data["rate_limit"] = _merge(defaults.get("rate_limit", {}), data.get("rate_limit"))
        data["circuit"] = _merge(defaults.get("circuit", {}), data.get("circuit"))
        catalog[key] = ProviderEntry.model_validate({"key": key, **data})

    logger.debug(f"[config] Loaded {len(catalog)} providers from {path}")
    return catalog


@lru_cache()
def get_catalog() -> dict[str, ProviderEntry]:
    """Catalogue at the configured path, loaded once."""
    return load_catalog(get_settings().catalog_path)


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
