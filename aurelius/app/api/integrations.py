"""
Integration management API.

Connect, sync, probe and disconnect integrations per user. Live
instances are held by the registry for the lifetime of the process.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from aurelius.app.dependencies import get_integration_registry
from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.errors import (
    IntegrationError,
    SyncError,
    UnsupportedProviderError,
    ValidationError,
)
from aurelius.integrations.registry import IntegrationRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/integrations", tags=["integrations"])


class ConnectRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    access_token: str = ""
    refresh_token: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)


def _require_supported(registry: IntegrationRegistry, provider: str) -> None:
    try:
        registry.validate_provider(provider)
    except UnsupportedProviderError as e:
        raise HTTPException(status_code=400, detail=e.message) from e


def _require_instance(registry: IntegrationRegistry, provider: str, user_id: str) -> BaseIntegration:
    _require_supported(registry, provider)
    integration = registry.get(provider, user_id)
    if integration is None:
        raise HTTPException(
            status_code=404,
            detail=f"No {provider} connection for user {user_id}",
        )
    return integration


@router.get("", summary="List supported integrations")
async def list_integrations(
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    """Catalogue entries with each adapter's capabilities."""
    integrations = []
    for key in registry.supported_providers():
        entry = registry.get_entry(key)
        cls = registry.get_integration_class(key)
        integrations.append(
            {
                "provider": key,
                "name": entry.name,
                "category": entry.category,
                "capabilities": [c.model_dump() for c in cls(user_id="").get_capabilities()],
                "connections": len(registry.instances(key)),
            }
        )
    return {"integrations": integrations}


@router.get("/health", summary="Probe every live integration")
async def integrations_health(
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    checks = await registry.check_health()
    return {
        "summary": registry.get_health_summary(),
        "checks": [c.to_dict() for c in checks],
    }


@router.post(
    "/{provider}/connect",
    summary="Connect an integration for a user",
    responses={
        400: {"description": "Unsupported provider or invalid configuration"},
        401: {"description": "Credentials rejected by the vendor"},
    },
)
async def connect_integration(
    provider: str,
    request: ConnectRequest,
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    _require_supported(registry, provider)
    try:
        result = await registry.connect(
            provider,
            request.user_id,
            access_token=request.access_token,
            refresh_token=request.refresh_token,
            config=request.config,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message) from e

    if not result.success:
        logger.warning(f"[{provider}] Connect failed for user {request.user_id}: {result.error}")
        raise HTTPException(status_code=401, detail=result.error or "Authentication failed")

    return {
        "success": True,
        "provider": provider,
        "user_id": request.user_id,
        "scope": result.scope,
        "expires_at": result.expires_at.isoformat() if result.expires_at else None,
    }


@router.post("/{provider}/sync", summary="Sync a user's integration")
async def sync_integration(
    provider: str,
    user_id: str = Query(..., min_length=1),
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    integration = _require_instance(registry, provider, user_id)
    last_sync = await integration.get_last_sync_time()
    try:
        result = await integration.sync_data(last_sync)
    except SyncError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    return result.model_dump(mode="json")


@router.get("/{provider}/status", summary="Connection status for a user")
async def integration_status(
    provider: str,
    user_id: str = Query(..., min_length=1),
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    integration = _require_instance(registry, provider, user_id)
    status = await integration.get_connection_status()
    last_sync = await integration.get_last_sync_time()
    return {
        "provider": provider,
        "user_id": user_id,
        "last_sync": last_sync.isoformat() if last_sync else None,
        **status.model_dump(mode="json"),
    }


@router.post("/{provider}/refresh", summary="Refresh a user's access token")
async def refresh_integration(
    provider: str,
    user_id: str = Query(..., min_length=1),
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    integration = _require_instance(registry, provider, user_id)
    result = await integration.refresh_token()
    if not result.success:
        raise HTTPException(status_code=401, detail=result.error or "Token refresh failed")
    return {
        "success": True,
        "expires_at": result.expires_at.isoformat() if result.expires_at else None,
    }


@router.delete("/{provider}", summary="Disconnect a user's integration")
async def disconnect_integration(
    provider: str,
    user_id: str = Query(..., min_length=1),
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    _require_supported(registry, provider)
    try:
        removed = await registry.disconnect(provider, user_id)
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=e.message) from e
    if not removed:
        raise HTTPException(status_code=404, detail=f"No {provider} connection for user {user_id}")
    return {"success": True, "provider": provider, "user_id": user_id}
