"""
Inbound vendor webhooks.

One endpoint per provider. The raw body is verified against the
provider's webhook secret (<PROVIDER>_WEBHOOK_SECRET) using the adapter's
signature scheme, normalized into a WebhookPayload and handed to every
live instance of that provider. An instance connected with its own
webhook_secret only receives bodies that secret also verifies.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from aurelius.app.dependencies import get_integration_registry
from aurelius.config.settings import get_provider_settings
from aurelius.integrations.errors import WebhookError
from aurelius.integrations.registry import IntegrationRegistry
from aurelius.integrations.webhooks import parse_body, sanitize_headers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/{provider}",
    summary="Receive a vendor webhook",
    responses={
        200: {"description": "Webhook verified and dispatched"},
        400: {"description": "Unsupported provider or payload without an event"},
        401: {"description": "Missing or invalid signature"},
    },
)
async def receive_webhook(
    provider: str,
    request: Request,
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    """
    Verify, normalize and dispatch a webhook.

    Each live instance handles the payload independently; handling
    failures are reported per instance and never fail the request.
    """
    if not registry.is_supported(provider):
        raise HTTPException(status_code=400, detail=f"Unsupported integration provider: {provider}")

    cls = registry.get_integration_class(provider)
    body = await request.body()
    headers = dict(request.headers)
    logger.debug(f"[{provider}] Webhook headers: {sanitize_headers(headers)}")

    signature = cls.extract_webhook_signature(headers, parse_body(body))
    if not signature:
        logger.warning(f"[{provider}] Webhook rejected: missing signature")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    secret = get_provider_settings(provider).webhook_secret.get_secret_value()
    if not cls.check_signature(secret, body, signature):
        logger.warning(f"[{provider}] Webhook rejected: invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        payload = cls.parse_webhook(headers, body)
    except WebhookError as e:
        raise HTTPException(status_code=400, detail=e.message) from e

    live = registry.instances(provider)
    targets = [
        i for i in live if not i.config.webhook_secret or i.validate_webhook_signature(body, signature)
    ]
    skipped = len(live) - len(targets)
    if skipped:
        logger.warning(f"[{provider}] {skipped} instances rejected the signature of {payload.event}")

    results = await asyncio.gather(*(i.handle_webhook(payload) for i in targets))
    failed = sum(1 for r in results if not r.success)
    if failed:
        logger.error(f"[{provider}] {failed}/{len(results)} instances failed to handle {payload.event}")

    logger.info(f"[{provider}] Webhook {payload.event} dispatched to {len(targets)} instances")
    return {
        "success": True,
        "message": f"Webhook {payload.event} processed",
        "event": payload.event,
        "dispatched": len(targets),
        "failed": failed,
        "skipped": skipped,
    }


@router.post("/{provider}/test", summary="Webhook endpoint reachability check")
async def test_webhook(
    provider: str,
    registry: IntegrationRegistry = Depends(get_integration_registry),
) -> dict[str, Any]:
    if not registry.is_supported(provider):
        raise HTTPException(status_code=400, detail=f"Unsupported integration provider: {provider}")
    return {
        "success": True,
        "provider": provider,
        "message": f"{provider} webhook endpoint is reachable",
        "signature_configured": get_provider_settings(provider).has_webhook_secret,
    }
