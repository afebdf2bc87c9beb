"""
Webhook signature verification and payload helpers.

Vendors sign webhook bodies with an HMAC over the raw bytes using the
shared secret configured for the provider. They differ in hash
(sha256/sha1), encoding (hex/base64) and an optional prefix such as
"sha256=". verify_signature() covers all of those.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "x-api-key",
        "x-hook-secret",
        "x-signature",
        "x-hub-signature",
        "x-hub-signature-256",
        "x-twitter-webhooks-signature",
        "x-li-signature",
        "x-wc-webhook-signature",
        "x-vercel-signature",
        "x-workato-signature",
        "linear-signature",
    }
)

DEFAULT_EVENT_FIELDS = ("type", "event", "event_type", "action", "topic")


def _to_bytes(body: bytes | str) -> bytes:
    return body.encode("utf-8") if isinstance(body, str) else body


def compute_signature(
    secret: str,
    body: bytes | str,
    *,
    algorithm: str = "sha256",
    encoding: str = "hex",
) -> str:
    """HMAC of body with secret, hex or base64 encoded."""
    digest = hmac.new(
        secret.encode("utf-8"),
        _to_bytes(body),
        getattr(hashlib, algorithm),
    ).digest()

    if encoding == "base64":
        return base64.b64encode(digest).decode("ascii")
    if encoding == "hex":
        return digest.hex()
    raise ValueError(f"Unsupported signature encoding: {encoding}")


def verify_signature(
    secret: str | None,
    body: bytes | str,
    signature: str | None,
    *,
    algorithm: str = "sha256",
    encoding: str = "hex",
    prefix: str = "",
) -> bool:
    """
    Constant-time check of a webhook signature.

    Returns False when the secret or the signature is missing.
    A prefix, if given, is optional on the incoming signature.
    """
    if not secret or not signature:
        return False

    expected = compute_signature(secret, body, algorithm=algorithm, encoding=encoding)
    candidate = signature.strip()
    if prefix and candidate.startswith(prefix):
        candidate = candidate[len(prefix):]

    if encoding == "hex":
        candidate = candidate.lower()

    return hmac.compare_digest(expected.encode("ascii"), candidate.encode("ascii", "replace"))


def normalize_headers(headers: Mapping[str, Any]) -> dict[str, str]:
    return {str(k).lower(): str(v) for k, v in headers.items()}


def sanitize_headers(headers: Mapping[str, Any]) -> dict[str, str]:
    """Lower-cased copy of headers with credentials and signatures redacted."""
    return {
        k: ("[REDACTED]" if k in SENSITIVE_HEADERS else v)
        for k, v in normalize_headers(headers).items()
    }


def _lookup(payload: Any, path: str) -> Any:
    current = payload
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def extract_event_type(
    payload: Any,
    fields: tuple[str, ...] = DEFAULT_EVENT_FIELDS,
) -> str | None:
    """
    First non-empty string among candidate fields. Dotted paths
    ("event.type") reach into nested objects.
    """
    if not isinstance(payload, dict):
        return None

    for field in fields:
        value = _lookup(payload, field)
        if isinstance(value, str) and value:
            return value
    return None


def parse_body(body: bytes | str) -> Any:
    """Decode a JSON webhook body; form or empty bodies yield {}."""
    raw = _to_bytes(body)
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("[webhooks] Body is not JSON, treating as empty payload")
        return {}


__all__ = [
    "SENSITIVE_HEADERS",
    "compute_signature",
    "extract_event_type",
    "normalize_headers",
    "parse_body",
    "sanitize_headers",
    "verify_signature",
]
