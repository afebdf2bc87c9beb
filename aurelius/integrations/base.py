"""
Base contract for Aurelius integrations.

Every vendor adapter subclasses BaseIntegration and gets:

    - HTTP plumbing: lazy httpx.AsyncClient, auth headers per request,
      status -> exception mapping, retry with backoff and jitter
    - Protected execution: rate limit + circuit breaker + metrics through
      an injected ProtectionService
    - Token refresh via the OAuth refresh_token grant
    - Named in-memory caches, cleared by clear_cache() or by webhooks
    - Webhook parsing, signature checks and event -> cache routing
    - Concurrent multi-resource sync

Subclasses declare class attributes (provider, api_base_url,
cache_resources, webhook_events, signature scheme) and implement:

    _verify_credentials()   cheap "who am I" call
    get_capabilities()      feature list with required scopes
    _sync_branches()        resource name -> coroutine returning items

Retry Strategy:
    - Retryable errors: timeouts, network errors, 429, 5xx
    - Non-retryable: 4xx (except 429), auth errors
    - Backoff: exponential with jitter, Retry-After honoured, capped at 60s
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, ClassVar, Mapping, TypeVar

import httpx

from .cache import ResourceCache
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
from .sync import run_sync
from .webhooks import (
    DEFAULT_EVENT_FIELDS,
    extract_event_type,
    normalize_headers,
    parse_body,
    verify_signature,
)

if TYPE_CHECKING:
    from aurelius.resilience.protection import ProtectionService

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_PAGES = 100
MAX_BACKOFF = 60.0


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class IntegrationConfig:
    """
    Static configuration for one adapter instance.

    Tokens are not stored here: they change on refresh and live on the
    adapter instance instead.
    """

    # OAuth application
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str | None = None
    scopes: tuple[str, ...] = ()

    # API key schemes
    api_key: str | None = None
    api_secret: str | None = None

    # Connection
    base_url: str = ""
    store_url: str | None = None
    team_id: str | None = None
    timeout: float = 30.0

    # Webhooks
    webhook_secret: str | None = None

    # Retries
    max_retries: int = 3
    retry_delay: float = 1.0

    # Observability
    log_requests: bool = False
    log_responses: bool = False


# =============================================================================
# Base Integration
# =============================================================================


class BaseIntegration(ABC):
    """
    Abstract base class for vendor adapters.

    Example:
        async with TwitterIntegration("user-1", access_token="...") as twitter:
            auth = await twitter.authenticate()
            result = await twitter.sync_data()
    """

    provider: ClassVar[str] = ""
    config_class: ClassVar[type[IntegrationConfig]] = IntegrationConfig
    name: ClassVar[str] = ""
    version: ClassVar[str] = "1.0.0"
    api_base_url: ClassVar[str] = ""

    # OAuth refresh endpoint; None means tokens do not expire
    token_url: ClassVar[str | None] = None
    token_auth_basic: ClassVar[bool] = False

    default_scopes: ClassVar[tuple[str, ...]] = ()
    cache_resources: ClassVar[tuple[str, ...]] = ()

    # Webhook event -> cache resources to invalidate
    webhook_events: ClassVar[dict[str, tuple[str, ...]]] = {}
    webhook_event_fields: ClassVar[tuple[str, ...]] = DEFAULT_EVENT_FIELDS
    webhook_event_header: ClassVar[str | None] = None

    signature_header: ClassVar[str | None] = None
    signature_algorithm: ClassVar[str] = "sha256"
    signature_encoding: ClassVar[str] = "hex"
    signature_prefix: ClassVar[str] = ""

    def __init__(
        self,
        user_id: str,
        access_token: str = "",
        refresh_token: str | None = None,
        config: IntegrationConfig | None = None,
        *,
        protection: ProtectionService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the adapter.

        Args:
            user_id: Owner of the connection
            access_token: OAuth access token or API token
            refresh_token: OAuth refresh token, if the vendor issues one
            config: Static configuration (credentials, URLs, secrets)
            protection: Rate limit / circuit breaker service
            transport: httpx transport override, used by tests
        """
        self.user_id = user_id
        self.access_token = access_token
        self.refresh_token_value = refresh_token
        self.token_expires_at: datetime | None = None
        self.config = config or IntegrationConfig()
        self.protection = protection
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._last_sync_time: datetime | None = None
        self._rate_limit_info: RateLimitInfo | None = None
        self.cache = ResourceCache(self.provider, self.cache_resources)

    @property
    def base_url(self) -> str:
        return self.config.base_url or self.api_base_url

    def __repr__(self) -> str:
        return f"{type(self).__name__}(user_id={self.user_id!r})"

    # -------------------------------------------------------------------------
    # HTTP plumbing
    # -------------------------------------------------------------------------

    def _get_auth_headers(self) -> dict[str, str]:
        """Headers sent with every authenticated request. Bearer token by default."""
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.timeout,
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """
        Make an HTTP request with retry and exponential backoff.

        Args:
            method: HTTP method
            path: Path relative to base_url, or an absolute URL
            params: Query parameters
            json: JSON body
            data: Form body
            headers: Extra headers
            authenticated: Send the adapter's auth headers

        Raises:
            IntegrationError: On any non-retryable error or after max retries
        """
        for attempt in range(self.config.max_retries + 1):
            try:
                return await self._do_request(
                    method,
                    path,
                    params=params,
                    json=json,
                    data=data,
                    headers=headers,
                    auth=auth,
                    authenticated=authenticated,
                )
            except IntegrationError as e:
                if not e.retryable:
                    raise

                if attempt >= self.config.max_retries:
                    logger.warning(
                        f"[{self.provider}] Max retries ({self.config.max_retries}) "
                        f"reached for {method} {path}"
                    )
                    raise

                backoff = self._calculate_backoff(attempt, e)
                logger.info(
                    f"[{self.provider}] Retry {attempt + 1}/{self.config.max_retries} "
                    f"for {method} {path} after {backoff:.2f}s"
                )
                await asyncio.sleep(backoff)

        raise IntegrationError("Unknown error", self.provider)

    def _calculate_backoff(self, attempt: int, error: IntegrationError) -> float:
        """Exponential delay with +/-25% jitter; Retry-After wins when present."""
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            return min(error.retry_after, MAX_BACKOFF)

        base_delay = self.config.retry_delay * (2 ** attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return min(base_delay + jitter, MAX_BACKOFF)

    async def _do_request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        auth: httpx.Auth | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """Execute a single HTTP request. _request wraps this with retry logic."""
        client = await self._get_client()

        request_headers = dict(self._get_auth_headers()) if authenticated else {}
        if headers:
            request_headers.update(headers)

        if self.config.log_requests:
            logger.debug(f"[{self.provider}] {method} {path} params={params} body={json}")

        try:
            response = await client.request(
                method=method,
                url=path,
                params=params,
                json=json,
                data=data,
                headers=request_headers,
                auth=auth,
            )
        except httpx.TimeoutException as e:
            raise IntegrationError(
                f"Request timeout: {e}",
                self.provider,
                retryable=True,
            ) from e
        except httpx.NetworkError as e:
            raise IntegrationError(
                f"Network error: {e}",
                self.provider,
                retryable=True,
            ) from e

        if self.config.log_responses:
            logger.debug(
                f"[{self.provider}] Response: status={response.status_code} "
                f"body={response.text[:500] if response.text else 'empty'}"
            )

        self._record_rate_limit(response)
        self._check_response(response)
        return response

    def _record_rate_limit(self, response: httpx.Response) -> None:
        """Capture x-rate-limit-* / x-ratelimit-* headers when the vendor sends them."""
        h = response.headers
        limit = h.get("x-rate-limit-limit") or h.get("x-ratelimit-limit")
        remaining = h.get("x-rate-limit-remaining") or h.get("x-ratelimit-remaining")
        if limit is None or remaining is None:
            return

        reset = h.get("x-rate-limit-reset") or h.get("x-ratelimit-reset")
        reset_time = None
        if reset and reset.isdigit():
            reset_time = datetime.fromtimestamp(int(reset), tz=timezone.utc)

        try:
            self._rate_limit_info = RateLimitInfo(
                limit=int(limit),
                remaining=int(remaining),
                reset_time=reset_time,
            )
        except ValueError:
            logger.debug(f"[{self.provider}] Unparseable rate limit headers: {limit}/{remaining}")

    def _check_response(self, response: httpx.Response) -> None:
        """
        Raise the matching IntegrationError for a non-2xx response.

        Raises:
            AuthenticationError: For 401/403
            RateLimitError: For 429
            NotFoundError: For 404
            ValidationError: For 400/422
            IntegrationError: For other errors
        """
        if response.is_success:
            return

        status = response.status_code
        body = response.text

        if status in (401, 403):
            raise AuthenticationError(
                f"Authentication failed: {body}",
                self.provider,
                status_code=status,
                response_body=body,
            )

        if status == 429:
            # Without a usable Retry-After, _calculate_backoff falls back to exponential delay
            retry_after = response.headers.get("Retry-After")
            try:
                delay = float(retry_after) if retry_after else None
            except ValueError:
                delay = None
            raise RateLimitError(
                "Rate limit exceeded",
                self.provider,
                status_code=status,
                response_body=body,
                retry_after=delay,
            )

        if status == 404:
            raise NotFoundError(
                f"Resource not found: {body}",
                self.provider,
                status_code=status,
                response_body=body,
            )

        if status in (400, 422):
            raise ValidationError(
                f"Validation error: {body}",
                self.provider,
                status_code=status,
                response_body=body,
            )

        raise IntegrationError(
            f"Request failed: {body}",
            self.provider,
            status_code=status,
            response_body=body,
            retryable=status >= 500,
        )

    async def _call(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        retries: int | None = None,
        **kwargs: Any,
    ) -> Any:
        """Protected request returning decoded JSON (None for empty bodies)."""
        response = await self.execute_with_protection(
            operation,
            lambda: self._request(method, path, **kwargs),
            retries=retries,
        )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _extract_items(body: Any) -> list[Any]:
        if isinstance(body, list):
            return body
        if isinstance(body, dict):
            for key in ("items", "data", "results", "elements"):
                if isinstance(body.get(key), list):
                    return body[key]
        return []

    @staticmethod
    def _extract_next_cursor(body: Any) -> str | None:
        if not isinstance(body, dict):
            return None
        meta = body.get("meta") if isinstance(body.get("meta"), dict) else {}
        paging = body.get("paging") if isinstance(body.get("paging"), dict) else {}
        return (
            body.get("nextPageToken")
            or body.get("next_cursor")
            or body.get("next_page_id")
            or meta.get("next_token")
            or paging.get("next")
        )

    async def _paginate(
        self,
        operation: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        cursor_param: str = "cursor",
        limit: int | None = None,
        max_pages: int = MAX_PAGES,
    ) -> list[Any]:
        """
        Follow cursor pagination until exhausted, limit reached or max_pages.

        Items come from items/data/results/elements; the next cursor from
        nextPageToken, next_cursor, next_page_id, meta.next_token or paging.next.
        """
        items: list[Any] = []
        query = dict(params or {})

        for _ in range(max_pages):
            body = await self._call(operation, "GET", path, params=query)
            items.extend(self._extract_items(body))

            if limit is not None and len(items) >= limit:
                return items[:limit]

            cursor = self._extract_next_cursor(body)
            if not cursor:
                return items
            query[cursor_param] = cursor

        logger.warning(f"[{self.provider}] {operation}: stopped after {max_pages} pages")

        return items

    # -------------------------------------------------------------------------
    # Protection
    # -------------------------------------------------------------------------

    async def execute_with_protection(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        *,
        retries: int | None = None,
    ) -> T:
        """
        Run fn through the protection service, or directly when none is set.

        Errors are logged and re-raised unchanged.
        """
        try:
            if self.protection is None:
                return await fn()
            return await self.protection.execute(
                self.provider,
                operation,
                fn,
                retries=retries,
                key=self.user_id,
            )
        except Exception as e:
            logger.error(f"[{self.provider}] {operation} failed: {e}")
            raise

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    @abstractmethod
    async def _verify_credentials(self) -> dict[str, Any]:
        """Call an identity endpoint and return the raw profile."""
        ...

    async def authenticate(self) -> AuthResult:
        """Check the current credentials against the vendor."""
        try:
            await self.execute_with_protection("authenticate", self._verify_credentials)
        except Exception as e:
            logger.error(f"[{self.provider}] Authentication failed: {e}")
            return AuthResult(success=False, error=f"Authentication failed: {e}")

        logger.info(f"[{self.provider}] Authenticated user {self.user_id}")
        return AuthResult(
            success=True,
            access_token=self.access_token or None,
            refresh_token=self.refresh_token_value,
            expires_at=self.token_expires_at,
            scope=list(self.config.scopes or self.default_scopes),
        )

    async def refresh_token(self) -> AuthResult:
        """
        Exchange the refresh token for a new access token.

        Vendors without expiring tokens (token_url is None) re-run
        authenticate() instead.
        """
        if self.token_url is None:
            return await self.authenticate()

        if not self.refresh_token_value:
            return AuthResult(success=False, error="No refresh token available")
        if not self.config.client_id or not self.config.client_secret:
            return AuthResult(success=False, error="Client credentials not configured")

        form = {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token_value,
        }
        auth: httpx.BasicAuth | None = None
        if self.token_auth_basic:
            auth = httpx.BasicAuth(self.config.client_id, self.config.client_secret)
        else:
            form["client_id"] = self.config.client_id
            form["client_secret"] = self.config.client_secret

        try:
            response = await self._request(
                "POST",
                self.token_url,
                data=form,
                auth=auth,
                authenticated=False,
            )
            body = response.json()
        except Exception as e:
            logger.error(f"[{self.provider}] Token refresh failed: {e}")
            return AuthResult(success=False, error=f"Token refresh failed: {e}")

        return self._apply_token_response(body)

    def _apply_token_response(self, body: dict[str, Any]) -> AuthResult:
        token = body.get("access_token")
        if not token:
            return AuthResult(success=False, error="Token response did not include an access_token")

        self.access_token = token
        self.refresh_token_value = body.get("refresh_token") or self.refresh_token_value

        expires_in = body.get("expires_in")
        self.token_expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in)) if expires_in else None
        )

        scope = body.get("scope") or ""
        scopes = scope.replace(",", " ").split() if isinstance(scope, str) else list(scope)

        logger.info(f"[{self.provider}] Refreshed access token for user {self.user_id}")
        return AuthResult(
            success=True,
            access_token=self.access_token,
            refresh_token=self.refresh_token_value,
            expires_at=self.token_expires_at,
            scope=scopes,
        )

    async def revoke_access(self) -> bool:
        """Forget tokens, drop caches and close the HTTP client."""
        self.access_token = ""
        self.refresh_token_value = None
        self.token_expires_at = None
        self.clear_cache()
        await self.close()
        logger.info(f"[{self.provider}] Revoked access for user {self.user_id}")
        return True

    # -------------------------------------------------------------------------
    # Connection status
    # -------------------------------------------------------------------------

    async def test_connection(self) -> ConnectionStatus:
        """Probe the vendor. Never raises."""
        try:
            profile = await self.execute_with_protection(
                "test_connection", self._verify_credentials
            )
        except Exception as e:
            return ConnectionStatus(
                is_connected=False,
                error=str(e),
                rate_limit_info=self._rate_limit_info,
            )

        return ConnectionStatus(
            is_connected=True,
            rate_limit_info=self._rate_limit_info,
            details=self._connection_details(profile),
        )

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        """Subset of the identity response worth surfacing in status checks."""
        return {}

    async def get_connection_status(self) -> ConnectionStatus:
        return await self.test_connection()

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_capabilities(self) -> list[IntegrationCapability]:
        ...

    def validate_required_scopes(self, scopes: list[str]) -> bool:
        """True when every requested scope is declared by some capability."""
        available = {s for cap in self.get_capabilities() for s in cap.required_scopes}
        return all(scope in available for scope in scopes)

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    @abstractmethod
    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        """Resource name -> coroutine returning the synced items."""
        ...

    async def sync_data(self, last_sync_time: datetime | None = None) -> SyncResult:
        """
        Sync every resource concurrently.

        Partial failures are reported in the result. The last sync time
        only advances when every branch succeeded, so the next incremental
        sync still covers what a failed branch missed.

        Raises:
            SyncError: If every branch failed
        """
        logger.info(f"[{self.provider}] Starting sync for user {self.user_id}")
        started_at = datetime.now(timezone.utc)
        result = await run_sync(
            self.provider,
            self._sync_branches(last_sync_time),
            last_sync_time=last_sync_time,
        )
        if result.success:
            self._last_sync_time = started_at
        else:
            logger.warning(f"[{self.provider}] Partial sync, last sync time stays at {self._last_sync_time}")
        return result

    async def sync(self, last_sync_time: datetime | None = None) -> SyncResult:
        return await self.sync_data(last_sync_time)

    async def get_last_sync_time(self) -> datetime | None:
        return self._last_sync_time

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @classmethod
    def extract_webhook_signature(cls, headers: Mapping[str, Any], payload: Any = None) -> str | None:
        h = normalize_headers(headers)
        if cls.signature_header:
            return h.get(cls.signature_header)
        return h.get("x-signature") or h.get("signature")

    @classmethod
    def extract_webhook_event(cls, headers: Mapping[str, Any], payload: Any) -> str | None:
        if cls.webhook_event_header:
            event = normalize_headers(headers).get(cls.webhook_event_header)
            if event:
                return event
        return extract_event_type(payload, cls.webhook_event_fields)

    @classmethod
    def check_signature(cls, secret: str | None, body: bytes | str, signature: str | None) -> bool:
        """Verify a signature against an explicit secret."""
        if not secret:
            logger.warning(f"[{cls.provider}] No webhook secret configured, rejecting webhook")
            return False
        return verify_signature(
            secret,
            body,
            signature,
            algorithm=cls.signature_algorithm,
            encoding=cls.signature_encoding,
            prefix=cls.signature_prefix,
        )

    @classmethod
    def parse_webhook(cls, headers: Mapping[str, Any], body: bytes | str) -> WebhookPayload:
        """Normalize a raw webhook request into a WebhookPayload."""
        payload = parse_body(body)
        event = cls.extract_webhook_event(headers, payload)
        if not event:
            raise WebhookError("Webhook payload has no event type", cls.provider)
        return WebhookPayload(
            provider=cls.provider,
            event=event,
            data=payload,
            signature=cls.extract_webhook_signature(headers, payload),
            headers=normalize_headers(headers),
        )

    def validate_webhook_signature(self, body: bytes | str, signature: str | None) -> bool:
        return self.check_signature(self.config.webhook_secret, body, signature)

    @classmethod
    def resources_for_event(cls, event: str) -> tuple[str, ...] | None:
        """Cache resources a webhook event invalidates; None for unknown events."""
        if event in cls.webhook_events:
            return cls.webhook_events[event]
        for pattern, resources in cls.webhook_events.items():
            if pattern.endswith("*") and event.startswith(pattern[:-1]):
                return resources
        return None

    async def on_webhook_event(self, payload: WebhookPayload, resources: tuple[str, ...]) -> Any:
        """Apply a known event. Default: invalidate the mapped caches."""
        for resource in resources:
            self.cache.clear(resource)
        return {"event": payload.event, "invalidated": list(resources)}

    async def handle_webhook(self, payload: WebhookPayload) -> ApiResponse:
        """Route a webhook by event. Unknown events are logged and acknowledged."""
        logger.info(f"[{self.provider}] Webhook received: {payload.event}")

        resources = self.resources_for_event(payload.event)
        if resources is None:
            logger.warning(f"[{self.provider}] Unhandled webhook event: {payload.event}")
            return ApiResponse.ok(message=f"Event {payload.event} ignored")

        try:
            data = await self.on_webhook_event(payload, resources)
        except Exception as e:
            logger.error(f"[{self.provider}] Webhook handling failed for {payload.event}: {e}")
            return ApiResponse.fail(f"Webhook handling failed: {e}")

        return ApiResponse.ok(data=data, message=f"Event {payload.event} processed")

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear_all()

    async def __aenter__(self) -> BaseIntegration:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "AuthenticationError",
    "BaseIntegration",
    "IntegrationConfig",
    "IntegrationError",
    "NotFoundError",
    "RateLimitError",
    "SyncError",
    "UnsupportedProviderError",
    "ValidationError",
    "WebhookError",
]
