"""
Pytest configuration and fixtures for Aurelius tests.

Vendor APIs are faked with httpx.MockTransport: register routes on the
`vendor` fixture and hand `vendor.transport` to the adapter.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

# Add the repository root to path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from aurelius.config.settings import get_catalog, get_settings  # noqa: E402
from aurelius.integrations.base import BaseIntegration, IntegrationConfig  # noqa: E402
from aurelius.integrations.health import set_health_checker  # noqa: E402
from aurelius.integrations.registry import reset_registry  # noqa: E402
from aurelius.resilience.protection import set_protection_service  # noqa: E402

Handler = Callable[[httpx.Request], httpx.Response]


class MockVendor:
    """
    Route table for a fake vendor API.

    Routes match on method and URL path. Unmatched requests get a 404.
    """

    def __init__(self):
        self._routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._dispatch)

    def add(
        self,
        method: str,
        path: str,
        json: Any = None,
        *,
        status: int = 200,
        headers: dict[str, str] | None = None,
        handler: Handler | None = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if json is None:
                    return httpx.Response(status, headers=headers)
                return httpx.Response(status, json=json, headers=headers)

        self._routes[(method.upper(), path)] = handler

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": f"no route for {request.method} {request.url.path}"})
        return handler(request)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def last(self, method: str, path: str) -> httpx.Request:
        matching = self.calls(method, path)
        assert matching, f"{method} {path} was never called"
        return matching[-1]


@pytest.fixture(autouse=True)
def isolate_globals():
    """Fresh settings, catalogue and global services for every test."""
    get_settings.cache_clear()
    get_catalog.cache_clear()
    set_protection_service(None)
    set_health_checker(None)
    reset_registry()
    yield
    get_settings.cache_clear()
    get_catalog.cache_clear()
    set_protection_service(None)
    set_health_checker(None)
    reset_registry()


@pytest.fixture
def vendor() -> MockVendor:
    return MockVendor()


@pytest.fixture
def make_integration(vendor: MockVendor):
    """
    Factory for adapters wired to the mock vendor.

    Retries are off so failure paths do not sleep.
    """

    def factory(
        cls: type[BaseIntegration],
        *,
        access_token: str = "test-token",
        refresh_token: str | None = None,
        protection: Any = None,
        **config: Any,
    ) -> BaseIntegration:
        config.setdefault("max_retries", 0)
        config.setdefault("retry_delay", 0.0)
        config_class = getattr(cls, "config_class", IntegrationConfig)
        return cls(
            "user-1",
            access_token=access_token,
            refresh_token=refresh_token,
            config=config_class(**config),
            protection=protection,
            transport=vendor.transport,
        )

    return factory
