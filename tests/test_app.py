"""
Tests for the FastAPI application: integration management and webhooks.
"""
import json

import pytest
from fastapi.testclient import TestClient

from aurelius import __version__
from aurelius.app.main import app
from aurelius.config.settings import load_catalog
from aurelius.integrations.registry import IntegrationRegistry, set_registry
from aurelius.integrations.webhooks import compute_signature
from aurelius.resilience import ProtectionService

VERCEL_USER = {"user": {"uid": "u_1", "email": "dev@example.com", "username": "dev"}}


@pytest.fixture
def registry(vendor):
    registry = IntegrationRegistry(
        catalog=load_catalog(),
        protection=ProtectionService(),
        transport=vendor.transport,
    )
    set_registry(registry)
    return registry


@pytest.fixture
def client(registry):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def connected(client, vendor):
    vendor.add("GET", "/v2/user", VERCEL_USER)
    response = client.post(
        "/api/v1/integrations/vercel/connect",
        json={"user_id": "user-1", "access_token": "tok", "config": {"max_retries": 0, "retry_delay": 0.0}},
    )
    assert response.status_code == 200
    return client


class TestRoot:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"service": "aurelius-integrations", "version": __version__, "status": "running"}

    def test_health_without_connections(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["connections"] == 0
        assert body["providers"] == 8


class TestIntegrationsApi:
    """Tests for /api/v1/integrations."""

    def test_list_integrations(self, client):
        body = client.get("/api/v1/integrations").json()

        providers = {i["provider"]: i for i in body["integrations"]}
        assert set(providers) == {
            "linear", "linkedin", "livechat", "twitter", "vercel", "woocommerce", "workato", "wrike",
        }
        assert providers["vercel"]["category"] == "developer_tools"
        assert any(c["name"] == "deployments" for c in providers["vercel"]["capabilities"])

    def test_connect_unsupported_provider(self, client):
        response = client.post("/api/v1/integrations/myspace/connect", json={"user_id": "user-1"})
        assert response.status_code == 400

    def test_connect_invalid_config(self, client):
        response = client.post("/api/v1/integrations/woocommerce/connect", json={"user_id": "user-1"})

        assert response.status_code == 400
        assert "store URL" in response.json()["detail"]

    def test_connect_rejected_credentials(self, client, vendor, registry):
        vendor.add("GET", "/v2/user", {"error": "forbidden"}, status=403)

        response = client.post(
            "/api/v1/integrations/vercel/connect",
            json={"user_id": "user-1", "access_token": "bad"},
        )

        assert response.status_code == 401
        assert registry.get("vercel", "user-1") is None

    def test_connect_tracks_instance(self, connected, registry):
        assert registry.get("vercel", "user-1") is not None
        body = connected.get("/api/v1/integrations").json()
        vercel = next(i for i in body["integrations"] if i["provider"] == "vercel")
        assert vercel["connections"] == 1

    def test_sync(self, connected, vendor):
        vendor.add("GET", "/v9/projects", {"projects": [{"id": "prj_1", "name": "site"}]})
        vendor.add("GET", "/v6/deployments", {"deployments": []})

        response = connected.post("/api/v1/integrations/vercel/sync", params={"user_id": "user-1"})

        assert response.status_code == 200
        assert response.json()["items_processed"] == 1

    def test_sync_all_branches_failing(self, connected, vendor):
        vendor.add("GET", "/v9/projects", {"error": "boom"}, status=500)
        vendor.add("GET", "/v6/deployments", {"error": "boom"}, status=500)

        response = connected.post("/api/v1/integrations/vercel/sync", params={"user_id": "user-1"})

        assert response.status_code == 502
        assert "All sync operations failed" in response.json()["detail"]

    def test_sync_without_connection(self, client):
        response = client.post("/api/v1/integrations/vercel/sync", params={"user_id": "nobody"})
        assert response.status_code == 404

    def test_status(self, connected):
        body = connected.get("/api/v1/integrations/vercel/status", params={"user_id": "user-1"}).json()

        assert body["is_connected"] is True
        assert body["details"]["username"] == "dev"
        assert body["last_sync"] is None

    def test_disconnect(self, connected, registry):
        response = connected.delete("/api/v1/integrations/vercel", params={"user_id": "user-1"})

        assert response.status_code == 200
        assert registry.get("vercel", "user-1") is None
        again = connected.delete("/api/v1/integrations/vercel", params={"user_id": "user-1"})
        assert again.status_code == 404

    def test_health_checks(self, connected):
        body = connected.get("/api/v1/integrations/health").json()

        assert body["summary"]["healthy"] == 1
        assert body["checks"][0]["provider"] == "vercel"


class TestWebhooksApi:
    """Tests for /api/v1/webhooks."""

    BODY = json.dumps({"type": "deployment.succeeded", "payload": {"deployment": {"id": "dpl_1"}}}).encode()

    def _post(self, client, body, signature=None):
        headers = {"content-type": "application/json"}
        if signature is not None:
            headers["x-vercel-signature"] = signature
        return client.post("/api/v1/webhooks/vercel", content=body, headers=headers)

    def test_unsupported_provider(self, client):
        response = client.post("/api/v1/webhooks/myspace", content=b"{}")
        assert response.status_code == 400

    def test_missing_signature(self, client, monkeypatch):
        monkeypatch.setenv("VERCEL_WEBHOOK_SECRET", "whsec")

        response = self._post(client, self.BODY)

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing webhook signature"

    def test_invalid_signature(self, client, monkeypatch):
        monkeypatch.setenv("VERCEL_WEBHOOK_SECRET", "whsec")

        response = self._post(client, self.BODY, compute_signature("other", self.BODY, algorithm="sha1"))

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid webhook signature"

    def test_no_secret_configured_rejects(self, client, monkeypatch):
        monkeypatch.delenv("VERCEL_WEBHOOK_SECRET", raising=False)

        response = self._post(client, self.BODY, compute_signature("whsec", self.BODY, algorithm="sha1"))

        assert response.status_code == 401

    def test_payload_without_event(self, client, monkeypatch):
        monkeypatch.setenv("VERCEL_WEBHOOK_SECRET", "whsec")
        body = b'{"payload": {}}'

        response = self._post(client, body, compute_signature("whsec", body, algorithm="sha1"))

        assert response.status_code == 400

    def test_dispatched_to_live_instances(self, connected, registry, vendor, monkeypatch):
        monkeypatch.setenv("VERCEL_WEBHOOK_SECRET", "whsec")
        vercel = registry.get("vercel", "user-1")
        vercel.cache.set("deployments", "dpl_1", object())

        response = self._post(connected, self.BODY, compute_signature("whsec", self.BODY, algorithm="sha1"))

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Webhook deployment.succeeded processed",
            "event": "deployment.succeeded",
            "dispatched": 1,
            "failed": 0,
            "skipped": 0,
        }
        assert vercel.cache.size("deployments") == 0

    def test_instance_secret_must_also_verify(self, connected, registry, vendor, monkeypatch):
        monkeypatch.setenv("VERCEL_WEBHOOK_SECRET", "whsec")
        vendor.add("GET", "/v2/user", VERCEL_USER)
        connected.post(
            "/api/v1/integrations/vercel/connect",
            json={"user_id": "user-2", "access_token": "tok", "config": {"webhook_secret": "other"}},
        )
        shared = registry.get("vercel", "user-1")
        separate = registry.get("vercel", "user-2")
        shared.cache.set("deployments", "dpl_1", object())
        separate.cache.set("deployments", "dpl_1", object())

        response = self._post(connected, self.BODY, compute_signature("whsec", self.BODY, algorithm="sha1"))

        body = response.json()
        assert body["dispatched"] == 1
        assert body["skipped"] == 1
        assert shared.cache.size("deployments") == 0
        assert separate.cache.size("deployments") == 1

    def test_numeric_secret_key_is_missing_signature(self, client, monkeypatch):
        monkeypatch.setenv("LIVECHAT_WEBHOOK_SECRET", "lc-secret")

        response = client.post(
            "/api/v1/webhooks/livechat",
            content=json.dumps({"action": "incoming_chat", "secret_key": 12345}).encode(),
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing webhook signature"

    def test_reachability(self, client, monkeypatch):
        monkeypatch.setenv("VERCEL_WEBHOOK_SECRET", "whsec")

        body = client.post("/api/v1/webhooks/vercel/test").json()

        assert body["success"] is True
        assert body["signature_configured"] is True
