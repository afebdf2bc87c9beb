"""
Tests for the Vercel adapter.
"""
import json
from datetime import datetime, timezone

import pytest

from aurelius.integrations.vercel import VercelIntegration
from aurelius.integrations.webhooks import compute_signature

USER = {"user": {"uid": "u_1", "email": "dev@example.com", "username": "dev"}}


@pytest.fixture
def vercel(make_integration, vendor):
    vendor.add("GET", "/v2/user", USER)
    return make_integration(VercelIntegration, webhook_secret="whsec")


@pytest.fixture
def team_vercel(make_integration, vendor):
    vendor.add("GET", "/v2/user", USER)
    return make_integration(VercelIntegration, team_id="team_9")


class TestUser:
    @pytest.mark.asyncio
    async def test_authenticate_reads_nested_user(self, vercel):
        result = await vercel.authenticate()

        assert result.success is True
        assert vercel.cache.get("user", "me").id == "u_1"

    @pytest.mark.asyncio
    async def test_refresh_revalidates_token(self, vercel, vendor):
        result = await vercel.refresh_token()

        assert result.success is True
        assert len(vendor.calls("GET", "/v2/user")) == 1

    @pytest.mark.asyncio
    async def test_connection_details_include_team(self, team_vercel):
        status = await team_vercel.test_connection()
        assert status.details == {"user_id": "u_1", "username": "dev", "team_id": "team_9"}


class TestProjectsAndDeployments:
    """Tests for projects, deployments and team scoping."""

    @pytest.mark.asyncio
    async def test_team_id_on_every_request(self, team_vercel, vendor):
        vendor.add("GET", "/v9/projects", {"projects": [{"id": "prj_1", "name": "site"}]})

        projects = await team_vercel.get_projects(limit=20)

        params = vendor.last("GET", "/v9/projects").url.params
        assert params["teamId"] == "team_9"
        assert params["limit"] == "20"
        assert team_vercel.cache.get("projects", "prj_1") is projects[0]

    @pytest.mark.asyncio
    async def test_no_team_id_for_personal_accounts(self, vercel, vendor):
        vendor.add("GET", "/v9/projects", {"projects": []})
        await vercel.get_projects()
        assert "teamId" not in vendor.last("GET", "/v9/projects").url.params

    @pytest.mark.asyncio
    async def test_create_project_payload(self, vercel, vendor):
        vendor.add("POST", "/v9/projects", {"id": "prj_2", "name": "docs", "framework": "nextjs"})

        project = await vercel.create_project(
            "docs", framework="nextjs", git_repository={"type": "github", "repo": "acme/docs"}
        )

        body = json.loads(vendor.last("POST", "/v9/projects").content)
        assert body == {"name": "docs", "framework": "nextjs", "gitRepository": {"type": "github", "repo": "acme/docs"}}
        assert project.framework == "nextjs"

    @pytest.mark.asyncio
    async def test_deployment_shapes(self, vercel, vendor):
        vendor.add("GET", "/v6/deployments", {"deployments": [{"uid": "dpl_1", "name": "site", "state": "BUILDING"}]})
        vendor.add("GET", "/v13/deployments/dpl_2", {"id": "dpl_2", "name": "site", "readyState": "READY"})

        listed = await vercel.get_deployments(project_id="prj_1")
        single = await vercel.get_deployment("dpl_2")

        assert listed[0].status == "BUILDING"
        assert single.id == "dpl_2"
        assert single.status == "READY"
        assert vendor.last("GET", "/v6/deployments").url.params["projectId"] == "prj_1"

    @pytest.mark.asyncio
    async def test_cancel_deployment_evicts(self, vercel, vendor):
        vercel.cache.set("deployments", "dpl_1", object())
        vendor.add("PATCH", "/v12/deployments/dpl_1/cancel", {"uid": "dpl_1", "state": "CANCELED"})

        assert await vercel.cancel_deployment("dpl_1") is True
        assert vercel.cache.get("deployments", "dpl_1") is None

    @pytest.mark.asyncio
    async def test_domains_cached_until_added(self, vercel, vendor):
        vendor.add("GET", "/v5/domains", {"domains": [{"name": "example.com", "verified": True}]})
        vendor.add("POST", "/v5/domains", {"domain": {"name": "example.org"}})

        await vercel.get_domains()
        await vercel.get_domains()
        added = await vercel.add_domain("example.org")

        assert len(vendor.calls("GET", "/v5/domains")) == 1
        assert added.name == "example.org"
        assert vercel.cache.size("domains") == 0

    @pytest.mark.asyncio
    async def test_create_environment_variable(self, vercel, vendor):
        vendor.add("POST", "/v9/projects/prj_1/env", {"created": {"id": "env_1", "key": "API_KEY", "target": ["production"]}})

        env = await vercel.create_environment_variable("prj_1", "API_KEY", "s3cret", ["production"])

        assert env.key == "API_KEY"
        assert json.loads(vendor.last("POST", "/v9/projects/prj_1/env").content)["type"] == "encrypted"


class TestSyncAndWebhooks:
    @pytest.mark.asyncio
    async def test_sync_since_in_milliseconds(self, vercel, vendor):
        vendor.add("GET", "/v9/projects", {"projects": [{"id": "prj_1", "name": "site"}]})
        vendor.add("GET", "/v6/deployments", {"deployments": []})
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)

        result = await vercel.sync_data(last_sync_time=since)

        assert result.metadata["branches"] == {"projects": 1, "deployments": 0}
        assert vendor.last("GET", "/v6/deployments").url.params["since"] == str(int(since.timestamp() * 1000))

    def test_sha1_signature(self, vercel):
        body = b'{"type": "deployment.succeeded"}'
        signature = compute_signature("whsec", body, algorithm="sha1")

        assert vercel.validate_webhook_signature(body, signature) is True
        assert vercel.validate_webhook_signature(body, compute_signature("whsec", body)) is False

    @pytest.mark.asyncio
    async def test_deployment_event_clears_deployments(self, vercel, vendor):
        vendor.add("GET", "/v6/deployments", {"deployments": [{"uid": "dpl_1", "name": "site"}]})
        await vercel.get_deployments()

        payload = VercelIntegration.parse_webhook({}, b'{"type": "deployment.succeeded"}')
        await vercel.handle_webhook(payload)

        assert vercel.cache.size("deployments") == 0

    @pytest.mark.asyncio
    async def test_unknown_event_ignored(self, vercel):
        payload = VercelIntegration.parse_webhook({}, b'{"type": "integration-configuration.removed"}')
        response = await vercel.handle_webhook(payload)

        assert response.success is True
        assert "ignored" in response.message
