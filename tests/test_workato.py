"""
Tests for the Workato adapter.
"""
import json

import pytest

from aurelius.integrations.webhooks import compute_signature
from aurelius.integrations.workato import WorkatoIntegration

ME = {"id": 7, "name": "Ops Bot", "company_name": "Acme"}


@pytest.fixture
def workato(make_integration, vendor):
    vendor.add("GET", "/api/users/me", ME)
    return make_integration(WorkatoIntegration, webhook_secret="whsec")


class TestUser:
    @pytest.mark.asyncio
    async def test_connection_details(self, workato, vendor):
        status = await workato.test_connection()

        assert status.is_connected is True
        assert status.details == {"user_id": 7, "name": "Ops Bot", "company": "Acme"}
        assert vendor.last("GET", "/api/users/me").headers["authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_refresh_revalidates_token(self, workato, vendor):
        result = await workato.refresh_token()

        assert result.success is True
        assert len(vendor.calls("GET", "/api/users/me")) == 1


class TestRecipes:
    """Tests for recipe listing and lifecycle."""

    @pytest.mark.asyncio
    async def test_recipes_cached_per_filter(self, workato, vendor):
        vendor.add("GET", "/api/recipes", {"items": [{"id": 1, "name": "Sync leads", "running": True}]})

        running = await workato.get_recipes(running=True)
        await workato.get_recipes(running=True)
        await workato.get_recipes()

        assert running[0].running is True
        assert len(vendor.calls("GET", "/api/recipes")) == 2
        assert vendor.calls("GET", "/api/recipes")[0].url.params["running"] == "true"

    @pytest.mark.asyncio
    async def test_create_recipe_wraps_body(self, workato, vendor):
        vendor.add("POST", "/api/recipes", {"id": 3})

        recipe = await workato.create_recipe("Nightly export", '{"block": []}', folder_id="f1")

        assert json.loads(vendor.last("POST", "/api/recipes").content) == {
            "recipe": {"name": "Nightly export", "code": '{"block": []}', "folder_id": "f1"}
        }
        assert recipe.id == 3
        assert recipe.name == "Nightly export"

    @pytest.mark.asyncio
    async def test_start_and_stop(self, workato, vendor):
        vendor.add("GET", "/api/recipes", {"items": [{"id": 1, "name": "r"}]})
        vendor.add("PUT", "/api/recipes/1/start", {"success": True})
        vendor.add("PUT", "/api/recipes/1/stop", {"success": False})
        await workato.get_recipes()

        assert await workato.start_recipe("1") is True
        assert workato.cache.size("recipes") == 0
        assert await workato.stop_recipe("1") is False


class TestJobs:
    @pytest.mark.asyncio
    async def test_jobs_carry_recipe_id(self, workato, vendor):
        vendor.add("GET", "/api/recipes/1/jobs", {"items": [{"id": "j1", "status": "failed", "is_error": True}]})

        jobs = await workato.get_jobs(1, status="failed", limit=10)

        assert jobs[0].recipe_id == 1
        assert jobs[0].is_error is True
        params = vendor.last("GET", "/api/recipes/1/jobs").url.params
        assert params["per_page"] == "10"
        assert params["status"] == "failed"

    @pytest.mark.asyncio
    async def test_rerun_clears_jobs(self, workato, vendor):
        vendor.add("GET", "/api/recipes/1/jobs", {"items": [{"id": "j1"}]})
        vendor.add("POST", "/api/recipes/1/jobs/j1/rerun", {})
        await workato.get_jobs(1)

        assert await workato.rerun_job(1, "j1") is True
        assert workato.cache.size("jobs") == 0


class TestSyncAndWebhooks:
    @pytest.mark.asyncio
    async def test_sync_fans_jobs_out_over_recipes(self, workato, vendor):
        vendor.add("GET", "/api/recipes", {"items": [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]})
        vendor.add("GET", "/api/recipes/1/jobs", {"items": [{"id": "j1"}]})
        vendor.add("GET", "/api/recipes/2/jobs", {"items": [{"id": "j2"}, {"id": "j3"}]})
        vendor.add("GET", "/api/connections", {"items": [{"id": 5, "name": "Salesforce"}]})
        vendor.add("GET", "/api/folders", {"items": []})

        result = await workato.sync_data()

        assert result.success is True
        assert result.metadata["branches"] == {"recipes": 2, "connections": 1, "folders": 0, "jobs": 3}

    @pytest.mark.asyncio
    async def test_failing_branch_reported(self, workato, vendor):
        vendor.add("GET", "/api/recipes", {"items": []})
        vendor.add("GET", "/api/connections", {"message": "boom"}, status=500)
        vendor.add("GET", "/api/folders", {"items": []})

        result = await workato.sync_data()

        assert result.success is False
        assert any(e.startswith("connections sync failed") for e in result.errors)

    def test_signature(self, workato):
        body = b'{"event": "job_failed"}'
        assert workato.validate_webhook_signature(body, compute_signature("whsec", body)) is True

    def test_event_type_fallback(self):
        payload = WorkatoIntegration.parse_webhook({}, b'{"event_type": "recipe_stopped"}')
        assert payload.event == "recipe_stopped"

    @pytest.mark.asyncio
    async def test_job_event_clears_jobs(self, workato, vendor):
        vendor.add("GET", "/api/recipes/1/jobs", {"items": [{"id": "j1"}]})
        await workato.get_jobs(1)

        payload = WorkatoIntegration.parse_webhook({}, b'{"event": "job_failed"}')
        response = await workato.handle_webhook(payload)

        assert response.data["invalidated"] == ["jobs"]
        assert workato.cache.size("jobs") == 0
