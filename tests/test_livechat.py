"""
Tests for the LiveChat adapter.
"""
import json
from datetime import datetime, timezone

import pytest

from aurelius.integrations.livechat import LiveChatIntegration

ACCOUNT = {"account_id": "acc-1", "email": "agent@example.com", "organization_id": "org-1"}


@pytest.fixture
def livechat(make_integration, vendor):
    vendor.add("GET", "/v2/accounts/me", ACCOUNT)
    return make_integration(LiveChatIntegration, webhook_secret="lc-secret")


class TestAccount:
    @pytest.mark.asyncio
    async def test_authenticate_against_accounts_service(self, livechat, vendor):
        result = await livechat.authenticate()

        assert result.success is True
        assert vendor.last("GET", "/v2/accounts/me").url.host == "accounts.livechat.com"

    @pytest.mark.asyncio
    async def test_connection_details(self, livechat):
        status = await livechat.test_connection()
        assert status.details == {
            "account_id": "acc-1",
            "email": "agent@example.com",
            "organization_id": "org-1",
        }


class TestRpcActions:
    """Tests for the action-style Agent and Configuration APIs."""

    @pytest.mark.asyncio
    async def test_agents_cached(self, livechat, vendor):
        vendor.add("POST", "/v3.4/configuration/action/list_agents", [{"id": "a@example.com", "name": "A"}])

        agents = await livechat.get_agents()
        await livechat.get_agents()

        assert agents[0].id == "a@example.com"
        assert len(vendor.calls("POST", "/v3.4/configuration/action/list_agents")) == 1
        body = json.loads(vendor.last("POST", "/v3.4/configuration/action/list_agents").content)
        assert body["fields"] == ["groups", "job_title"]

    @pytest.mark.asyncio
    async def test_update_agent_clears_agents(self, livechat, vendor):
        vendor.add("POST", "/v3.4/configuration/action/list_agents", [{"id": "a@example.com"}])
        vendor.add("POST", "/v3.4/configuration/action/update_agent", {})
        await livechat.get_agents()

        assert await livechat.update_agent("a@example.com", job_title="Lead") is True
        assert livechat.cache.size("agents") == 0

    @pytest.mark.asyncio
    async def test_chats_summary(self, livechat, vendor):
        vendor.add(
            "POST",
            "/v3.4/agent/action/list_chats",
            {"chats_summary": [{"id": "c1", "last_thread_summary": {"id": "t1", "active": True}}]},
        )

        chats = await livechat.get_chats(limit=5)

        assert chats[0].is_active is True
        assert json.loads(vendor.last("POST", "/v3.4/agent/action/list_chats").content) == {
            "limit": 5,
            "sort_order": "desc",
        }

    @pytest.mark.asyncio
    async def test_messages_filtered_from_thread_events(self, livechat, vendor):
        vendor.add(
            "POST",
            "/v3.4/agent/action/list_threads",
            {"threads": [{"id": "t1", "events": [
                {"id": "e1", "type": "message", "text": "hi"},
                {"id": "e2", "type": "system_message", "text": "joined"},
            ]}]},
        )

        messages = await livechat.get_messages("c1")

        assert [m.id for m in messages] == ["e1"]

    @pytest.mark.asyncio
    async def test_send_message(self, livechat, vendor):
        vendor.add("POST", "/v3.4/agent/action/send_event", {"event_id": "ev-9"})

        assert await livechat.send_message("c1", "Hello") == "ev-9"
        body = json.loads(vendor.last("POST", "/v3.4/agent/action/send_event").content)
        assert body["event"] == {"type": "message", "text": "Hello", "visibility": "all"}

    @pytest.mark.asyncio
    async def test_transfer_to_group(self, livechat, vendor):
        vendor.add("POST", "/v3.4/agent/action/transfer_chat", {})

        assert await livechat.transfer_chat("c1", group_ids=[2]) is True
        body = json.loads(vendor.last("POST", "/v3.4/agent/action/transfer_chat").content)
        assert body["target"] == {"type": "group", "ids": [2]}

    @pytest.mark.asyncio
    async def test_transfer_needs_target(self, livechat):
        with pytest.raises(ValueError):
            await livechat.transfer_chat("c1")

    @pytest.mark.asyncio
    async def test_report_filters(self, livechat, vendor):
        vendor.add("POST", "/v3.4/reports/chats/total_chats", {"total": 12, "records": {"2024-01-01": {"total": 12}}})
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 2, tzinfo=timezone.utc)

        report = await livechat.get_chats_summary(start, end)

        assert report.total == 12
        body = json.loads(vendor.last("POST", "/v3.4/reports/chats/total_chats").content)
        assert body["filters"] == {"from": start.isoformat(), "to": end.isoformat()}


class TestSyncAndWebhooks:
    @pytest.mark.asyncio
    async def test_sync_uses_last_sync_time(self, livechat, vendor):
        vendor.add("POST", "/v3.4/agent/action/list_archives", {"chats": [{"id": "c1"}, {"id": "c2"}]})
        vendor.add("POST", "/v3.4/configuration/action/list_agents", [])
        vendor.add("POST", "/v3.4/configuration/action/list_groups", [{"id": 0, "name": "General"}])
        vendor.add("POST", "/v3.4/agent/action/list_customers", {"customers": [{"id": "cu1"}]})
        since = datetime(2024, 3, 1, tzinfo=timezone.utc)

        result = await livechat.sync_data(last_sync_time=since)

        assert result.metadata["branches"] == {"chats": 2, "agents": 0, "groups": 1, "customers": 1}
        body = json.loads(vendor.last("POST", "/v3.4/agent/action/list_archives").content)
        assert body["filters"] == {"from": since.isoformat()}

    def test_secret_key_in_body_authenticates(self):
        body = json.dumps({"action": "incoming_chat", "secret_key": "lc-secret"}).encode()
        signature = LiveChatIntegration.extract_webhook_signature({}, json.loads(body))

        assert LiveChatIntegration.check_signature("lc-secret", body, signature) is True
        assert LiveChatIntegration.check_signature("other", body, signature) is False
        assert LiveChatIntegration.check_signature(None, body, signature) is False
        assert LiveChatIntegration.extract_webhook_signature({}, None) is None

    def test_non_string_secret_key_rejected(self):
        body = json.dumps({"action": "incoming_chat", "secret_key": 12345}).encode()

        assert LiveChatIntegration.extract_webhook_signature({}, json.loads(body)) is None
        assert LiveChatIntegration.check_signature("lc-secret", body, 12345) is False
        assert LiveChatIntegration.check_signature("lc-secret", body, ["lc-secret"]) is False

    @pytest.mark.asyncio
    async def test_chat_event_clears_chats(self, livechat, vendor):
        vendor.add("POST", "/v3.4/agent/action/list_chats", {"chats_summary": [{"id": "c1"}]})
        await livechat.get_chats()

        payload = LiveChatIntegration.parse_webhook({}, b'{"action": "chat_deactivated"}')
        response = await livechat.handle_webhook(payload)

        assert response.data["invalidated"] == ["chats"]
        assert livechat.cache.size("chats") == 0

    @pytest.mark.asyncio
    async def test_incoming_message_invalidates_nothing(self, livechat):
        payload = LiveChatIntegration.parse_webhook({}, b'{"action": "incoming_message"}')
        response = await livechat.handle_webhook(payload)

        assert response.success is True
        assert response.data["invalidated"] == []
