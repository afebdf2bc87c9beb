"""
LiveChat adapter.

The Agent and Configuration APIs are RPC style: every method is a POST to
/<api>/action/<method> with a JSON body. The account behind the token comes
from the Accounts service.

Webhooks don't carry an HMAC. LiveChat puts the secret configured for the
webhook into the body as "secret_key"; a webhook is authentic when it
matches our copy.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Mapping

from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    LiveChatAgent,
    LiveChatChat,
    LiveChatCustomer,
    LiveChatGroup,
    LiveChatMessage,
    LiveChatReport,
    LiveChatThread,
)

logger = logging.getLogger(__name__)

ACCOUNTS_URL = "https://accounts.livechat.com/v2/accounts/me"

RECENT_CHATS_DAYS = 7


class LiveChatIntegration(BaseIntegration):
    provider = "livechat"
    name = "LiveChat"
    api_base_url = "https://api.livechatinc.com/v3.4"
    token_url = "https://accounts.livechat.com/v2/token"

    default_scopes = (
        "chats--all:ro",
        "chats--all:rw",
        "customers:ro",
        "customers:rw",
        "agents--all:ro",
        "agents--all:rw",
        "groups--all:ro",
        "reports_read",
    )
    cache_resources = ("chats", "customers", "agents", "groups")

    webhook_events = {
        "chat_*": ("chats",),
        "incoming_message": (),
        "message_updated": (),
        "customer_*": ("customers",),
        "agent_*": ("agents",),
    }
    webhook_event_fields = ("action", "event")

    # =========================================================================
    # RPC transport
    # =========================================================================

    async def _action(self, api: str, method: str, body: dict[str, Any] | None = None) -> Any:
        """Call /{api}/action/{method}."""
        return await self._call(method, "POST", f"/{api}/action/{method}", json=body or {})

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        return await self.get_my_account()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "account_id": profile.get("account_id"),
            "email": profile.get("email"),
            "organization_id": profile.get("organization_id"),
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(
                name="chat_management",
                description="Manage live chat conversations",
                required_scopes=["chats--all:ro", "chats--all:rw"],
            ),
            IntegrationCapability(
                name="customer_management",
                description="Access and manage customer data",
                required_scopes=["customers:ro", "customers:rw"],
            ),
            IntegrationCapability(
                name="agent_management",
                description="Manage chat agents and their status",
                required_scopes=["agents--all:ro", "agents--all:rw"],
            ),
            IntegrationCapability(
                name="messaging",
                description="Send and receive chat messages",
                required_scopes=["chats--all:rw"],
            ),
            IntegrationCapability(
                name="reports",
                description="Chat and agent activity reports",
                required_scopes=["reports_read"],
            ),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        since = last_sync_time or datetime.now(timezone.utc) - timedelta(days=RECENT_CHATS_DAYS)
        return {
            "chats": self.get_archived_chats(since=since),
            "agents": self.get_agents(),
            "groups": self.get_groups(),
            "customers": self.get_customers(),
        }

    # =========================================================================
    # Webhook authentication
    # =========================================================================

    @classmethod
    def extract_webhook_signature(cls, headers: Mapping[str, Any], payload: Any = None) -> str | None:
        secret_key = payload.get("secret_key") if isinstance(payload, dict) else None
        return secret_key if isinstance(secret_key, str) else None

    @classmethod
    def check_signature(cls, secret: str | None, body: bytes | str, signature: str | None) -> bool:
        if not secret:
            logger.warning("[livechat] No webhook secret configured, rejecting webhook")
            return False
        if not isinstance(signature, str) or not signature:
            return False
        return hmac.compare_digest(signature.encode(), secret.encode())

    # =========================================================================
    # Accounts and agents
    # =========================================================================

    async def get_my_account(self) -> dict[str, Any]:
        return await self._call("get_my_account", "GET", ACCOUNTS_URL) or {}

    async def get_agents(self) -> list[LiveChatAgent]:
        cached = self.cache.get("agents", "all")
        if cached is not None:
            return cached
        body = await self._action("configuration", "list_agents", {"fields": ["groups", "job_title"]})
        agents = [LiveChatAgent.model_validate(a) for a in body or []]
        self.cache.set("agents", "all", agents)
        return agents

    async def get_agent(self, agent_id: str) -> LiveChatAgent:
        body = await self._action("configuration", "get_agent", {"id": agent_id})
        return LiveChatAgent.model_validate(body)

    async def update_agent(self, agent_id: str, **changes: Any) -> bool:
        await self._action("configuration", "update_agent", {"id": agent_id, **changes})
        self.cache.clear("agents")
        return True

    async def set_routing_status(self, status: str, agent_id: str | None = None) -> bool:
        body: dict[str, Any] = {"status": status}
        if agent_id:
            body["agent_id"] = agent_id
        await self._action("agent", "set_routing_status", body)
        return True

    # =========================================================================
    # Customers
    # =========================================================================

    async def get_customers(self, limit: int = 100, page_id: str | None = None) -> list[LiveChatCustomer]:
        key = f"limit={limit}:page={page_id or 'first'}"
        cached = self.cache.get("customers", key)
        if cached is not None:
            return cached

        body: dict[str, Any] = {"limit": limit}
        if page_id:
            body["page_id"] = page_id
        result = await self._action("agent", "list_customers", body) or {}
        customers = [LiveChatCustomer.model_validate(c) for c in result.get("customers", [])]
        self.cache.set("customers", key, customers)
        return customers

    async def get_customer(self, customer_id: str) -> LiveChatCustomer:
        body = await self._action("agent", "get_customer", {"id": customer_id})
        return LiveChatCustomer.model_validate(body)

    async def update_customer(self, customer_id: str, **changes: Any) -> LiveChatCustomer:
        body = await self._action("agent", "update_customer", {"id": customer_id, **changes})
        self.cache.clear("customers")
        return LiveChatCustomer.model_validate({"id": customer_id, **(body or {})})

    # =========================================================================
    # Chats and messages
    # =========================================================================

    async def get_chats(
        self,
        limit: int = 25,
        sort_order: str = "desc",
        filters: dict[str, Any] | None = None,
    ) -> list[LiveChatChat]:
        key = f"limit={limit}:sort={sort_order}:filters={sorted((filters or {}).items())}"
        cached = self.cache.get("chats", key)
        if cached is not None:
            return cached

        body: dict[str, Any] = {"limit": limit, "sort_order": sort_order}
        if filters:
            body["filters"] = filters
        result = await self._action("agent", "list_chats", body) or {}
        chats = [LiveChatChat.model_validate(c) for c in result.get("chats_summary", [])]
        self.cache.set("chats", key, chats)
        return chats

    async def get_archived_chats(self, since: datetime, limit: int = 100) -> list[dict[str, Any]]:
        """Archived chats whose threads started after `since`."""
        result = await self._action(
            "agent",
            "list_archives",
            {"limit": limit, "filters": {"from": since.isoformat()}},
        ) or {}
        return result.get("chats", [])

    async def get_chat(self, chat_id: str, thread_id: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"chat_id": chat_id}
        if thread_id:
            body["thread_id"] = thread_id
        return await self._action("agent", "get_chat", body) or {}

    async def get_threads(self, chat_id: str, limit: int = 10) -> list[LiveChatThread]:
        result = await self._action("agent", "list_threads", {"chat_id": chat_id, "limit": limit}) or {}
        return [LiveChatThread.model_validate(t) for t in result.get("threads", [])]

    async def get_messages(self, chat_id: str) -> list[LiveChatMessage]:
        threads = await self.get_threads(chat_id)
        return [event for thread in threads for event in thread.events if event.type == "message"]

    async def send_message(self, chat_id: str, text: str, visibility: str = "all") -> str:
        """Post a message event and return the new event id."""
        result = await self._action(
            "agent",
            "send_event",
            {"chat_id": chat_id, "event": {"type": "message", "text": text, "visibility": visibility}},
        ) or {}
        return result.get("event_id", "")

    async def transfer_chat(self, chat_id: str, *, agent_ids: list[str] | None = None, group_ids: list[int] | None = None) -> bool:
        if agent_ids:
            target = {"type": "agent", "ids": agent_ids}
        elif group_ids:
            target = {"type": "group", "ids": group_ids}
        else:
            raise ValueError("transfer_chat needs agent_ids or group_ids")
        await self._action("agent", "transfer_chat", {"id": chat_id, "target": target})
        self.cache.clear("chats")
        logger.info(f"[livechat] Transferred chat {chat_id} to {target['type']} {target['ids']}")
        return True

    # =========================================================================
    # Groups
    # =========================================================================

    async def get_groups(self) -> list[LiveChatGroup]:
        cached = self.cache.get("groups", "all")
        if cached is not None:
            return cached
        body = await self._action("configuration", "list_groups", {"fields": ["agent_priorities", "routing_status"]})
        groups = [LiveChatGroup.model_validate(g) for g in body or []]
        self.cache.set("groups", "all", groups)
        return groups

    async def get_group(self, group_id: int) -> LiveChatGroup:
        body = await self._action("configuration", "get_group", {"id": group_id})
        return LiveChatGroup.model_validate(body)

    # =========================================================================
    # Reports
    # =========================================================================

    async def _report(self, path: str, date_from: datetime, date_to: datetime | None) -> LiveChatReport:
        filters = {"from": date_from.isoformat(), "to": (date_to or datetime.now(timezone.utc)).isoformat()}
        body = await self._call(path.rsplit("/", 1)[-1], "POST", path, json={"filters": filters})
        return LiveChatReport.model_validate(body or {})

    async def get_chats_summary(self, date_from: datetime, date_to: datetime | None = None) -> LiveChatReport:
        return await self._report("/reports/chats/total_chats", date_from, date_to)

    async def get_agent_activity_report(self, date_from: datetime, date_to: datetime | None = None) -> LiveChatReport:
        return await self._report("/reports/agents/chatting_time", date_from, date_to)
