"""
LinkedIn v2 REST adapter.

Covers the member profile, UGC posts, connections and invitations,
organizations, messages and share statistics.

Webhook bodies carry an `eventType` of PROFILE_UPDATE, NEW_CONNECTION or
NEW_MESSAGE and are signed with a hex HMAC-SHA256 in X-LI-Signature
(optionally prefixed "hmacsha256=").
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Literal

from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    LinkedInCompany,
    LinkedInConnection,
    LinkedInMessage,
    LinkedInPost,
    LinkedInPostStats,
    LinkedInProfile,
)

logger = logging.getLogger(__name__)


class LinkedInIntegration(BaseIntegration):
    provider = "linkedin"
    name = "LinkedIn"
    api_base_url = "https://api.linkedin.com"
    token_url = "https://www.linkedin.com/oauth/v2/accessToken"

    default_scopes = ("r_liteprofile", "r_emailaddress", "w_member_social")
    cache_resources = ("profile", "posts", "connections", "companies", "messages", "analytics")

    webhook_events = {
        "PROFILE_UPDATE": ("profile",),
        "NEW_CONNECTION": ("connections",),
        "NEW_MESSAGE": ("messages",),
    }
    webhook_event_fields = ("eventType", "data.eventType", "type")

    signature_header = "x-li-signature"
    signature_prefix = "hmacsha256="

    def _get_auth_headers(self) -> dict[str, str]:
        headers = super()._get_auth_headers()
        headers["X-Restli-Protocol-Version"] = "2.0.0"
        return headers

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        profile = await self.get_current_profile(refresh=True)
        return profile.model_dump()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        cached = self.cache.get("profile", "me")
        return {"person_id": profile.get("id"), "name": cached.full_name if cached else None}

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(
                name="profile",
                description="Read and update the member profile",
                required_scopes=["r_liteprofile", "r_emailaddress"],
            ),
            IntegrationCapability(
                name="posts",
                description="Publish and manage posts",
                required_scopes=["w_member_social"],
            ),
            IntegrationCapability(
                name="connections",
                description="List connections and send invitations",
                required_scopes=["r_network", "w_member_social"],
            ),
            IntegrationCapability(
                name="companies",
                description="Look up and follow organizations",
                required_scopes=["r_organization_social"],
            ),
            IntegrationCapability(
                name="messaging",
                description="Read and send messages",
                required_scopes=["r_messages", "w_messages"],
            ),
            IntegrationCapability(
                name="analytics",
                description="Share statistics for posts",
                required_scopes=["r_organization_social"],
                enabled=False,
            ),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        return {
            "profile": self._sync_profile(),
            "posts": self.get_posts(),
            "connections": self.get_connections(),
            "messages": self.get_messages(),
        }

    async def _sync_profile(self) -> list[LinkedInProfile]:
        return [await self.get_current_profile(refresh=True)]

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_current_profile(self, refresh: bool = False) -> LinkedInProfile:
        if not refresh:
            cached = self.cache.get("profile", "me")
            if cached is not None:
                return cached

        body = await self._call("get_current_profile", "GET", "/v2/people/~")
        profile = LinkedInProfile.model_validate(body)
        self.cache.set("profile", "me", profile)
        self.cache.set("profile", profile.id, profile)
        return profile

    async def get_profile(self, person_id: str) -> LinkedInProfile:
        cached = self.cache.get("profile", person_id)
        if cached is not None:
            return cached
        body = await self._call("get_profile", "GET", f"/v2/people/(id:{person_id})")
        profile = LinkedInProfile.model_validate(body)
        self.cache.set("profile", profile.id, profile)
        return profile

    async def _author_urn(self) -> str:
        profile = await self.get_current_profile()
        return f"urn:li:person:{profile.id}"

    # =========================================================================
    # Posts
    # =========================================================================

    async def get_posts(self, count: int = 50, start: int = 0) -> list[LinkedInPost]:
        author = await self._author_urn()
        body = await self._call(
            "get_posts",
            "GET",
            "/v2/ugcPosts",
            params={"q": "authors", "authors": f"List({author})", "count": count, "start": start},
        )
        posts = [LinkedInPost.model_validate(p) for p in self._extract_items(body)]
        self.cache.set_many("posts", posts)
        return posts

    async def get_post(self, post_id: str) -> LinkedInPost:
        cached = self.cache.get("posts", post_id)
        if cached is not None:
            return cached
        body = await self._call("get_post", "GET", f"/v2/ugcPosts/{post_id}")
        post = LinkedInPost.model_validate(body)
        self.cache.set("posts", post.id, post)
        return post

    async def create_post(
        self,
        text: str,
        *,
        media: list[dict[str, str]] | None = None,
        visibility: Literal["PUBLIC", "CONNECTIONS"] = "PUBLIC",
    ) -> LinkedInPost:
        """
        Publish a UGC post. Each media item may carry url, title and description.
        """
        share: dict[str, Any] = {
            "shareCommentary": {"text": text},
            "shareMediaCategory": "ARTICLE" if media else "NONE",
        }
        if media:
            share["media"] = [
                {
                    "status": "READY",
                    "originalUrl": m.get("url", ""),
                    "title": {"text": m.get("title", "")},
                    "description": {"text": m.get("description", "")},
                }
                for m in media
            ]

        payload = {
            "author": await self._author_urn(),
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": share},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": visibility},
        }
        body = await self._call("create_post", "POST", "/v2/ugcPosts", json=payload)
        post = LinkedInPost.model_validate({**payload, **(body or {})})
        self.cache.set("posts", post.id, post)
        logger.info(f"[linkedin] Created post {post.id}")
        return post

    async def delete_post(self, post_id: str) -> bool:
        await self._call("delete_post", "DELETE", f"/v2/ugcPosts/{post_id}")
        self.cache.delete("posts", post_id)
        return True

    async def get_post_stats(self, post_id: str) -> LinkedInPostStats:
        cached = self.cache.get("analytics", post_id)
        if cached is not None:
            return cached
        body = await self._call("get_post_stats", "GET", f"/v2/socialActions/{post_id}/statistics")
        stats = LinkedInPostStats.model_validate(body or {})
        self.cache.set("analytics", post_id, stats)
        return stats

    # =========================================================================
    # Network
    # =========================================================================

    async def get_connections(self, count: int = 50, start: int = 0) -> list[LinkedInConnection]:
        body = await self._call(
            "get_connections", "GET", "/v2/connections", params={"q": "viewer", "count": count, "start": start}
        )
        connections = [LinkedInConnection.model_validate(c) for c in self._extract_items(body)]
        self.cache.set_many("connections", connections)
        return connections

    async def send_invitation(self, person_id: str, message: str | None = None) -> bool:
        payload: dict[str, Any] = {
            "invitee": f"urn:li:person:{person_id}",
            "inviter": await self._author_urn(),
        }
        if message:
            payload["message"] = message
        await self._call("send_invitation", "POST", "/v2/invitations", json=payload)
        return True

    async def accept_invitation(self, invitation_id: str) -> bool:
        await self._call(
            "accept_invitation", "POST", f"/v2/invitations/{invitation_id}", json={"action": "accept"}
        )
        self.cache.clear("connections")
        return True

    # =========================================================================
    # Organizations
    # =========================================================================

    async def get_company(self, company_id: str) -> LinkedInCompany:
        cached = self.cache.get("companies", company_id)
        if cached is not None:
            return cached
        body = await self._call("get_company", "GET", f"/v2/organizations/{company_id}")
        company = LinkedInCompany.model_validate(body)
        self.cache.set("companies", company.id, company)
        return company

    async def search_companies(self, keywords: str, count: int = 25) -> list[LinkedInCompany]:
        body = await self._call(
            "search_companies",
            "GET",
            "/v2/organizationSearch",
            params={"q": "search", "keywords": keywords, "count": count},
        )
        companies = [LinkedInCompany.model_validate(c) for c in self._extract_items(body)]
        self.cache.set_many("companies", companies)
        return companies

    # =========================================================================
    # Messaging
    # =========================================================================

    async def get_messages(self, count: int = 50) -> list[LinkedInMessage]:
        body = await self._call("get_messages", "GET", "/v2/messages", params={"count": count})
        messages = [LinkedInMessage.model_validate(m) for m in self._extract_items(body)]
        self.cache.set_many("messages", messages)
        return messages

    async def send_message(self, recipients: list[str], body_text: str, subject: str | None = None) -> LinkedInMessage:
        payload: dict[str, Any] = {
            "recipients": [f"urn:li:person:{r}" for r in recipients],
            "body": body_text,
        }
        if subject:
            payload["subject"] = subject
        body = await self._call("send_message", "POST", "/v2/messages", json=payload)
        message = LinkedInMessage.model_validate(
            {"createdAt": int(datetime.now(timezone.utc).timestamp() * 1000), **payload, **(body or {})}
        )
        self.cache.set("messages", message.id, message)
        return message
