"""
Wrike v4 adapter.

Wrike delivers webhooks in batches: the body is a JSON array of events,
each with its own eventType. The batch's first event names the payload;
handling invalidates the caches of every event in it. Bodies are signed
with a hex HMAC-SHA256 in X-Hook-Secret.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Mapping

from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.schemas import IntegrationCapability, WebhookPayload
from aurelius.integrations.webhooks import extract_event_type

from .schemas import WrikeComment, WrikeContact, WrikeFolder, WrikeTask, WrikeTimelog

logger = logging.getLogger(__name__)


class WrikeIntegration(BaseIntegration):
    provider = "wrike"
    name = "Wrike"
    api_base_url = "https://www.wrike.com/api/v4"
    token_url = "https://login.wrike.com/oauth2/token"

    default_scopes = ("Default", "wsReadWrite")
    cache_resources = ("contacts", "folders", "tasks", "comments")

    webhook_events = {
        "Task*": ("tasks",),
        "CommentAdded": ("comments",),
        "CommentDeleted": ("comments",),
        "Folder*": ("folders",),
        "Project*": ("folders",),
    }
    webhook_event_fields = ("eventType",)

    signature_header = "x-hook-secret"

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        me = await self.get_me()
        return me.model_dump()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "contact_id": profile.get("id"),
            "name": f"{profile.get('first_name', '')} {profile.get('last_name', '')}".strip(),
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(name="tasks", description="Create, update and search tasks", required_scopes=["wsReadWrite"]),
            IntegrationCapability(name="folders", description="Folders and projects", required_scopes=["wsReadWrite"]),
            IntegrationCapability(name="comments", description="Task comments", required_scopes=["wsReadWrite"]),
            IntegrationCapability(name="time_tracking", description="Log time against tasks", required_scopes=["wsReadWrite"]),
            IntegrationCapability(name="contacts", description="Workspace members", required_scopes=["Default"]),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        return {
            "folders": self.get_folders(),
            "tasks": self.get_tasks(updated_since=last_sync_time),
        }

    # =========================================================================
    # Webhooks
    # =========================================================================

    @classmethod
    def extract_webhook_event(cls, headers: Mapping[str, Any], payload: Any) -> str | None:
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        return extract_event_type(payload, cls.webhook_event_fields)

    async def on_webhook_event(self, payload: WebhookPayload, resources: tuple[str, ...]) -> Any:
        events = payload.data if isinstance(payload.data, list) else [payload.data]
        invalidated = set(resources)
        for event in events:
            event_type = extract_event_type(event, self.webhook_event_fields)
            if event_type:
                invalidated.update(self.resources_for_event(event_type) or ())

        for resource in sorted(invalidated):
            self.cache.clear(resource)
        return {"event": payload.event, "events": len(events), "invalidated": sorted(invalidated)}

    # =========================================================================
    # Contacts
    # =========================================================================

    async def get_me(self) -> WrikeContact:
        cached = self.cache.get("contacts", "me")
        if cached is not None:
            return cached
        body = await self._call("get_me", "GET", "/contacts", params={"me": "true"})
        items = self._extract_items(body)
        contact = WrikeContact.model_validate(items[0] if items else {})
        self.cache.set("contacts", "me", contact)
        return contact

    # =========================================================================
    # Folders and projects
    # =========================================================================

    async def get_folders(self, parent_id: str | None = None) -> list[WrikeFolder]:
        key = parent_id or "root"
        cached = self.cache.get("folders", key)
        if cached is not None:
            return cached
        path = f"/folders/{parent_id}/folders" if parent_id else "/folders"
        body = await self._call("get_folders", "GET", path)
        folders = [WrikeFolder.model_validate(f) for f in self._extract_items(body)]
        self.cache.set("folders", key, folders)
        return folders

    async def create_folder(
        self,
        parent_id: str,
        title: str,
        *,
        description: str | None = None,
        project: dict[str, Any] | None = None,
    ) -> WrikeFolder:
        payload: dict[str, Any] = {"title": title}
        if description:
            payload["description"] = description
        if project is not None:
            payload["project"] = project
        body = await self._call("create_folder", "POST", f"/folders/{parent_id}/folders", json=payload)
        self.cache.clear("folders")
        return WrikeFolder.model_validate(self._extract_items(body)[0])

    async def create_project(
        self,
        parent_id: str,
        title: str,
        *,
        owner_ids: list[str] | None = None,
        status: str = "Green",
        start_date: date | None = None,
        end_date: date | None = None,
        description: str | None = None,
    ) -> WrikeFolder:
        project: dict[str, Any] = {"status": status, "ownerIds": owner_ids or []}
        if start_date and end_date:
            project["startDate"] = start_date.isoformat()
            project["endDate"] = end_date.isoformat()
        return await self.create_folder(parent_id, title, description=description, project=project)

    # =========================================================================
    # Tasks
    # =========================================================================

    async def get_tasks(
        self,
        folder_id: str | None = None,
        *,
        status: str | None = None,
        updated_since: datetime | None = None,
    ) -> list[WrikeTask]:
        params: dict[str, Any] = {}
        if status:
            params["status"] = status
        if updated_since:
            params["updatedDate"] = json.dumps({"start": updated_since.strftime("%Y-%m-%dT%H:%M:%SZ")})

        path = f"/folders/{folder_id}/tasks" if folder_id else "/tasks"
        body = await self._call("get_tasks", "GET", path, params=params or None)
        tasks = [WrikeTask.model_validate(t) for t in self._extract_items(body)]
        self.cache.set_many("tasks", tasks)
        return tasks

    async def get_task(self, task_id: str) -> WrikeTask:
        cached = self.cache.get("tasks", task_id)
        if cached is not None:
            return cached
        body = await self._call("get_task", "GET", f"/tasks/{task_id}")
        task = WrikeTask.model_validate(self._extract_items(body)[0])
        self.cache.set("tasks", task.id, task)
        return task

    async def search_tasks(
        self,
        *,
        title: str | None = None,
        statuses: list[str] | None = None,
        importance: list[str] | None = None,
        responsibles: list[str] | None = None,
    ) -> list[WrikeTask]:
        params: dict[str, Any] = {}
        if title:
            params["title"] = title
        if statuses:
            params["status"] = json.dumps(statuses)
        if importance:
            params["importance"] = json.dumps(importance)
        if responsibles:
            params["responsibles"] = json.dumps(responsibles)
        body = await self._call("search_tasks", "GET", "/tasks", params=params)
        return [WrikeTask.model_validate(t) for t in self._extract_items(body)]

    async def create_task(
        self,
        folder_id: str,
        title: str,
        *,
        description: str | None = None,
        status: str | None = None,
        importance: str | None = None,
        responsibles: list[str] | None = None,
        dates: dict[str, Any] | None = None,
    ) -> WrikeTask:
        payload: dict[str, Any] = {"title": title}
        optional = {
            "description": description,
            "status": status,
            "importance": importance,
            "responsibles": responsibles,
            "dates": dates,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})

        body = await self._call("create_task", "POST", f"/folders/{folder_id}/tasks", json=payload)
        task = WrikeTask.model_validate(self._extract_items(body)[0])
        self.cache.set("tasks", task.id, task)
        logger.info(f"[wrike] Created task {task.id} in folder {folder_id}")
        return task

    async def update_task(self, task_id: str, **changes: Any) -> WrikeTask:
        body = await self._call("update_task", "PUT", f"/tasks/{task_id}", json=changes)
        task = WrikeTask.model_validate(self._extract_items(body)[0])
        self.cache.set("tasks", task.id, task)
        return task

    async def delete_task(self, task_id: str) -> bool:
        await self._call("delete_task", "DELETE", f"/tasks/{task_id}")
        self.cache.delete("tasks", task_id)
        return True

    # =========================================================================
    # Comments and time tracking
    # =========================================================================

    async def get_comments(self, task_id: str) -> list[WrikeComment]:
        cached = self.cache.get("comments", task_id)
        if cached is not None:
            return cached
        body = await self._call("get_comments", "GET", f"/tasks/{task_id}/comments")
        comments = [WrikeComment.model_validate(c) for c in self._extract_items(body)]
        self.cache.set("comments", task_id, comments)
        return comments

    async def add_comment(self, task_id: str, text: str) -> WrikeComment:
        body = await self._call("add_comment", "POST", f"/tasks/{task_id}/comments", json={"text": text})
        self.cache.delete("comments", task_id)
        return WrikeComment.model_validate(self._extract_items(body)[0])

    async def add_time_entry(
        self,
        task_id: str,
        hours: float,
        *,
        comment: str | None = None,
        tracked_date: date | None = None,
    ) -> WrikeTimelog:
        payload: dict[str, Any] = {
            "hours": hours,
            "trackedDate": (tracked_date or date.today()).isoformat(),
        }
        if comment:
            payload["comment"] = comment
        body = await self._call("add_time_entry", "POST", f"/tasks/{task_id}/timelogs", json=payload)
        return WrikeTimelog.model_validate(self._extract_items(body)[0])
