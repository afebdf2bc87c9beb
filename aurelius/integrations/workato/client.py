"""
Workato developer API adapter.

Authenticates with a workspace API token (Bearer) that does not expire.
Jobs only exist below a recipe, so syncing jobs fans out over recipes.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable

from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    WorkatoConnection,
    WorkatoFolder,
    WorkatoJob,
    WorkatoRecipe,
    WorkatoUser,
)

logger = logging.getLogger(__name__)


class WorkatoIntegration(BaseIntegration):
    provider = "workato"
    name = "Workato"
    api_base_url = "https://www.workato.com/api"

    cache_resources = ("recipes", "jobs", "connections", "folders")

    webhook_events = {
        "recipe_*": ("recipes",),
        "job_*": ("jobs",),
        "connection_*": ("connections",),
    }
    webhook_event_fields = ("event", "event_type", "type")

    signature_header = "x-workato-signature"

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        user = await self.get_current_user()
        return user.model_dump()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "user_id": profile.get("id"),
            "name": profile.get("name"),
            "company": profile.get("company_name"),
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(name="recipes", description="Create, start and stop automation recipes", required_scopes=["recipes:read", "recipes:write"]),
            IntegrationCapability(name="jobs", description="Monitor and rerun recipe jobs", required_scopes=["jobs:read"]),
            IntegrationCapability(name="connections", description="Manage application connections", required_scopes=["connections:read", "connections:write"]),
            IntegrationCapability(name="folders", description="Organize recipes into folders", required_scopes=["folders:read", "folders:write"]),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        return {
            "recipes": self.get_recipes(),
            "connections": self.get_connections(),
            "folders": self.get_folders(),
            "jobs": self._sync_jobs(),
        }

    async def _sync_jobs(self) -> list[WorkatoJob]:
        recipes = await self.get_recipes()
        batches = await asyncio.gather(*(self.get_jobs(recipe.id, limit=50) for recipe in recipes))
        return [job for batch in batches for job in batch]

    async def get_current_user(self) -> WorkatoUser:
        body = await self._call("get_current_user", "GET", "/users/me")
        return WorkatoUser.model_validate(body)

    # =========================================================================
    # Recipes
    # =========================================================================

    async def get_recipes(self, folder_id: str | None = None, running: bool | None = None) -> list[WorkatoRecipe]:
        key = f"folder={folder_id or 'all'}:running={'all' if running is None else running}"
        cached = self.cache.get("recipes", key)
        if cached is not None:
            return cached

        params: dict[str, Any] = {}
        if folder_id:
            params["folder_id"] = folder_id
        if running is not None:
            params["running"] = str(running).lower()

        body = await self._call("get_recipes", "GET", "/recipes", params=params)
        recipes = [WorkatoRecipe.model_validate(r) for r in self._extract_items(body)]
        self.cache.set("recipes", key, recipes)
        return recipes

    async def get_recipe(self, recipe_id: str) -> WorkatoRecipe:
        body = await self._call("get_recipe", "GET", f"/recipes/{recipe_id}")
        return WorkatoRecipe.model_validate(body)

    async def create_recipe(self, name: str, code: str, folder_id: str | None = None, description: str | None = None) -> WorkatoRecipe:
        recipe: dict[str, Any] = {"name": name, "code": code}
        if folder_id:
            recipe["folder_id"] = folder_id
        if description:
            recipe["description"] = description
        body = await self._call("create_recipe", "POST", "/recipes", json={"recipe": recipe})
        self.cache.clear("recipes")
        return WorkatoRecipe.model_validate({"name": name, **(body or {})})

    async def start_recipe(self, recipe_id: str) -> bool:
        body = await self._call("start_recipe", "PUT", f"/recipes/{recipe_id}/start")
        self.cache.clear("recipes")
        logger.info(f"[workato] Started recipe {recipe_id}")
        return bool((body or {}).get("success", True))

    async def stop_recipe(self, recipe_id: str) -> bool:
        body = await self._call("stop_recipe", "PUT", f"/recipes/{recipe_id}/stop")
        self.cache.clear("recipes")
        logger.info(f"[workato] Stopped recipe {recipe_id}")
        return bool((body or {}).get("success", True))

    # =========================================================================
    # Jobs
    # =========================================================================

    async def get_jobs(self, recipe_id: str | int, status: str | None = None, limit: int = 100) -> list[WorkatoJob]:
        key = f"recipe={recipe_id}:status={status or 'all'}:limit={limit}"
        cached = self.cache.get("jobs", key)
        if cached is not None:
            return cached

        params: dict[str, Any] = {"per_page": limit}
        if status:
            params["status"] = status
        body = await self._call("get_jobs", "GET", f"/recipes/{recipe_id}/jobs", params=params)
        jobs = [
            WorkatoJob.model_validate({"recipe_id": recipe_id, **job})
            for job in self._extract_items(body)
        ]
        self.cache.set("jobs", key, jobs)
        return jobs

    async def get_job(self, recipe_id: str | int, job_id: str) -> WorkatoJob:
        body = await self._call("get_job", "GET", f"/recipes/{recipe_id}/jobs/{job_id}")
        return WorkatoJob.model_validate({"recipe_id": recipe_id, **(body or {})})

    async def rerun_job(self, recipe_id: str | int, job_id: str) -> bool:
        await self._call("rerun_job", "POST", f"/recipes/{recipe_id}/jobs/{job_id}/rerun")
        self.cache.clear("jobs")
        return True

    # =========================================================================
    # Connections and folders
    # =========================================================================

    async def get_connections(self) -> list[WorkatoConnection]:
        cached = self.cache.get("connections", "all")
        if cached is not None:
            return cached
        body = await self._call("get_connections", "GET", "/connections")
        connections = [WorkatoConnection.model_validate(c) for c in self._extract_items(body)]
        self.cache.set("connections", "all", connections)
        return connections

    async def disconnect_connection(self, connection_id: str) -> bool:
        await self._call("disconnect_connection", "POST", f"/connections/{connection_id}/disconnect")
        self.cache.clear("connections")
        return True

    async def get_folders(self, parent_id: str | None = None) -> list[WorkatoFolder]:
        key = f"parent={parent_id or 'root'}"
        cached = self.cache.get("folders", key)
        if cached is not None:
            return cached
        params = {"parent_id": parent_id} if parent_id else None
        body = await self._call("get_folders", "GET", "/folders", params=params)
        folders = [WorkatoFolder.model_validate(f) for f in self._extract_items(body)]
        self.cache.set("folders", key, folders)
        return folders

    async def create_folder(self, name: str, parent_id: str | None = None) -> WorkatoFolder:
        payload: dict[str, Any] = {"name": name}
        if parent_id:
            payload["parent_id"] = parent_id
        body = await self._call("create_folder", "POST", "/folders", json=payload)
        self.cache.clear("folders")
        return WorkatoFolder.model_validate(body)
