"""
Vercel REST adapter.

Vercel access tokens don't expire; refresh_token() re-validates them.
When the connection belongs to a team, every request carries ?teamId=.
Webhooks are signed with a hex HMAC-SHA1 in x-vercel-signature.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable

from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    VercelDeployment,
    VercelDomain,
    VercelEnvVar,
    VercelProject,
    VercelUser,
)

logger = logging.getLogger(__name__)


class VercelIntegration(BaseIntegration):
    provider = "vercel"
    name = "Vercel"
    api_base_url = "https://api.vercel.com"

    default_scopes = ("vercel:read", "vercel:write")
    cache_resources = ("user", "projects", "deployments", "domains")

    webhook_events = {
        "deployment.*": ("deployments",),
        "project.*": ("projects",),
        "domain.*": ("domains",),
    }
    webhook_event_fields = ("type",)

    signature_header = "x-vercel-signature"
    signature_algorithm = "sha1"

    def _params(self, **params: Any) -> dict[str, Any]:
        """Drop unset values and scope to the team, if any."""
        query = {k: v for k, v in params.items() if v is not None}
        if self.config.team_id:
            query["teamId"] = self.config.team_id
        return query

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        user = await self.get_user(refresh=True)
        return user.model_dump()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        return {
            "user_id": profile.get("id"),
            "username": profile.get("username"),
            "team_id": self.config.team_id,
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        read_write = ["vercel:read", "vercel:write"]
        return [
            IntegrationCapability(name="projects", description="Manage Vercel projects and configurations", required_scopes=read_write),
            IntegrationCapability(name="deployments", description="Monitor and trigger deployments", required_scopes=read_write),
            IntegrationCapability(name="domains", description="Manage custom domains", required_scopes=read_write),
            IntegrationCapability(name="environment_variables", description="Manage project environment variables", required_scopes=read_write),
            IntegrationCapability(name="logs", description="Deployment and function logs", required_scopes=["vercel:read"], enabled=False),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        since = int(last_sync_time.timestamp() * 1000) if last_sync_time else None
        return {
            "projects": self.get_projects(),
            "deployments": self.get_deployments(since=since),
        }

    # =========================================================================
    # User
    # =========================================================================

    async def get_user(self, refresh: bool = False) -> VercelUser:
        if not refresh:
            cached = self.cache.get("user", "me")
            if cached is not None:
                return cached
        body = await self._call("get_user", "GET", "/v2/user")
        user = VercelUser.model_validate((body or {}).get("user", body))
        self.cache.set("user", "me", user)
        return user

    # =========================================================================
    # Projects
    # =========================================================================

    async def get_projects(self, limit: int = 100) -> list[VercelProject]:
        body = await self._call("get_projects", "GET", "/v9/projects", params=self._params(limit=limit))
        projects = [VercelProject.model_validate(p) for p in (body or {}).get("projects", [])]
        self.cache.set_many("projects", projects)
        return projects

    async def get_project(self, project_id: str) -> VercelProject:
        cached = self.cache.get("projects", project_id)
        if cached is not None:
            return cached
        body = await self._call("get_project", "GET", f"/v9/projects/{project_id}", params=self._params())
        project = VercelProject.model_validate(body)
        self.cache.set("projects", project.id, project)
        return project

    async def create_project(
        self,
        name: str,
        *,
        framework: str | None = None,
        git_repository: dict[str, str] | None = None,
        **settings: Any,
    ) -> VercelProject:
        payload: dict[str, Any] = {"name": name, **settings}
        if framework:
            payload["framework"] = framework
        if git_repository:
            payload["gitRepository"] = git_repository
        body = await self._call("create_project", "POST", "/v9/projects", params=self._params(), json=payload)
        project = VercelProject.model_validate(body)
        self.cache.set("projects", project.id, project)
        logger.info(f"[vercel] Created project {project.name}")
        return project

    async def update_project(self, project_id: str, **changes: Any) -> VercelProject:
        body = await self._call(
            "update_project", "PATCH", f"/v9/projects/{project_id}", params=self._params(), json=changes
        )
        project = VercelProject.model_validate(body)
        self.cache.set("projects", project.id, project)
        return project

    async def delete_project(self, project_id: str) -> bool:
        await self._call("delete_project", "DELETE", f"/v9/projects/{project_id}", params=self._params())
        self.cache.delete("projects", project_id)
        return True

    # =========================================================================
    # Deployments
    # =========================================================================

    async def get_deployments(
        self,
        *,
        app: str | None = None,
        project_id: str | None = None,
        since: int | None = None,
        until: int | None = None,
        limit: int | None = None,
    ) -> list[VercelDeployment]:
        """List deployments. since/until are epoch milliseconds."""
        params = self._params(app=app, projectId=project_id, since=since, until=until, limit=limit)
        body = await self._call("get_deployments", "GET", "/v6/deployments", params=params)
        deployments = [VercelDeployment.model_validate(d) for d in (body or {}).get("deployments", [])]
        self.cache.set_many("deployments", deployments)
        return deployments

    async def get_deployment(self, deployment_id: str) -> VercelDeployment:
        cached = self.cache.get("deployments", deployment_id)
        if cached is not None:
            return cached
        body = await self._call(
            "get_deployment", "GET", f"/v13/deployments/{deployment_id}", params=self._params()
        )
        deployment = VercelDeployment.model_validate(body)
        self.cache.set("deployments", deployment.id, deployment)
        return deployment

    async def create_deployment(
        self,
        name: str,
        *,
        git_source: dict[str, Any] | None = None,
        files: list[dict[str, str]] | None = None,
        target: str | None = None,
        **options: Any,
    ) -> VercelDeployment:
        payload: dict[str, Any] = {"name": name, **options}
        if git_source:
            payload["gitSource"] = git_source
        if files:
            payload["files"] = files
        if target:
            payload["target"] = target
        body = await self._call(
            "create_deployment", "POST", "/v13/deployments", params=self._params(), json=payload
        )
        deployment = VercelDeployment.model_validate(body)
        self.cache.set("deployments", deployment.id, deployment)
        logger.info(f"[vercel] Created deployment {deployment.id} for {name}")
        return deployment

    async def cancel_deployment(self, deployment_id: str) -> bool:
        await self._call(
            "cancel_deployment", "PATCH", f"/v12/deployments/{deployment_id}/cancel", params=self._params()
        )
        self.cache.delete("deployments", deployment_id)
        return True

    # =========================================================================
    # Domains and environment
    # =========================================================================

    async def get_domains(self) -> list[VercelDomain]:
        cached = self.cache.get("domains", "all")
        if cached is not None:
            return cached
        body = await self._call("get_domains", "GET", "/v5/domains", params=self._params())
        domains = [VercelDomain.model_validate(d) for d in (body or {}).get("domains", [])]
        self.cache.set("domains", "all", domains)
        return domains

    async def add_domain(self, domain: str) -> VercelDomain:
        body = await self._call("add_domain", "POST", "/v5/domains", params=self._params(), json={"name": domain})
        self.cache.clear("domains")
        return VercelDomain.model_validate((body or {}).get("domain", body))

    async def get_environment_variables(self, project_id: str) -> list[VercelEnvVar]:
        body = await self._call(
            "get_environment_variables", "GET", f"/v9/projects/{project_id}/env", params=self._params()
        )
        return [VercelEnvVar.model_validate(e) for e in (body or {}).get("envs", [])]

    async def create_environment_variable(
        self,
        project_id: str,
        key: str,
        value: str,
        target: list[str],
        type: str = "encrypted",
    ) -> VercelEnvVar:
        body = await self._call(
            "create_environment_variable",
            "POST",
            f"/v9/projects/{project_id}/env",
            params=self._params(),
            json={"key": key, "value": value, "target": target, "type": type},
        )
        created = (body or {}).get("created", body)
        return VercelEnvVar.model_validate(created)
