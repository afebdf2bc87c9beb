"""Pydantic schemas for the Vercel REST API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _VercelModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class VercelUser(_VercelModel):
    id: str = Field(alias="uid")
    email: str
    name: str | None = None
    username: str
    avatar: str | None = None
    default_team_id: str | None = Field(default=None, alias="defaultTeamId")


class GitLink(_VercelModel):
    type: str
    repo: str | None = None
    repo_id: int | str | None = Field(default=None, alias="repoId")
    production_branch: str | None = Field(default=None, alias="productionBranch")


class VercelProject(_VercelModel):
    id: str
    name: str
    account_id: str | None = Field(default=None, alias="accountId")
    framework: str | None = None
    node_version: str | None = Field(default=None, alias="nodeVersion")
    build_command: str | None = Field(default=None, alias="buildCommand")
    output_directory: str | None = Field(default=None, alias="outputDirectory")
    root_directory: str | None = Field(default=None, alias="rootDirectory")
    link: GitLink | None = None
    created_at: int | None = Field(default=None, alias="createdAt")
    updated_at: int | None = Field(default=None, alias="updatedAt")


DeploymentState = Literal["BUILDING", "ERROR", "INITIALIZING", "QUEUED", "READY", "CANCELED"]


class VercelDeployment(_VercelModel):
    """
    A deployment.

    List endpoints return `uid`/`state`; the single-deployment endpoint
    returns `id`/`readyState`. Both shapes validate because
    fields also populate by name.
    """

    id: str = Field(alias="uid")
    name: str
    url: str | None = None
    state: DeploymentState | None = None
    ready_state: DeploymentState | None = Field(default=None, alias="readyState")
    target: str | None = None
    project_id: str | None = Field(default=None, alias="projectId")
    creator: dict[str, Any] = Field(default_factory=dict)
    meta: dict[str, Any] = Field(default_factory=dict)
    created: int | None = None
    building_at: int | None = Field(default=None, alias="buildingAt")
    ready: int | None = None

    @property
    def status(self) -> str | None:
        return self.ready_state or self.state


class VercelDomain(_VercelModel):
    id: str | None = None
    name: str
    verified: bool = False
    service_type: str | None = Field(default=None, alias="serviceType")
    nameservers: list[str] = Field(default_factory=list)
    created_at: int | None = Field(default=None, alias="createdAt")
    expires_at: int | None = Field(default=None, alias="expiresAt")


class VercelEnvVar(_VercelModel):
    id: str | None = None
    key: str
    value: str | None = None
    type: Literal["system", "secret", "encrypted", "plain", "sensitive"] = "encrypted"
    target: list[str] = Field(default_factory=list)
    created_at: int | None = Field(default=None, alias="createdAt")
