"""Pydantic schemas for the Workato developer API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _WorkatoModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WorkatoUser(_WorkatoModel):
    id: int | str
    name: str = ""
    email: str | None = None
    company_name: str | None = None
    plan_id: str | None = None
    time_zone: str | None = None
    recipes_count: int = 0
    active_recipes_count: int = 0
    created_at: str | None = None


class WorkatoRecipe(_WorkatoModel):
    id: int | str
    name: str
    description: str | None = None
    folder_id: int | str | None = None
    user_id: int | str | None = None
    trigger_application: str | None = None
    action_applications: list[str] = Field(default_factory=list)
    applications: list[str] = Field(default_factory=list)
    running: bool = False
    job_succeeded_count: int = 0
    job_failed_count: int = 0
    lifetime_task_count: int = 0
    last_run_at: str | None = None
    stopped_at: str | None = None
    version_no: int | None = None
    created_at: str | None = None
    updated_at: str | None = None


JobStatus = Literal["succeeded", "failed", "pending", "running", "aborted", "completed"]


class WorkatoJob(_WorkatoModel):
    id: int | str
    recipe_id: int | str | None = None
    status: JobStatus | str = "pending"
    title: str | None = None
    is_error: bool = False
    error: str | dict[str, Any] | None = None
    started_at: str | None = None
    completed_at: str | None = None
    is_poll_error: bool = False
    handle: str | None = None


class WorkatoConnection(_WorkatoModel):
    id: int | str
    name: str
    provider: str | None = None
    application: str | None = None
    authorization_status: Literal["success", "failed", "exception"] | str | None = None
    authorized_at: str | None = None
    folder_id: int | str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.authorization_status == "success"


class WorkatoFolder(_WorkatoModel):
    id: int | str
    name: str
    parent_id: int | str | None = None
    created_at: str | None = None
    updated_at: str | None = None
