"""Pydantic schemas for the Wrike v4 API. Every response wraps records in {"kind", "data": [...]}."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WrikeModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class WrikeContact(_WrikeModel):
    id: str
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    type: str = "Person"
    profiles: list[dict[str, Any]] = Field(default_factory=list)
    timezone: str | None = None
    me: bool = False

    @property
    def email(self) -> str | None:
        for profile in self.profiles:
            if profile.get("email"):
                return profile["email"]
        return None


class WrikeDates(_WrikeModel):
    type: str = "Backlog"
    duration: int | None = None
    start: str | None = None
    due: str | None = None


class WrikeProject(_WrikeModel):
    author_id: str | None = Field(default=None, alias="authorId")
    owner_ids: list[str] = Field(default_factory=list, alias="ownerIds")
    status: str | None = None
    start_date: str | None = Field(default=None, alias="startDate")
    end_date: str | None = Field(default=None, alias="endDate")


class WrikeFolder(_WrikeModel):
    """Folders and projects share one shape; projects carry a `project` block."""

    id: str
    title: str
    color: str | None = None
    child_ids: list[str] = Field(default_factory=list, alias="childIds")
    scope: str | None = None
    project: WrikeProject | None = None

    @property
    def is_project(self) -> bool:
        return self.project is not None


class WrikeTask(_WrikeModel):
    id: str
    title: str
    description: str | None = None
    brief_description: str | None = Field(default=None, alias="briefDescription")
    status: str = "Active"
    importance: str = "Normal"
    parent_ids: list[str] = Field(default_factory=list, alias="parentIds")
    responsible_ids: list[str] = Field(default_factory=list, alias="responsibleIds")
    dates: WrikeDates | None = None
    permalink: str | None = None
    created_date: str | None = Field(default=None, alias="createdDate")
    updated_date: str | None = Field(default=None, alias="updatedDate")
    completed_date: str | None = Field(default=None, alias="completedDate")


class WrikeComment(_WrikeModel):
    id: str
    author_id: str | None = Field(default=None, alias="authorId")
    text: str = ""
    task_id: str | None = Field(default=None, alias="taskId")
    created_date: str | None = Field(default=None, alias="createdDate")


class WrikeTimelog(_WrikeModel):
    id: str
    task_id: str | None = Field(default=None, alias="taskId")
    user_id: str | None = Field(default=None, alias="userId")
    hours: float
    comment: str | None = None
    tracked_date: str | None = Field(default=None, alias="trackedDate")
