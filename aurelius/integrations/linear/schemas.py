"""
Pydantic schemas for Linear's GraphQL API.

Connections come back as {"nodes": [...]} and are flattened to lists.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _LinearModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _nodes(value: Any) -> Any:
    if isinstance(value, dict) and "nodes" in value:
        return value["nodes"] or []
    return value


class LinearUser(_LinearModel):
    id: str
    name: str = ""
    display_name: str | None = Field(default=None, alias="displayName")
    email: str | None = None
    avatar_url: str | None = Field(default=None, alias="avatarUrl")
    admin: bool = False
    active: bool = True
    timezone: str | None = None
    created_at: str | None = Field(default=None, alias="createdAt")


class LinearOrganizationRef(_LinearModel):
    id: str
    name: str = ""


class LinearTeam(_LinearModel):
    id: str
    name: str
    key: str = ""
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    private: bool = False
    cycle_duration: int | None = Field(default=None, alias="cycleDuration")
    organization: LinearOrganizationRef | None = None
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")


class LinearWorkflowState(_LinearModel):
    id: str
    name: str
    color: str = ""
    description: str | None = None
    type: str = "unstarted"
    position: float = 0


class LinearLabel(_LinearModel):
    id: str
    name: str
    color: str = ""
    description: str | None = None
    team: LinearTeam | None = None


class LinearProject(_LinearModel):
    id: str
    name: str
    description: str | None = None
    slug: str | None = Field(default=None, alias="slugId")
    icon: str | None = None
    color: str | None = None
    state: str = "backlog"
    priority: int = 0
    progress: float = 0
    start_date: str | None = Field(default=None, alias="startDate")
    target_date: str | None = Field(default=None, alias="targetDate")
    completed_at: str | None = Field(default=None, alias="completedAt")
    url: str | None = None
    lead: LinearUser | None = None
    teams: list[LinearTeam] = Field(default_factory=list)
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")

    @field_validator("teams", mode="before")
    @classmethod
    def flatten_teams(cls, v: Any) -> Any:
        return _nodes(v)


class LinearIssue(_LinearModel):
    """Priority: 0 none, 1 urgent, 2 high, 3 normal, 4 low."""

    id: str
    identifier: str = ""
    number: int | None = None
    title: str
    description: str | None = None
    priority: int = 0
    estimate: float | None = None
    url: str | None = None
    due_date: str | None = Field(default=None, alias="dueDate")
    assignee: LinearUser | None = None
    creator: LinearUser | None = None
    team: LinearTeam | None = None
    project: LinearProject | None = None
    state: LinearWorkflowState | None = None
    labels: list[LinearLabel] = Field(default_factory=list)
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")
    completed_at: str | None = Field(default=None, alias="completedAt")

    @field_validator("labels", mode="before")
    @classmethod
    def flatten_labels(cls, v: Any) -> Any:
        return _nodes(v)


class LinearIssueRef(_LinearModel):
    id: str
    identifier: str = ""
    title: str = ""


class LinearComment(_LinearModel):
    id: str
    body: str
    url: str | None = None
    user: LinearUser | None = None
    issue: LinearIssueRef | None = None
    created_at: str | None = Field(default=None, alias="createdAt")


class LinearCycle(_LinearModel):
    id: str
    number: int
    name: str | None = None
    description: str | None = None
    starts_at: str | None = Field(default=None, alias="startsAt")
    ends_at: str | None = Field(default=None, alias="endsAt")
    completed_at: str | None = Field(default=None, alias="completedAt")
    progress: float = 0
    url: str | None = None


class LinearNotification(_LinearModel):
    id: str
    type: str
    read_at: str | None = Field(default=None, alias="readAt")
    created_at: str | None = Field(default=None, alias="createdAt")
    issue: LinearIssueRef | None = None
    project: LinearOrganizationRef | None = None
    team: LinearOrganizationRef | None = None

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
