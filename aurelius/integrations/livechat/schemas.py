"""Pydantic schemas for the LiveChat Agent, Configuration and Reports APIs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _LiveChatModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LiveChatAgent(_LiveChatModel):
    """Agents are identified by their login email."""

    id: str
    name: str = ""
    email: str | None = None
    role: str | None = None
    avatar: str | None = Field(default=None, alias="avatar_path")
    job_title: str | None = None
    routing_status: str | None = None
    groups: list[dict[str, Any]] = Field(default_factory=list)
    last_logout: str | None = None


class Geolocation(_LiveChatModel):
    country: str | None = None
    country_code: str | None = None
    region: str | None = None
    city: str | None = None
    timezone: str | None = None


class LastVisit(_LiveChatModel):
    started_at: str | None = None
    ended_at: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    geolocation: Geolocation | None = None


class CustomerStatistics(_LiveChatModel):
    chats_count: int = 0
    threads_count: int = 0
    visits_count: int = 0
    page_views_count: int = 0
    greetings_shown_count: int = 0
    greetings_accepted_count: int = 0


class LiveChatCustomer(_LiveChatModel):
    id: str
    type: str = "customer"
    name: str | None = None
    email: str | None = None
    avatar: str | None = None
    session_fields: list[dict[str, str]] = Field(default_factory=list)
    last_visit: LastVisit | None = None
    statistics: CustomerStatistics | None = None
    created_at: str | None = None


class LiveChatMessage(_LiveChatModel):
    id: str
    type: str = "message"
    text: str | None = None
    author_id: str | None = None
    visibility: str = "all"
    created_at: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class LiveChatThread(_LiveChatModel):
    id: str
    active: bool = False
    user_ids: list[str] = Field(default_factory=list)
    events: list[LiveChatMessage] = Field(default_factory=list)
    created_at: str | None = None


class LiveChatChat(_LiveChatModel):
    id: str
    users: list[dict[str, Any]] = Field(default_factory=list)
    thread: LiveChatThread | None = Field(default=None, alias="last_thread_summary")
    properties: dict[str, Any] = Field(default_factory=dict)
    access: dict[str, Any] = Field(default_factory=dict)
    is_followed: bool = False

    @property
    def is_active(self) -> bool:
        return bool(self.thread and self.thread.active)


class LiveChatGroup(_LiveChatModel):
    id: int
    name: str = ""
    language_code: str = "en"
    agent_priorities: dict[str, str] = Field(default_factory=dict)
    routing_status: str | None = None


class LiveChatReport(_LiveChatModel):
    total: int = 0
    records: dict[str, Any] = Field(default_factory=dict)
