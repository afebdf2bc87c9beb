"""
Pydantic schemas for the LinkedIn v2 REST API.

LinkedIn localizes most text fields as
{"localized": {"en_US": "..."}, "preferredLocale": {...}}; LocalizedText
keeps that shape and exposes the preferred value as `.text`.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _LinkedInModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Locale(_LinkedInModel):
    country: str = "US"
    language: str = "en"


class LocalizedText(_LinkedInModel):
    localized: dict[str, str] = Field(default_factory=dict)
    preferred_locale: Locale = Field(default_factory=Locale, alias="preferredLocale")

    @property
    def text(self) -> str:
        key = f"{self.preferred_locale.language}_{self.preferred_locale.country}"
        if key in self.localized:
            return self.localized[key]
        return next(iter(self.localized.values()), "")


class YearMonth(_LinkedInModel):
    year: int
    month: int | None = None


class LinkedInPosition(_LinkedInModel):
    id: str | None = None
    title: str
    company_name: str | None = Field(None, alias="companyName")
    description: str | None = None
    start_date: YearMonth | None = Field(None, alias="startDate")
    end_date: YearMonth | None = Field(None, alias="endDate")
    is_current: bool = Field(False, alias="isCurrent")


class LinkedInProfile(_LinkedInModel):
    id: str
    first_name: LocalizedText = Field(default_factory=LocalizedText, alias="firstName")
    last_name: LocalizedText = Field(default_factory=LocalizedText, alias="lastName")
    headline: LocalizedText | None = None
    summary: str | None = None
    industry: str | None = None
    location: dict[str, Any] | None = None
    positions: list[LinkedInPosition] = Field(default_factory=list)
    public_profile_url: str | None = Field(None, alias="publicProfileUrl")
    num_connections: int | None = Field(None, alias="numConnections")

    @property
    def full_name(self) -> str:
        return f"{self.first_name.text} {self.last_name.text}".strip()


class LinkedInPost(_LinkedInModel):
    id: str
    author: str | None = None
    lifecycle_state: Literal["PUBLISHED", "DRAFT", "DELETED"] | None = Field(None, alias="lifecycleState")
    specific_content: dict[str, Any] | None = Field(None, alias="specificContent")
    visibility: dict[str, str] | None = None
    created: dict[str, int] | None = None
    last_modified: dict[str, int] | None = Field(None, alias="lastModified")

    @property
    def text(self) -> str:
        share = (self.specific_content or {}).get("com.linkedin.ugc.ShareContent", {})
        return (share.get("shareCommentary") or {}).get("text", "")


class LinkedInConnection(_LinkedInModel):
    id: str
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")
    headline: str | None = None
    public_profile_url: str | None = Field(None, alias="publicProfileUrl")
    connected_at: int | None = Field(None, alias="connectedAt")


class LinkedInCompany(_LinkedInModel):
    id: str
    name: LocalizedText | str
    description: LocalizedText | str | None = None
    industry: str | None = None
    website: str | None = None
    follower_count: int | None = Field(None, alias="followerCount")
    specialties: list[str] = Field(default_factory=list)


class LinkedInMessage(_LinkedInModel):
    id: str
    thread_id: str | None = Field(None, alias="threadId")
    sender: str | None = None
    recipients: list[str] = Field(default_factory=list)
    subject: str | None = None
    body: str | None = None
    created_at: int | None = Field(None, alias="createdAt")


class LinkedInPostStats(_LinkedInModel):
    likes: int = Field(0, alias="numLikes")
    comments: int = Field(0, alias="numComments")
    shares: int = Field(0, alias="numShares")
    impressions: int = Field(0, alias="numImpressions")
