"""
Pydantic schemas for the Twitter (X) API v2.

Field names follow the v2 JSON payloads. Unknown fields are ignored so
new API additions never break parsing.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class _TwitterModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


USER_FIELDS = (
    "created_at,description,entities,id,location,name,pinned_tweet_id,"
    "profile_image_url,protected,public_metrics,url,username,verified"
)
TWEET_FIELDS = (
    "attachments,author_id,context_annotations,conversation_id,created_at,entities,"
    "geo,id,in_reply_to_user_id,lang,public_metrics,referenced_tweets,reply_settings,source,text"
)
LIST_FIELDS = "created_at,description,follower_count,id,member_count,name,owner_id,private"
SPACE_FIELDS = (
    "created_at,ended_at,host_ids,id,is_ticketed,lang,participant_count,speaker_ids,"
    "started_at,state,subscriber_count,title,topic_ids,updated_at"
)
DM_FIELDS = "id,text,created_at,sender_id,dm_conversation_id,referenced_tweet,attachments"


class UserMetrics(_TwitterModel):
    followers_count: int = 0
    following_count: int = 0
    tweet_count: int = 0
    listed_count: int = 0


class TwitterUser(_TwitterModel):
    id: str
    name: str
    username: str
    description: str | None = None
    profile_image_url: str | None = None
    verified: bool = False
    protected: bool = False
    public_metrics: UserMetrics = Field(default_factory=UserMetrics)
    created_at: str | None = None
    location: str | None = None
    url: str | None = None
    pinned_tweet_id: str | None = None
    entities: dict[str, Any] | None = None


class TweetMetrics(_TwitterModel):
    retweet_count: int = 0
    reply_count: int = 0
    like_count: int = 0
    quote_count: int = 0
    bookmark_count: int = 0
    impression_count: int = 0


class ReferencedTweet(_TwitterModel):
    type: Literal["retweeted", "quoted", "replied_to"]
    id: str


class TwitterTweet(_TwitterModel):
    id: str
    text: str
    author_id: str | None = None
    created_at: str | None = None
    conversation_id: str | None = None
    in_reply_to_user_id: str | None = None
    referenced_tweets: list[ReferencedTweet] = Field(default_factory=list)
    attachments: dict[str, Any] | None = None
    context_annotations: list[dict[str, Any]] = Field(default_factory=list)
    entities: dict[str, Any] | None = None
    geo: dict[str, Any] | None = None
    lang: str | None = None
    public_metrics: TweetMetrics = Field(default_factory=TweetMetrics)
    reply_settings: str | None = None
    source: str | None = None


class TwitterMedia(_TwitterModel):
    media_key: str
    type: Literal["photo", "video", "animated_gif"]
    duration_ms: int | None = None
    height: int | None = None
    width: int | None = None
    preview_image_url: str | None = None
    url: str | None = None
    alt_text: str | None = None


class TwitterList(_TwitterModel):
    id: str
    name: str
    description: str | None = None
    follower_count: int | None = None
    member_count: int | None = None
    private: bool = False
    owner_id: str | None = None
    created_at: str | None = None


class TwitterSpace(_TwitterModel):
    id: str
    state: Literal["live", "scheduled", "ended"]
    title: str | None = None
    created_at: str | None = None
    started_at: str | None = None
    ended_at: str | None = None
    scheduled_start: str | None = None
    updated_at: str | None = None
    host_ids: list[str] = Field(default_factory=list)
    speaker_ids: list[str] = Field(default_factory=list)
    invited_user_ids: list[str] = Field(default_factory=list)
    topic_ids: list[str] = Field(default_factory=list)
    lang: str | None = None
    is_ticketed: bool = False
    participant_count: int | None = None
    subscriber_count: int | None = None


class TwitterDirectMessage(_TwitterModel):
    id: str
    text: str | None = None
    created_at: str | None = None
    sender_id: str | None = None
    dm_conversation_id: str | None = None
    event_type: str | None = None
    referenced_tweet: dict[str, Any] | None = None
    attachments: dict[str, Any] | None = None


class TweetCreate(BaseModel):
    """Request body for POST /2/tweets."""

    text: str = Field(..., min_length=1, max_length=280)
    reply_to: str | None = None
    media_ids: list[str] | None = None
    poll_options: list[str] | None = Field(None, min_length=2, max_length=4)
    poll_duration_minutes: int | None = Field(None, ge=5, le=10080)
    place_id: str | None = None

    def to_api_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text}
        if self.reply_to:
            data["reply"] = {"in_reply_to_tweet_id": self.reply_to}
        if self.media_ids:
            data["media"] = {"media_ids": self.media_ids}
        if self.poll_options:
            data["poll"] = {
                "options": self.poll_options,
                "duration_minutes": self.poll_duration_minutes or 1440,
            }
        if self.place_id:
            data["geo"] = {"place_id": self.place_id}
        return data
