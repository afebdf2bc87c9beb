"""
Twitter (X) API v2 adapter.

Usage:
    async with TwitterIntegration("user-1", access_token="...") as twitter:
        me = await twitter.get_current_user()
        tweet = await twitter.create_tweet("Shipping today")
        result = await twitter.sync_data()

Webhooks are signed with HMAC-SHA256 over the raw body, base64 encoded
and prefixed with "sha256=", in the x-twitter-webhooks-signature header.

API Reference:
    https://developer.x.com/en/docs/x-api
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable

from aurelius.integrations.base import BaseIntegration
from aurelius.integrations.schemas import IntegrationCapability

from .schemas import (
    DM_FIELDS,
    LIST_FIELDS,
    SPACE_FIELDS,
    TWEET_FIELDS,
    USER_FIELDS,
    TweetCreate,
    TwitterDirectMessage,
    TwitterList,
    TwitterSpace,
    TwitterTweet,
    TwitterUser,
)

logger = logging.getLogger(__name__)


class TwitterIntegration(BaseIntegration):
    """
    Adapter for the Twitter (X) v2 REST API.

    Caches users, tweets, lists, spaces, direct messages and media by id.
    """

    provider = "twitter"
    name = "Twitter / X"
    version = "2.0.0"
    api_base_url = "https://api.twitter.com"
    token_url = "https://api.twitter.com/2/oauth2/token"
    token_auth_basic = True

    cache_resources = ("users", "tweets", "lists", "spaces", "direct_messages", "media")

    webhook_events = {
        "tweet.create": ("tweets",),
        "tweet.update": ("tweets",),
        "tweet.delete": ("tweets",),
        "user.follow": ("users",),
        "user.unfollow": ("users",),
        "direct_message.create": ("direct_messages",),
        "list.create": ("lists",),
        "list.update": ("lists",),
        "list.delete": ("lists",),
        "space.create": ("spaces",),
        "space.update": ("spaces",),
        "space.end": ("spaces",),
    }

    signature_header = "x-twitter-webhooks-signature"
    signature_encoding = "base64"
    signature_prefix = "sha256="

    default_scopes = (
        "tweet.read",
        "tweet.write",
        "users.read",
        "follows.read",
        "follows.write",
        "offline.access",
        "space.read",
        "like.read",
        "like.write",
        "list.read",
        "list.write",
        "bookmark.read",
        "bookmark.write",
        "dm.read",
    )

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._me: TwitterUser | None = None

    # =========================================================================
    # Contract
    # =========================================================================

    async def _verify_credentials(self) -> dict[str, Any]:
        me = await self.get_current_user(refresh=True)
        return me.model_dump()

    def _connection_details(self, profile: dict[str, Any]) -> dict[str, Any]:
        metrics = profile.get("public_metrics") or {}
        return {
            "user_id": profile.get("id"),
            "username": profile.get("username"),
            "name": profile.get("name"),
            "followers_count": metrics.get("followers_count"),
            "following_count": metrics.get("following_count"),
            "tweet_count": metrics.get("tweet_count"),
            "verified": profile.get("verified"),
        }

    def get_capabilities(self) -> list[IntegrationCapability]:
        return [
            IntegrationCapability(
                name="profile",
                description="Read the connected account and other users",
                required_scopes=["users.read"],
            ),
            IntegrationCapability(
                name="tweets",
                description="Read, publish and delete tweets",
                required_scopes=["tweet.read", "tweet.write"],
            ),
            IntegrationCapability(
                name="engagement",
                description="Like, retweet and bookmark tweets",
                required_scopes=["like.read", "like.write", "bookmark.read", "bookmark.write"],
            ),
            IntegrationCapability(
                name="follows",
                description="List and manage followers and followed accounts",
                required_scopes=["follows.read", "follows.write"],
            ),
            IntegrationCapability(
                name="lists",
                description="Manage owned lists and their members",
                required_scopes=["list.read", "list.write"],
            ),
            IntegrationCapability(
                name="direct_messages",
                description="Read direct message events",
                required_scopes=["dm.read"],
            ),
            IntegrationCapability(
                name="spaces",
                description="Search Spaces",
                required_scopes=["space.read"],
            ),
            IntegrationCapability(
                name="offline_access",
                description="Refresh tokens for long-lived connections",
                required_scopes=["offline.access"],
            ),
        ]

    def _sync_branches(self, last_sync_time: datetime | None) -> dict[str, Awaitable[Any]]:
        return {
            "user": self._sync_user(),
            "tweets": self._sync_tweets(last_sync_time),
            "lists": self.get_lists(),
            "direct_messages": self.get_direct_messages(),
        }

    async def _sync_user(self) -> list[TwitterUser]:
        return [await self.get_current_user(refresh=True)]

    async def _sync_tweets(self, last_sync_time: datetime | None) -> list[TwitterTweet]:
        params: dict[str, Any] = {}
        if last_sync_time:
            params["start_time"] = last_sync_time.strftime("%Y-%m-%dT%H:%M:%SZ")
        return await self.get_user_tweets(extra_params=params)

    # =========================================================================
    # Users
    # =========================================================================

    async def get_current_user(self, refresh: bool = False) -> TwitterUser:
        if self._me is not None and not refresh:
            return self._me

        body = await self._call(
            "get_current_user", "GET", "/2/users/me", params={"user.fields": USER_FIELDS}
        )
        me = TwitterUser.model_validate(body["data"])
        self._me = me
        self.cache.set("users", me.id, me)
        return me

    async def _my_id(self, user_id: str | None = None) -> str:
        if user_id:
            return user_id
        return (await self.get_current_user()).id

    async def get_user(self, user_id: str) -> TwitterUser:
        cached = self.cache.get("users", user_id)
        if cached is not None:
            return cached

        body = await self._call(
            "get_user", "GET", f"/2/users/{user_id}", params={"user.fields": USER_FIELDS}
        )
        user = TwitterUser.model_validate(body["data"])
        self.cache.set("users", user.id, user)
        return user

    async def get_user_by_username(self, username: str) -> TwitterUser:
        body = await self._call(
            "get_user_by_username",
            "GET",
            f"/2/users/by/username/{username.lstrip('@')}",
            params={"user.fields": USER_FIELDS},
        )
        user = TwitterUser.model_validate(body["data"])
        self.cache.set("users", user.id, user)
        return user

    async def _list_users(self, operation: str, path: str, max_results: int) -> list[TwitterUser]:
        body = await self._call(
            operation,
            "GET",
            path,
            params={"max_results": max_results, "user.fields": USER_FIELDS},
        )
        users = [TwitterUser.model_validate(u) for u in (body or {}).get("data", [])]
        self.cache.set_many("users", users)
        return users

    async def get_followers(self, user_id: str | None = None, max_results: int = 100) -> list[TwitterUser]:
        uid = await self._my_id(user_id)
        return await self._list_users("get_followers", f"/2/users/{uid}/followers", max_results)

    async def get_following(self, user_id: str | None = None, max_results: int = 100) -> list[TwitterUser]:
        uid = await self._my_id(user_id)
        return await self._list_users("get_following", f"/2/users/{uid}/following", max_results)

    async def follow_user(self, target_user_id: str) -> bool:
        me = await self._my_id()
        body = await self._call(
            "follow_user",
            "POST",
            f"/2/users/{me}/following",
            json={"target_user_id": target_user_id},
        )
        return bool(body["data"].get("following"))

    async def unfollow_user(self, target_user_id: str) -> bool:
        me = await self._my_id()
        body = await self._call(
            "unfollow_user", "DELETE", f"/2/users/{me}/following/{target_user_id}"
        )
        return body["data"].get("following") is False

    # =========================================================================
    # Tweets
    # =========================================================================

    async def get_tweet(self, tweet_id: str) -> TwitterTweet:
        cached = self.cache.get("tweets", tweet_id)
        if cached is not None:
            return cached

        body = await self._call(
            "get_tweet", "GET", f"/2/tweets/{tweet_id}", params={"tweet.fields": TWEET_FIELDS}
        )
        tweet = TwitterTweet.model_validate(body["data"])
        self.cache.set("tweets", tweet.id, tweet)
        return tweet

    async def get_user_tweets(
        self,
        user_id: str | None = None,
        max_results: int = 100,
        extra_params: dict[str, Any] | None = None,
    ) -> list[TwitterTweet]:
        uid = await self._my_id(user_id)
        body = await self._call(
            "get_user_tweets",
            "GET",
            f"/2/users/{uid}/tweets",
            params={"max_results": max_results, "tweet.fields": TWEET_FIELDS, **(extra_params or {})},
        )
        tweets = [TwitterTweet.model_validate(t) for t in (body or {}).get("data", [])]
        self.cache.set_many("tweets", tweets)
        return tweets

    async def create_tweet(self, text: str, **options: Any) -> TwitterTweet:
        """
        Publish a tweet.

        Options: reply_to, media_ids, poll_options, poll_duration_minutes, place_id.
        """
        request = TweetCreate(text=text, **options)
        body = await self._call("create_tweet", "POST", "/2/tweets", json=request.to_api_dict())
        tweet = TwitterTweet.model_validate(body["data"])
        self.cache.set("tweets", tweet.id, tweet)
        logger.info(f"[twitter] Created tweet {tweet.id}")
        return tweet

    async def delete_tweet(self, tweet_id: str) -> bool:
        body = await self._call("delete_tweet", "DELETE", f"/2/tweets/{tweet_id}")
        self.cache.delete("tweets", tweet_id)
        return bool(body["data"].get("deleted"))

    async def _toggle(self, operation: str, method: str, path: str, flag: str, payload: dict | None = None) -> bool:
        body = await self._call(operation, method, path, json=payload)
        return bool(body["data"].get(flag))

    async def like_tweet(self, tweet_id: str) -> bool:
        me = await self._my_id()
        return await self._toggle("like_tweet", "POST", f"/2/users/{me}/likes", "liked", {"tweet_id": tweet_id})

    async def unlike_tweet(self, tweet_id: str) -> bool:
        me = await self._my_id()
        return not await self._toggle("unlike_tweet", "DELETE", f"/2/users/{me}/likes/{tweet_id}", "liked")

    async def retweet(self, tweet_id: str) -> bool:
        me = await self._my_id()
        return await self._toggle("retweet", "POST", f"/2/users/{me}/retweets", "retweeted", {"tweet_id": tweet_id})

    async def unretweet(self, tweet_id: str) -> bool:
        me = await self._my_id()
        return not await self._toggle("unretweet", "DELETE", f"/2/users/{me}/retweets/{tweet_id}", "retweeted")

    async def bookmark_tweet(self, tweet_id: str) -> bool:
        me = await self._my_id()
        return await self._toggle(
            "bookmark_tweet", "POST", f"/2/users/{me}/bookmarks", "bookmarked", {"tweet_id": tweet_id}
        )

    async def unbookmark_tweet(self, tweet_id: str) -> bool:
        me = await self._my_id()
        return not await self._toggle(
            "unbookmark_tweet", "DELETE", f"/2/users/{me}/bookmarks/{tweet_id}", "bookmarked"
        )

    async def search_tweets(
        self,
        query: str,
        max_results: int = 100,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[TwitterTweet]:
        params: dict[str, Any] = {
            "query": query,
            "max_results": max_results,
            "tweet.fields": TWEET_FIELDS,
        }
        if start_time:
            params["start_time"] = start_time.strftime("%Y-%m-%dT%H:%M:%SZ")
        if end_time:
            params["end_time"] = end_time.strftime("%Y-%m-%dT%H:%M:%SZ")

        body = await self._call("search_tweets", "GET", "/2/tweets/search/recent", params=params)
        tweets = [TwitterTweet.model_validate(t) for t in (body or {}).get("data", [])]
        self.cache.set_many("tweets", tweets)
        return tweets

    # =========================================================================
    # Lists
    # =========================================================================

    async def get_lists(self, user_id: str | None = None) -> list[TwitterList]:
        uid = await self._my_id(user_id)
        body = await self._call(
            "get_lists", "GET", f"/2/users/{uid}/owned_lists", params={"list.fields": LIST_FIELDS}
        )
        lists = [TwitterList.model_validate(item) for item in (body or {}).get("data", [])]
        self.cache.set_many("lists", lists)
        return lists

    async def create_list(self, name: str, description: str | None = None, private: bool = False) -> TwitterList:
        payload: dict[str, Any] = {"name": name, "private": private}
        if description:
            payload["description"] = description
        body = await self._call("create_list", "POST", "/2/lists", json=payload)
        created = TwitterList.model_validate({"private": private, "description": description, **body["data"]})
        self.cache.set("lists", created.id, created)
        return created

    async def delete_list(self, list_id: str) -> bool:
        body = await self._call("delete_list", "DELETE", f"/2/lists/{list_id}")
        self.cache.delete("lists", list_id)
        return bool(body["data"].get("deleted"))

    async def add_list_member(self, list_id: str, user_id: str) -> bool:
        body = await self._call(
            "add_list_member", "POST", f"/2/lists/{list_id}/members", json={"user_id": user_id}
        )
        return bool(body["data"].get("is_member"))

    async def remove_list_member(self, list_id: str, user_id: str) -> bool:
        body = await self._call("remove_list_member", "DELETE", f"/2/lists/{list_id}/members/{user_id}")
        return body["data"].get("is_member") is False

    # =========================================================================
    # Direct messages and Spaces
    # =========================================================================

    async def get_direct_messages(self, max_results: int = 100) -> list[TwitterDirectMessage]:
        body = await self._call(
            "get_direct_messages",
            "GET",
            "/2/dm_events",
            params={"max_results": max_results, "dm_event.fields": DM_FIELDS},
        )
        messages = [TwitterDirectMessage.model_validate(m) for m in (body or {}).get("data", [])]
        self.cache.set_many("direct_messages", messages)
        return messages

    async def search_spaces(self, query: str, state: str = "all") -> list[TwitterSpace]:
        body = await self._call(
            "search_spaces",
            "GET",
            "/2/spaces/search",
            params={"query": query, "state": state, "space.fields": SPACE_FIELDS},
        )
        spaces = [TwitterSpace.model_validate(s) for s in (body or {}).get("data", [])]
        self.cache.set_many("spaces", spaces)
        return spaces

    def clear_cache(self) -> None:
        super().clear_cache()
        self._me = None
