"""Twitter (X) integration."""

from .client import TwitterIntegration
from .schemas import (
    TweetCreate,
    TwitterDirectMessage,
    TwitterList,
    TwitterMedia,
    TwitterSpace,
    TwitterTweet,
    TwitterUser,
)

__all__ = [
    "TweetCreate",
    "TwitterDirectMessage",
    "TwitterIntegration",
    "TwitterList",
    "TwitterMedia",
    "TwitterSpace",
    "TwitterTweet",
    "TwitterUser",
]
