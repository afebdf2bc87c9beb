"""LiveChat integration."""

from .client import LiveChatIntegration
from .schemas import (
    LiveChatAgent,
    LiveChatChat,
    LiveChatCustomer,
    LiveChatGroup,
    LiveChatMessage,
    LiveChatReport,
    LiveChatThread,
)

__all__ = [
    "LiveChatAgent",
    "LiveChatChat",
    "LiveChatCustomer",
    "LiveChatGroup",
    "LiveChatIntegration",
    "LiveChatMessage",
    "LiveChatReport",
    "LiveChatThread",
]
