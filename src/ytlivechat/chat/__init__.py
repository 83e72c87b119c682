"""YouTube live chat polling, decoding and moderation."""

from .models import (
    AuthorType,
    ChatItem,
    ChatItemDelete,
    ChatItemType,
    Emoji,
    ModerationAction,
    Text,
)
from .session import LiveChatSession

__all__ = [
    "AuthorType",
    "ChatItem",
    "ChatItemDelete",
    "ChatItemType",
    "Emoji",
    "ModerationAction",
    "Text",
    "LiveChatSession",
]
