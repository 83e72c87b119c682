"""ytlivechat - read, send and moderate YouTube live chat."""

from .chat import ChatItem, ChatItemDelete, ChatItemType, LiveChatSession
from .core import ChatLocale, ChatSettings, IdType

__version__ = "0.1.0"

__all__ = [
    "ChatItem",
    "ChatItemDelete",
    "ChatItemType",
    "ChatLocale",
    "ChatSettings",
    "IdType",
    "LiveChatSession",
]
