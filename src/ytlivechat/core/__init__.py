"""Core models and utilities for ytlivechat."""

from .errors import (
    ChatPermissionError,
    ConfigurationError,
    LiveChatError,
    ProtocolError,
    TransportError,
)
from .models import ChatLocale, ChatMode, IdType, LiveBroadcastDetails
from .settings import ChatSettings

__all__ = [
    "ChatLocale",
    "ChatMode",
    "IdType",
    "LiveBroadcastDetails",
    "ChatSettings",
    "LiveChatError",
    "TransportError",
    "ProtocolError",
    "ChatPermissionError",
    "ConfigurationError",
]
