"""Core data models for ytlivechat."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import ConfigurationError


class IdType(str, Enum):
    """Kind of id used to open a live chat."""

    VIDEO = "video"
    CHANNEL = "channel"


class ChatMode(str, Enum):
    """Whether the chat is a running broadcast or a replay of a past one."""

    LIVE = "live"
    REPLAY = "replay"


@dataclass(frozen=True)
class ChatLocale:
    """Locale sent with every InnerTube request (``gl``/``hl``)."""

    country: str = "US"
    language: str = "en"

    def __post_init__(self) -> None:
        if not self.country:
            raise ConfigurationError("Locale must be set country!")
        if not self.language:
            raise ConfigurationError("Locale must be set language!")

    @classmethod
    def from_tag(cls, tag: str) -> "ChatLocale":
        """Build a locale from a tag such as ``en_US`` or ``ja-JP``."""
        language, _, country = tag.replace("-", "_").partition("_")
        return cls(country=country.upper(), language=language.lower())


@dataclass
class LiveBroadcastDetails:
    """Broadcast timing info scraped from the watch page."""

    is_live_now: Optional[bool] = None
    start_timestamp: Optional[str] = None
    end_timestamp: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "LiveBroadcastDetails":
        if not isinstance(data, dict):
            return cls()
        return cls(
            is_live_now=data.get("isLiveNow"),
            start_timestamp=data.get("startTimestamp"),
            end_timestamp=data.get("endTimestamp"),
        )
