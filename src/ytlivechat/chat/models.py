"""Data models for decoded live chat events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

from ..core.errors import ChatPermissionError

if TYPE_CHECKING:
    from .session import LiveChatSession


class ChatItemType(str, Enum):
    """Variant tag of a decoded chat item."""

    MESSAGE = "message"
    PAID_MESSAGE = "paid_message"
    PAID_STICKER = "paid_sticker"
    TICKER_PAID_MESSAGE = "ticker_paid_message"
    NEW_MEMBER_MESSAGE = "new_member_message"
    VIEWER_ENGAGEMENT_MESSAGE = "viewer_engagement_message"


class AuthorType(str, Enum):
    """Role of a chat item's author, derived from author badges."""

    NORMAL = "normal"
    VERIFIED = "verified"
    OWNER = "owner"
    MEMBER = "member"
    MODERATOR = "moderator"
    PLATFORM = "platform"  # YouTube's own system messages


class ModerationAction(str, Enum):
    """Moderation actions reachable through an item's context menu."""

    PIN = "pin"
    DELETE = "delete"
    TIMEOUT = "timeout"
    BAN = "ban"
    UNBAN = "unban"


@dataclass
class Text:
    """Plain text run of a message."""

    text: str


@dataclass
class Emoji:
    """Emoji run of a message (standard or channel custom emoji)."""

    emoji_id: Optional[str] = None
    shortcuts: list[str] = field(default_factory=list)  # e.g. [":smile:"]
    search_terms: list[str] = field(default_factory=list)
    icon_url: Optional[str] = None
    is_custom_emoji: bool = False


MessageSegment = Union[Text, Emoji]


@dataclass
class ModerationTokens:
    """Opaque context-menu params for each moderation action of one item.

    ``fetched`` is set once the context menu has been loaded so the menu is
    requested at most once per item until invalidated.
    """

    pin: Optional[str] = None
    delete: Optional[str] = None
    timeout: Optional[str] = None
    ban: Optional[str] = None
    unban: Optional[str] = None
    fetched: bool = False

    def get(self, action: ModerationAction) -> Optional[str]:
        return getattr(self, action.value)

    def set(self, action: ModerationAction, params: Optional[str]) -> None:
        setattr(self, action.value, params)

    def invalidate(self) -> None:
        """Forget every cached token."""
        for action in ModerationAction:
            self.set(action, None)
        self.fetched = False


@dataclass
class ChatItem:
    """A single decoded chat event.

    ``type`` selects which of the variant-specific fields are meaningful.
    Colors are ARGB integers as sent by YouTube.
    """

    type: ChatItemType = ChatItemType.MESSAGE
    id: Optional[str] = None
    author_name: Optional[str] = None
    author_channel_id: Optional[str] = None
    author_icon_url: Optional[str] = None
    author_types: set[AuthorType] = field(default_factory=lambda: {AuthorType.NORMAL})
    member_badge_icon_url: Optional[str] = None
    message: Optional[str] = None
    message_extended: list[MessageSegment] = field(default_factory=list)
    timestamp: int = 0  # microseconds since epoch

    # Paid message
    body_background_color: int = 0
    body_text_color: int = 0
    header_background_color: int = 0
    header_text_color: int = 0
    author_name_text_color: int = 0
    timestamp_color: int = 0
    purchase_amount: Optional[str] = None  # e.g. "￥100"

    # Paid sticker
    sticker_icon_url: Optional[str] = None
    background_color: int = 0

    # Ticker paid message
    end_background_color: int = 0
    duration_sec: int = 0  # elapsed display time
    full_duration_sec: int = 0

    # Moderation
    context_menu_params: Optional[str] = None
    moderation: ModerationTokens = field(default_factory=ModerationTokens, repr=False)

    session: Optional[LiveChatSession] = field(default=None, repr=False, compare=False)

    @property
    def timestamp_datetime(self) -> datetime | None:
        """The timestamp as an aware UTC datetime, if one was sent."""
        if not self.timestamp:
            return None
        try:
            return datetime.fromtimestamp(self.timestamp / 1_000_000, tz=timezone.utc)
        except (ValueError, OSError, OverflowError):
            return None

    @property
    def is_author_verified(self) -> bool:
        return AuthorType.VERIFIED in self.author_types

    @property
    def is_author_owner(self) -> bool:
        return AuthorType.OWNER in self.author_types

    @property
    def is_author_moderator(self) -> bool:
        return AuthorType.MODERATOR in self.author_types

    @property
    def is_author_member(self) -> bool:
        return AuthorType.MEMBER in self.author_types

    async def delete(self) -> None:
        """Delete this item. Requires being its author, a moderator or the owner."""
        await self._require_session().delete_item(self)

    async def timeout_author(self) -> None:
        """Put the author in a 300 second timeout."""
        await self._require_session().timeout_author(self)

    async def ban_author(self) -> None:
        """Ban the author from the channel permanently."""
        await self._require_session().ban_author(self)

    async def unban_author(self) -> None:
        await self._require_session().unban_author(self)

    async def pin_as_banner(self) -> None:
        await self._require_session().pin_item(self)

    def _require_session(self) -> LiveChatSession:
        if self.session is None:
            raise ChatPermissionError("This chat item is not attached to a live chat session")
        return self.session


@dataclass
class ChatItemDelete:
    """A deletion notice for one message, or for all messages of an author."""

    target_id: Optional[str] = None
    target_channel_id: Optional[str] = None  # set when an author's messages were removed
    message: Optional[str] = None  # usually "[message deleted]"
    message_extended: list[MessageSegment] = field(default_factory=list)
