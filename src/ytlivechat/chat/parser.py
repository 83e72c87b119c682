"""Decoding of InnerTube live chat actions into chat items.

Handles the action kinds the live chat feed delivers:
- addChatItemAction (messages, Super Chats, Super Stickers, memberships)
- addLiveChatTickerItemAction (ticker of running Super Chats)
- replayChatItemAction (replay wrapper around the above)
- addBannerToLiveChatCommand / removeBannerForLiveChatCommand (pinned item)
- markChatItemAsDeletedAction (single message deletion)
- markChatItemsByAuthorAsDeletedAction (ban/timeout - all messages by author)

Anything else is ignored so new renderer types never break polling.
"""

import logging
import weakref

from .json_path import get_bool, get_int, get_list, get_map, get_str
from .models import (
    AuthorType,
    ChatItem,
    ChatItemDelete,
    ChatItemType,
    Emoji,
    MessageSegment,
    Text,
)

logger = logging.getLogger(__name__)

# Renderers sharing the common author/message layout, in lookup priority order
_MESSAGE_RENDERERS = (
    "liveChatTextMessageRenderer",
    "liveChatPaidMessageRenderer",
    "liveChatPaidStickerRenderer",
    "liveChatMembershipItemRenderer",
)

_BADGE_ROLES = {
    "VERIFIED": AuthorType.VERIFIED,
    "OWNER": AuthorType.OWNER,
    "MODERATOR": AuthorType.MODERATOR,
}

PLATFORM_AUTHOR_NAME = "YouTube"
PLATFORM_AUTHOR_CHANNEL_ID = "user/YouTube"


def pick_thumbnail_url(thumbnails: list | None) -> str | None:
    """Return the URL of the widest thumbnail.

    A later entry replaces the pick when its width is greater than or equal
    to the best so far, so the last entry at the maximum width wins.
    """
    best_width = 0
    url = None
    for thumbnail in thumbnails or []:
        candidate = get_str(thumbnail, "url") if isinstance(thumbnail, dict) else None
        if candidate is None:
            continue
        width = get_int(thumbnail, "width")
        if best_width <= width:
            best_width = width
            url = candidate
    return url


def parse_emoji(emoji: dict) -> Emoji:
    """Decode an ``emoji`` run object."""
    shortcuts = [str(s) for s in get_list(emoji, "shortcuts") or []]
    search_terms = [str(s) for s in get_list(emoji, "searchTerms") or []]
    return Emoji(
        emoji_id=get_str(emoji, "emojiId"),
        shortcuts=shortcuts,
        search_terms=search_terms,
        icon_url=pick_thumbnail_url(get_list(emoji, "image", "thumbnails")),
        is_custom_emoji=get_bool(emoji, "isCustomEmoji"),
    )


def parse_message(message: dict | None) -> tuple[str | None, list[MessageSegment]]:
    """Decode a ``{"runs": [...]}`` node into plain text and segments.

    Emoji are rendered into the plain text as their first shortcut padded by
    one space on each side. Returns ``None`` as text if nothing contributed.
    """
    text = ""
    segments: list[MessageSegment] = []
    for run in get_list(message, "runs") or []:
        if not isinstance(run, dict):
            continue
        run_text = run.get("text")
        if isinstance(run_text, str):
            text += run_text
            segments.append(Text(run_text))
        emoji_node = get_map(run, "emoji")
        if emoji_node is not None:
            emoji = parse_emoji(emoji_node)
            if emoji.shortcuts:
                text += f" {emoji.shortcuts[0]} "
            segments.append(emoji)
    return (text or None), segments


def _parse_timestamp(renderer: dict) -> int | None:
    raw = get_str(renderer, "timestampUsec")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug(f"Ignoring malformed timestampUsec: {raw!r}")
        return None


def _parse_badges(item: ChatItem, renderer: dict) -> None:
    """Add author roles (and the member badge icon) from ``authorBadges``."""
    for badge in get_list(renderer, "authorBadges") or []:
        if not isinstance(badge, dict):
            continue
        badge_renderer = get_map(badge, "liveChatAuthorBadgeRenderer")
        if badge_renderer is None:
            continue
        role = _BADGE_ROLES.get(get_str(badge_renderer, "icon", "iconType") or "")
        if role is not None:
            item.author_types.add(role)
        custom_thumbnail = get_map(badge_renderer, "customThumbnail")
        if custom_thumbnail is not None:
            item.author_types.add(AuthorType.MEMBER)
            item.member_badge_icon_url = pick_thumbnail_url(
                get_list(custom_thumbnail, "thumbnails")
            )


def _parse_common(item: ChatItem, renderer: dict) -> None:
    """Fill the fields every message-like renderer shares."""
    item.author_name = get_str(renderer, "authorName", "simpleText")
    item.id = get_str(renderer, "id")
    item.author_channel_id = get_str(renderer, "authorExternalChannelId")
    item.message, item.message_extended = parse_message(get_map(renderer, "message"))
    author_photo = get_list(renderer, "authorPhoto", "thumbnails")
    if author_photo is not None:
        item.author_icon_url = pick_thumbnail_url(author_photo)
    timestamp = _parse_timestamp(renderer)
    if timestamp is not None:
        item.timestamp = timestamp
    _parse_badges(item, renderer)
    context_menu_params = get_str(
        renderer, "contextMenuEndpoint", "liveChatItemContextMenuEndpoint", "params"
    )
    if context_menu_params is not None:
        item.context_menu_params = context_menu_params


def _parse_viewer_engagement(item: ChatItem, renderer: dict) -> None:
    item.author_name = PLATFORM_AUTHOR_NAME
    item.author_channel_id = PLATFORM_AUTHOR_CHANNEL_ID
    item.author_types.add(AuthorType.PLATFORM)
    item.id = get_str(renderer, "id")
    item.message, item.message_extended = parse_message(get_map(renderer, "message"))
    timestamp = _parse_timestamp(renderer)
    if timestamp is not None:
        item.timestamp = timestamp
    item.type = ChatItemType.VIEWER_ENGAGEMENT_MESSAGE


def _overlay_paid_message(item: ChatItem, renderer: dict) -> None:
    item.body_background_color = get_int(renderer, "bodyBackgroundColor")
    item.body_text_color = get_int(renderer, "bodyTextColor")
    item.header_background_color = get_int(renderer, "headerBackgroundColor")
    item.header_text_color = get_int(renderer, "headerTextColor")
    item.author_name_text_color = get_int(renderer, "authorNameTextColor")
    item.timestamp_color = get_int(renderer, "timestampColor")
    item.purchase_amount = get_str(renderer, "purchaseAmountText", "simpleText")
    item.type = ChatItemType.PAID_MESSAGE


def _overlay_paid_sticker(item: ChatItem, renderer: dict) -> None:
    item.background_color = get_int(renderer, "backgroundColor")
    item.purchase_amount = get_str(renderer, "purchaseAmountText", "simpleText")
    sticker = get_list(renderer, "sticker", "thumbnails")
    if sticker is not None:
        item.sticker_icon_url = pick_thumbnail_url(sticker)
    item.type = ChatItemType.PAID_STICKER


def _overlay_ticker(item: ChatItem, renderer: dict) -> None:
    inner = get_map(renderer, "showItemEndpoint", "showLiveChatItemEndpoint", "renderer")
    if inner is not None:
        parse_chat_item(inner, item)
    item.end_background_color = get_int(renderer, "endBackgroundColor")
    item.duration_sec = get_int(renderer, "durationSec")
    item.full_duration_sec = get_int(renderer, "fullDurationSec")
    item.type = ChatItemType.TICKER_PAID_MESSAGE


def _overlay_membership(item: ChatItem, renderer: dict) -> None:
    item.message, item.message_extended = parse_message(get_map(renderer, "headerSubtext"))
    item.type = ChatItemType.NEW_MEMBER_MESSAGE


def parse_chat_item(node: dict, item: ChatItem | None = None) -> ChatItem:
    """Decode one ``item`` node into ``item`` (or a new ChatItem).

    The first renderer found in priority order supplies the common fields,
    then variant-specific fields are laid over them.
    """
    if item is None:
        item = ChatItem()

    primary = next(
        (r for r in (get_map(node, key) for key in _MESSAGE_RENDERERS) if r is not None),
        None,
    )
    if primary is not None:
        _parse_common(item, primary)

    viewer_engagement = get_map(node, "liveChatViewerEngagementMessageRenderer")
    if viewer_engagement is not None:
        _parse_viewer_engagement(item, viewer_engagement)

    paid_message = get_map(node, "liveChatPaidMessageRenderer")
    if paid_message is not None:
        _overlay_paid_message(item, paid_message)

    paid_sticker = get_map(node, "liveChatPaidStickerRenderer")
    if paid_sticker is not None:
        _overlay_paid_sticker(item, paid_sticker)

    ticker = get_map(node, "liveChatTickerPaidMessageItemRenderer")
    if ticker is not None:
        _overlay_ticker(item, ticker)

    membership = get_map(node, "liveChatMembershipItemRenderer")
    if membership is not None:
        _overlay_membership(item, membership)

    return item


class ActionProcessor:
    """Accumulates decoded items from batches of live chat actions.

    Lists are rebuilt by the owning session for every poll; the banner
    persists until replaced or removed.
    """

    def __init__(self, session=None):
        self._session = session
        self.chat_items: list[ChatItem] = []
        self.ticker_items: list[ChatItem] = []
        self.deletes: list[ChatItemDelete] = []
        self.banner_item: ChatItem | None = None
        # Every item handed out, for as long as the caller keeps a reference
        self._issued: weakref.WeakValueDictionary[int, ChatItem] = weakref.WeakValueDictionary()

    def clear(self, include_banner: bool = False) -> None:
        """Drop the per-poll lists (and optionally the banner)."""
        self.chat_items.clear()
        self.ticker_items.clear()
        self.deletes.clear()
        if include_banner:
            self.banner_item = None

    def process(self, actions: list | None) -> None:
        """Decode a list of actions in order."""
        for action in actions or []:
            if isinstance(action, dict):
                self._process_action(action)

    def issued_items(self) -> list[ChatItem]:
        """Items decoded so far that are still referenced somewhere."""
        return list(self._issued.values())

    def _new_item(self) -> ChatItem:
        item = ChatItem(session=self._session)
        self._issued[id(item)] = item
        return item

    def _process_action(self, action: dict) -> None:
        replay = get_map(action, "replayChatItemAction")
        if replay is not None:
            self.process(get_list(replay, "actions"))

        add_item = get_map(action, "addChatItemAction")
        if add_item is not None:
            self._handle_add_item(add_item, self.chat_items)

        add_ticker = get_map(action, "addLiveChatTickerItemAction")
        if add_ticker is not None:
            self._handle_add_item(add_ticker, self.ticker_items)

        banner_contents = get_map(
            action,
            "addBannerToLiveChatCommand",
            "bannerRenderer",
            "liveChatBannerRenderer",
            "contents",
        )
        if banner_contents is not None:
            self._handle_banner(banner_contents)

        if get_map(action, "removeBannerForLiveChatCommand") is not None:
            logger.debug("YouTube banner removed")
            self.banner_item = None

        deleted = get_map(action, "markChatItemAsDeletedAction")
        if deleted is not None:
            self._handle_message_deleted(deleted)

        author_deleted = get_map(action, "markChatItemsByAuthorAsDeletedAction")
        if author_deleted is not None:
            self._handle_author_deleted(author_deleted)

    def _handle_add_item(self, add_action: dict, target: list[ChatItem]) -> None:
        node = get_map(add_action, "item")
        if node is None:
            return
        item = parse_chat_item(node, self._new_item())
        if item.id is None:
            logger.debug("Dropping chat item without id")
            return
        target.append(item)

    def _handle_banner(self, contents: dict) -> None:
        self.banner_item = parse_chat_item(contents, self._new_item())
        logger.debug(f"YouTube banner set: {self.banner_item.id}")

    def _handle_message_deleted(self, deleted: dict) -> None:
        text, segments = parse_message(get_map(deleted, "deletedStateMessage"))
        delete = ChatItemDelete(
            target_id=get_str(deleted, "targetItemId"),
            message=text,
            message_extended=segments,
        )
        self.deletes.append(delete)
        logger.debug(f"YouTube message deleted: {delete.target_id}")

    def _handle_author_deleted(self, author_deleted: dict) -> None:
        channel_id = get_str(author_deleted, "externalChannelId")
        if channel_id is None:
            return
        text, segments = parse_message(get_map(author_deleted, "deletedStateMessage"))
        self.deletes.append(
            ChatItemDelete(
                target_channel_id=channel_id,
                message=text,
                message_extended=segments,
            )
        )
        logger.debug(f"YouTube author messages deleted: {channel_id}")
