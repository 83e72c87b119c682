"""Lazy loading of per-item moderation tokens from the chat context menu."""

import logging

from ..core.errors import ChatPermissionError
from .connections.transport import Transport, parse_json_body
from .json_path import get_list, get_map, get_str
from .models import ChatItem, ModerationAction
from .payloads import PayloadBuilder

logger = logging.getLogger(__name__)

CONTEXT_MENU_API = "https://www.youtube.com/youtubei/v1/live_chat/get_item_context_menu"

# Menu icon type -> (action, service endpoint holding its params)
MENU_ICON_ACTIONS = {
    "KEEP": (ModerationAction.PIN, "liveChatActionEndpoint"),
    "DELETE": (ModerationAction.DELETE, "moderateLiveChatEndpoint"),
    "HOURGLASS": (ModerationAction.TIMEOUT, "moderateLiveChatEndpoint"),
    "REMOVE_CIRCLE": (ModerationAction.BAN, "moderateLiveChatEndpoint"),
    "ADD_CIRCLE": (ModerationAction.UNBAN, "moderateLiveChatEndpoint"),
}


def apply_context_menu(item: ChatItem, response: dict) -> int:
    """Store every recognised menu token of ``response`` on ``item``.

    FLAG, ADD_MODERATOR, REMOVE_MODERATOR and unknown icons are skipped.

    Returns:
        Number of tokens stored.
    """
    stored = 0
    menu_items = get_list(
        response, "liveChatItemContextMenuSupportedRenderers", "menuRenderer", "items"
    )
    for menu_item in menu_items or []:
        if not isinstance(menu_item, dict):
            continue
        renderer = get_map(menu_item, "menuServiceItemRenderer")
        if renderer is None:
            continue
        icon_type = get_str(renderer, "icon", "iconType")
        if icon_type not in MENU_ICON_ACTIONS:
            continue
        action, endpoint = MENU_ICON_ACTIONS[icon_type]
        params = get_str(renderer, "serviceEndpoint", endpoint, "params")
        if params is not None:
            item.moderation.set(action, params)
            stored += 1
    item.moderation.fetched = True
    return stored


class ContextMenuResolver:
    """Fetches an item's context menu on first need and caches its tokens."""

    def __init__(self, transport: Transport, builder: PayloadBuilder):
        self._transport = transport
        self._builder = builder

    async def resolve(self, item: ChatItem, action: ModerationAction) -> str:
        """Return the params token for ``action`` on ``item``.

        The whole menu is fetched at most once per item; later calls are
        served from ``item.moderation``.

        Raises:
            ChatPermissionError: No cookies, no context menu on the item, or
                the menu does not offer ``action`` to this user.
            TransportError: The context menu request failed.
        """
        params = item.moderation.get(action)
        if params is not None:
            return params

        if not item.moderation.fetched:
            await self._fetch(item)
            params = item.moderation.get(action)
            if params is not None:
                return params

        raise ChatPermissionError(
            f"{action.value} params is null! Check if you have permission or set user data first."
        )

    async def _fetch(self, item: ChatItem) -> None:
        if not self._builder.identity.is_authenticated:
            raise ChatPermissionError("You need to set user data (cookies) first")
        if not item.context_menu_params:
            raise ChatPermissionError(f"Chat item {item.id} has no context menu")

        url = (
            f"{CONTEXT_MENU_API}?key={self._builder.identity.api_key}"
            f"&params={item.context_menu_params}"
        )
        text = await self._transport.fetch_text_with_json(
            url, self._builder.moderation(), self._builder.headers()
        )
        stored = apply_context_menu(item, parse_json_body(text, CONTEXT_MENU_API))
        logger.debug(f"Loaded {stored} moderation tokens for chat item {item.id}")
