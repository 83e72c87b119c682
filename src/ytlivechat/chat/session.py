"""YouTube live chat session over the InnerTube API.

A session owns one continuation chain, the identity values scraped at
bootstrap, and the items decoded from the latest poll. It is not safe for
concurrent use: await one call at a time per session.
"""

import logging

from ..core.errors import (
    ChatPermissionError,
    ConfigurationError,
    LiveChatError,
    ProtocolError,
    TransportError,
)
from ..core.models import ChatLocale, IdType, LiveBroadcastDetails
from ..core.settings import ChatSettings
from .bootstrap import BootstrapResult, PageBootstrapper, fetch_broadcast_info
from .connections.transport import AiohttpTransport, Transport, parse_json_body
from .context_menu import ContextMenuResolver
from .continuation import ContinuationPhase, ContinuationState
from .json_path import get_list, get_map, get_str
from .models import ChatItem, ChatItemDelete, ModerationAction
from .parser import ActionProcessor
from .payloads import PayloadBuilder, SessionIdentity

logger = logging.getLogger(__name__)

# Required cookies for InnerTube authentication
REQUIRED_COOKIE_KEYS = {"SID", "HSID", "SSID", "APISID", "SAPISID"}

LIVE_CHAT_API = "https://www.youtube.com/youtubei/v1/live_chat/get_live_chat"
LIVE_CHAT_REPLAY_API = "https://www.youtube.com/youtubei/v1/live_chat/get_live_chat_replay"
SEND_MESSAGE_API = "https://www.youtube.com/youtubei/v1/live_chat/send_message"
MODERATE_API = "https://studio.youtube.com/youtubei/v1/live_chat/moderate"
LIVE_CHAT_ACTION_API = "https://studio.youtube.com/youtubei/v1/live_chat/live_chat_action"


def parse_cookie_string(cookie_str: str) -> dict[str, str]:
    """Parse a 'name=value; name2=value2' cookie string into a dict."""
    cookies: dict[str, str] = {}
    if not cookie_str.strip():
        return cookies

    for part in cookie_str.split(";"):
        part = part.strip()
        if "=" in part:
            name, _, value = part.partition("=")
            name = name.strip()
            value = value.strip()
            if name:
                cookies[name] = value

    return cookies


def validate_cookies(cookie_str: str) -> bool:
    """Check if a cookie string contains the required keys for YouTube auth."""
    parsed = parse_cookie_string(cookie_str)
    return REQUIRED_COOKIE_KEYS.issubset(parsed.keys())


class LiveChatSession:
    """Polls one live chat (or replay) and performs moderation on it.

    Typical use::

        async with await LiveChatSession.open("VIDEO_ID") as chat:
            while True:
                await chat.update()
                for item in chat.chat_items:
                    print(item.author_name, item.message)
                await asyncio.sleep(1)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        settings: ChatSettings | None = None,
        cookies: dict[str, str] | str | None = None,
    ):
        self._settings = settings or ChatSettings()
        self._owns_transport = transport is None
        self._transport: Transport = transport or AiohttpTransport(
            user_agent=self._settings.user_agent, timeout=self._settings.request_timeout
        )

        if cookies is None and self._settings.cookies:
            cookies = self._settings.cookies
        if isinstance(cookies, str):
            cookies = parse_cookie_string(cookies)

        self.identity = SessionIdentity(cookies=cookies or None)
        self._builder = PayloadBuilder(
            self.identity, self._settings.locale, user_agent=self._settings.user_agent
        )
        self._resolver = ContextMenuResolver(self._transport, self._builder)
        self._bootstrapper = PageBootstrapper(
            self._transport, top_chat_only=self._settings.top_chat_only
        )
        self._continuation = ContinuationState()
        self._processor = ActionProcessor(session=self)

        self.video_id: str | None = None
        self.channel_id: str | None = None

    @classmethod
    async def open(
        cls,
        id: str,
        id_type: IdType = IdType.VIDEO,
        transport: Transport | None = None,
        settings: ChatSettings | None = None,
        cookies: dict[str, str] | str | None = None,
    ) -> "LiveChatSession":
        """Create a session and bootstrap it from the video or channel page.

        Raises:
            ConfigurationError: Invalid id or locale, or the channel is not live.
            TransportError: A bootstrap page could not be fetched.
        """
        session = cls(transport=transport, settings=settings, cookies=cookies)
        try:
            await session.connect(id, id_type)
        except LiveChatError:
            await session.close()
            raise
        return session

    async def close(self) -> None:
        """Close the transport if this session created it."""
        if self._owns_transport and isinstance(self._transport, AiohttpTransport):
            await self._transport.close()

    async def __aenter__(self) -> "LiveChatSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # State accessors (snapshots, not live views)
    # -------------------------------------------------------------------------

    @property
    def chat_items(self) -> list[ChatItem]:
        """Items added by the latest poll (or by bootstrap before the first poll)."""
        return list(self._processor.chat_items)

    @property
    def chat_item_deletes(self) -> list[ChatItemDelete]:
        return list(self._processor.deletes)

    @property
    def ticker_paid_messages(self) -> list[ChatItem]:
        return list(self._processor.ticker_items)

    @property
    def banner_item(self) -> ChatItem | None:
        """The currently pinned item, if any."""
        return self._processor.banner_item

    @property
    def is_replay(self) -> bool:
        return self._continuation.is_replay

    @property
    def continuation(self) -> str | None:
        return self._continuation.token

    @property
    def phase(self) -> ContinuationPhase:
        return self._continuation.phase

    @property
    def suggested_delay_ms(self) -> int | None:
        """Server-suggested wait before the next live poll, when known."""
        return self._continuation.suggested_delay_ms

    @property
    def locale(self) -> ChatLocale:
        return self._builder.locale

    # -------------------------------------------------------------------------
    # Bootstrap / reset
    # -------------------------------------------------------------------------

    async def connect(self, id: str, id_type: IdType = IdType.VIDEO) -> None:
        """Scrape bootstrap data for ``id`` and seed the first batch of items."""
        result = await self._bootstrapper.bootstrap(id, id_type, self._builder.auth_headers())
        if self.identity.is_authenticated and result.logged_in is False:
            logger.warning(
                "YouTube does not recognize cookies as authenticated "
                "(LOGGED_IN=false). Cookies may be expired."
            )
        self.load_bootstrap(result)

    def load_bootstrap(self, result: BootstrapResult) -> None:
        """Start a new continuation chain from ``result``.

        Raises:
            ConfigurationError: ``result`` carries no continuation token.
        """
        if result.continuation is None:
            raise ConfigurationError(f"Invalid video id: {result.video_id}")

        self.video_id = result.video_id
        self.channel_id = result.channel_id
        self.identity.api_key = result.api_key
        self.identity.datasync_id = result.datasync_id
        self.identity.send_params = result.send_params
        if result.client_version:
            self.identity.client_version = result.client_version

        self._processor.clear(include_banner=True)
        self._processor.process(result.initial_actions)
        self._continuation.bootstrap(
            result.continuation, result.mode, initial_batch=result.initial_actions is not None
        )

        if self.identity.is_authenticated and not result.send_params and not result.is_replay:
            logger.warning("Could not extract send params; sending messages will fail")

    async def reset(self) -> None:
        """Re-bootstrap the current video. Call this after a ProtocolError.

        Cached moderation tokens are invalidated on every item this session
        decoded, including items the caller kept from earlier polls.
        """
        if self.video_id is None:
            raise ProtocolError("Session was never bootstrapped")
        logger.info(f"Resetting YouTube live chat for {self.video_id}")
        for item in self._processor.issued_items():
            item.moderation.invalidate()
        self.identity.visitor_data = None
        self.identity.reset_messages()
        self._processor.clear(include_banner=True)
        await self.connect(self.video_id, IdType.VIDEO)

    async def set_user_data(self, cookies: dict[str, str] | str) -> None:
        """Use browser cookies for sending and moderation, then reset."""
        if isinstance(cookies, str):
            cookies = parse_cookie_string(cookies)
        self.identity.cookies = cookies
        await self.reset()

    def set_locale(self, locale: ChatLocale) -> None:
        """Language used to get chat (default en_US)."""
        self._builder.locale = locale

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    async def update(self, offset_ms: int = 0) -> None:
        """Fetch the next batch of chat actions.

        The first call after bootstrap returns immediately because bootstrap
        already loaded the first batch.

        Args:
            offset_ms: Replay position in milliseconds (replay only).

        Raises:
            ProtocolError: The continuation chain ended; call reset().
            TransportError: The request failed. The token is unchanged, so
                calling update() again retries the same page.
        """
        if not self._continuation.begin_poll():
            return

        self._processor.clear()
        api = LIVE_CHAT_REPLAY_API if self.is_replay else LIVE_CHAT_API
        body = self._builder.poll(self._continuation.token, self.is_replay, offset_ms)
        try:
            text = await self._transport.fetch_text_with_json(
                f"{api}?key={self.identity.api_key}", body, self._builder.headers()
            )
            data = parse_json_body(text, api)
        except TransportError as e:
            raise TransportError("Can't get youtube live chat!", e) from e

        self._update_identity(data)
        live_chat_continuation = get_map(data, "continuationContents", "liveChatContinuation")
        self._processor.process(get_list(live_chat_continuation, "actions"))
        self._continuation.advance(live_chat_continuation)
        logger.debug(
            f"YouTube poll: {len(self._processor.chat_items)} items, "
            f"{len(self._processor.deletes)} deletes"
        )

    def _update_identity(self, data: dict) -> None:
        """Pick up visitorData and the real clientVersion from a poll response."""
        if not self.identity.visitor_data:
            self.identity.visitor_data = get_str(data, "responseContext", "visitorData")

        for service in get_list(data, "responseContext", "serviceTrackingParams") or []:
            if not isinstance(service, dict) or get_str(service, "service") != "CSI":
                continue
            for param in get_list(service, "params") or []:
                if isinstance(param, dict) and get_str(param, "key") == "cver":
                    version = get_str(param, "value")
                    if version:
                        self.identity.client_version = version

    async def get_broadcast_info(self) -> LiveBroadcastDetails:
        """Fetch live/start/end details of the broadcast."""
        if self.video_id is None:
            raise ProtocolError("Session was never bootstrapped")
        return await fetch_broadcast_info(
            self._transport, self.video_id, self._builder.client_version
        )

    # -------------------------------------------------------------------------
    # Sending and moderation
    # -------------------------------------------------------------------------

    def _require_live(self, verb: str) -> None:
        if self.is_replay:
            raise ChatPermissionError(
                f"This live is replay! You can {verb} if this live isn't replay."
            )
        if not self.identity.datasync_id:
            raise ChatPermissionError("datasyncId is null! Please call reset() or set user data.")

    async def send_message(self, text: str) -> None:
        """Send a message to this live chat. Requires cookies.

        Raises:
            ChatPermissionError: Replay, no cookies, or no send params.
            TransportError: The request failed.
        """
        try:
            if not self.identity.is_authenticated:
                raise ChatPermissionError("You need to set user data (cookies) first")
            self._require_live("send a message")
            if self.identity.send_params is None:
                raise ChatPermissionError(
                    "params is null! You may not set appropriate Cookie. Please call reset()."
                )
            await self._transport.post_json(
                f"{SEND_MESSAGE_API}?key={self.identity.api_key}",
                self._builder.send_message(text),
                self._builder.headers(),
            )
        except LiveChatError as e:
            raise type(e)("Couldn't send a message!", e) from e

    async def _moderate(
        self, item: ChatItem, action: ModerationAction, api: str, verb: str, description: str
    ) -> None:
        try:
            self._require_live(verb)
            params = await self._resolver.resolve(item, action)
            await self._transport.post_json(
                f"{api}?key={self.identity.api_key}",
                self._builder.moderation(params),
                self._builder.headers(),
            )
        except LiveChatError as e:
            raise type(e)(description, e) from e
        logger.info(f"YouTube {action.value} applied to chat item {item.id}")

    async def delete_item(self, item: ChatItem) -> None:
        """Delete a chat item (as its author, a moderator or the owner)."""
        await self._moderate(
            item, ModerationAction.DELETE, MODERATE_API, "delete a chat", "Couldn't delete chat!"
        )

    async def timeout_author(self, item: ChatItem) -> None:
        """Ban the item's author for 300 seconds (and delete the item)."""
        await self._moderate(
            item, ModerationAction.TIMEOUT, MODERATE_API, "ban a user", "Couldn't ban user!"
        )

    async def ban_author(self, item: ChatItem) -> None:
        """Ban the item's author permanently (and delete the item)."""
        await self._moderate(
            item, ModerationAction.BAN, MODERATE_API, "ban a user", "Couldn't ban user!"
        )

    async def unban_author(self, item: ChatItem) -> None:
        """Lift a permanent ban (deleted items are not restored)."""
        await self._moderate(
            item, ModerationAction.UNBAN, MODERATE_API, "unban a user", "Couldn't unban user!"
        )

    async def pin_item(self, item: ChatItem) -> None:
        """Pin the item as the chat banner."""
        await self._moderate(
            item, ModerationAction.PIN, LIVE_CHAT_ACTION_API, "pin a chat", "Couldn't pin chat!"
        )
