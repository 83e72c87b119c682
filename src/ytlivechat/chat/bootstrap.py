"""Bootstrap scraping of the watch and live_chat pages.

A session needs a handful of values that YouTube only exposes inside page
HTML: the first continuation token, the InnerTube API key, the client
version, the account's datasyncId and the send-message params. This module
extracts them with regexes and seeds the first batch of chat actions from
the embedded ytInitialData.
"""

import json
import logging
import re
from dataclasses import dataclass

from ..core.errors import ConfigurationError, TransportError
from ..core.models import ChatMode, IdType, LiveBroadcastDetails
from .connections.transport import Transport
from .continuation import select_live_continuation, select_replay_continuation
from .json_path import find_key, get_list, get_map, get_str

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
CHANNEL_LIVE_URL = "https://www.youtube.com/channel/{channel_id}/live"
LIVE_CHAT_URL = "https://www.youtube.com/live_chat?continuation={continuation}"
LIVE_CHAT_REPLAY_URL = "https://www.youtube.com/live_chat_replay?continuation={continuation}"
BROADCAST_INFO_URL = "https://www.youtube.com/watch?v={video_id}&hl=en&pbj=1"

# Regex patterns to extract page data
CHANNEL_ID_RE = re.compile(r'"channelId":"([^"]*)","isOwnerViewing"')
LIVE_VIDEO_ID_RE = re.compile(r'"updatedMetadataEndpoint":\{"videoId":"([^"]*)')
IS_REPLAY_RE = re.compile(r'"isReplay":([^,}]*)')
TOP_CHAT_CONTINUATION_RE = re.compile(
    r'"selected":true,"continuation":\{"reloadContinuationData":\{"continuation":"([^"]*)'
)
ALL_CHAT_CONTINUATION_RE = re.compile(
    r'"selected":false,"continuation":\{"reloadContinuationData":\{"continuation":"([^"]*)'
)
API_KEY_RE = re.compile(r'"(?:innertubeApiKey|INNERTUBE_API_KEY)"\s*:\s*"([^"]+)"')
CLIENT_VERSION_RE = re.compile(r'"INNERTUBE_CLIENT_VERSION"\s*:\s*"([^"]+)"')
DATASYNC_ID_RE = re.compile(r'"datasyncId"\s*:\s*"([^|"]*)\|\|')
LOGGED_IN_RE = re.compile(r'"LOGGED_IN"\s*:\s*(true|false)')
SEND_PARAMS_RE = re.compile(
    r'"sendLiveChatMessageEndpoint"\s*:\s*\{.{0,1000}?"params"\s*:\s*"([^"]+)"', re.DOTALL
)
INITIAL_DATA_RE = re.compile(
    r'(?:window\["ytInitialData"\]|var ytInitialData)\s*=\s*(\{.+?\});\s*</script>', re.DOTALL
)
CHANNEL_META_RE = re.compile(r'<meta itemprop="(?:identifier|channelId)" content="([^"]*)"')

VIDEO_ID_URL_RE = re.compile(r"(?:[?&]v=|/embed/|youtu\.be/|/live/|/shorts/)([A-Za-z0-9_-]{11})")
CHANNEL_ID_URL_RE = re.compile(r"youtube\.com/channel/([A-Za-z0-9_-]+)")

SEND_PARAMS_PATH = (
    "actionPanel",
    "liveChatMessageInputRenderer",
    "sendButton",
    "buttonRenderer",
    "serviceEndpoint",
    "sendLiveChatMessageEndpoint",
    "params",
)


@dataclass
class BootstrapResult:
    """Everything a session needs to start polling."""

    continuation: str | None = None
    is_replay: bool = False
    video_id: str | None = None
    channel_id: str | None = None
    api_key: str | None = None
    client_version: str | None = None
    datasync_id: str | None = None
    send_params: str | None = None
    initial_actions: list | None = None  # first batch, already fetched
    logged_in: bool | None = None

    @property
    def mode(self) -> ChatMode:
        return ChatMode.REPLAY if self.is_replay else ChatMode.LIVE


def _is_bare_id(value: str) -> bool:
    return not any(marker in value for marker in ("?", ".com/", ".be/", "/", "&"))


def video_id_from_url(url: str) -> str:
    """Extract the video id from a watch, embed, live or youtu.be URL.

    Raises:
        ConfigurationError: The URL has no recognizable video id.
    """
    if _is_bare_id(url):
        return url
    match = VIDEO_ID_URL_RE.search(url)
    if match:
        return match.group(1)
    raise ConfigurationError(f"Invalid video URL: {url}")


def channel_id_from_url(url: str) -> str:
    """Extract the channel id from a ``/channel/<id>`` URL.

    Raises:
        ConfigurationError: The URL has no channel id; handle URLs need
            resolve_channel_id().
    """
    if _is_bare_id(url):
        return url
    match = CHANNEL_ID_URL_RE.search(url)
    if match:
        return match.group(1)
    raise ConfigurationError(f"Invalid channel URL: {url}")


async def resolve_channel_id(transport: Transport, url: str) -> str:
    """Like channel_id_from_url() but fetches handle/custom URLs to find the id."""
    try:
        return channel_id_from_url(url)
    except ConfigurationError:
        if not url.startswith(("http://", "https://")):
            raise
    html = await transport.fetch_text(url, {})
    match = CHANNEL_META_RE.search(html)
    if not match:
        raise ConfigurationError(f"Invalid channel URL: {url}")
    return match.group(1)


def extract_initial_data(html: str) -> dict | None:
    """Return the ytInitialData object embedded in a page, if any."""
    match = INITIAL_DATA_RE.search(html)
    if not match:
        return None
    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse ytInitialData: {e}")
        return None
    return data if isinstance(data, dict) else None


def chat_renderer(data: dict | None) -> dict | None:
    """The live chat node of a page's ytInitialData (old or new layout)."""
    return get_map(data, "continuationContents", "liveChatContinuation") or get_map(
        data, "contents", "liveChatRenderer"
    )


class PageBootstrapper:
    """Scrapes bootstrap values for a live chat."""

    def __init__(self, transport: Transport, top_chat_only: bool = True):
        self._transport = transport
        self._top_chat_only = top_chat_only

    async def bootstrap(
        self, id: str, id_type: IdType = IdType.VIDEO, headers: dict[str, str] | None = None
    ) -> BootstrapResult:
        """Scrape everything needed to open the chat of ``id``.

        Raises:
            ConfigurationError: Invalid id, or the channel is not live.
            TransportError: A page could not be fetched.
        """
        headers = headers or {}
        result = BootstrapResult()

        if id_type is IdType.VIDEO:
            result.video_id = id
            html = await self._transport.fetch_text(WATCH_URL.format(video_id=id), headers)
            match = CHANNEL_ID_RE.search(html)
            if match:
                result.channel_id = match.group(1)
        else:
            result.channel_id = id
            html = await self._transport.fetch_text(
                CHANNEL_LIVE_URL.format(channel_id=id), headers
            )
            match = LIVE_VIDEO_ID_RE.search(html)
            if not match:
                raise ConfigurationError(f"The channel (ID:{id}) has not started live streaming!")
            result.video_id = match.group(1)

        self._parse_watch_page(result, html)
        if result.continuation is None:
            raise ConfigurationError(f"Invalid {id_type.value} id: {id}")

        if result.is_replay:
            await self._load_replay_page(result)
        else:
            await self._load_live_page(result, headers)

        logger.info(
            f"YouTube chat bootstrapped: video={result.video_id} channel={result.channel_id} "
            f"mode={result.mode.value} actions={len(result.initial_actions or [])}"
        )
        return result

    def _parse_watch_page(self, result: BootstrapResult, html: str) -> None:
        match = IS_REPLAY_RE.search(html)
        if match:
            result.is_replay = match.group(1).strip() == "true"

        match = TOP_CHAT_CONTINUATION_RE.search(html)
        if match:
            result.continuation = match.group(1)
        if not self._top_chat_only:
            match = ALL_CHAT_CONTINUATION_RE.search(html)
            if match:
                result.continuation = match.group(1)

        match = API_KEY_RE.search(html)
        if match:
            result.api_key = match.group(1)
        match = CLIENT_VERSION_RE.search(html)
        if match:
            result.client_version = match.group(1)
        match = DATASYNC_ID_RE.search(html)
        if match:
            result.datasync_id = match.group(1)
        match = LOGGED_IN_RE.search(html)
        if match:
            result.logged_in = match.group(1) == "true"

    async def _load_replay_page(self, result: BootstrapResult) -> None:
        html = await self._transport.fetch_text(
            LIVE_CHAT_REPLAY_URL.format(continuation=result.continuation), {}
        )
        renderer = chat_renderer(extract_initial_data(html))
        if renderer is None:
            logger.warning("Replay chat page carried no ytInitialData")
            return
        token = select_replay_continuation(get_list(renderer, "continuations"))
        if token is not None:
            result.continuation = token
        result.initial_actions = get_list(renderer, "actions") or []

    async def _load_live_page(self, result: BootstrapResult, headers: dict[str, str]) -> None:
        html = await self._transport.fetch_text(
            LIVE_CHAT_URL.format(continuation=result.continuation), headers
        )
        renderer = chat_renderer(extract_initial_data(html))

        result.send_params = get_str(renderer, *SEND_PARAMS_PATH)
        if result.send_params is None:
            match = SEND_PARAMS_RE.search(html)
            if match:
                result.send_params = match.group(1)

        if renderer is None:
            logger.warning("Live chat page carried no ytInitialData")
            return
        token, _ = select_live_continuation(get_list(renderer, "continuations"))
        if token is not None:
            result.continuation = token
        result.initial_actions = get_list(renderer, "actions") or []


async def fetch_broadcast_info(
    transport: Transport, video_id: str, client_version: str
) -> LiveBroadcastDetails:
    """Fetch isLiveNow / start / end timestamps of a broadcast.

    Raises:
        TransportError: The request failed or returned no broadcast details.
    """
    headers = {
        "X-Youtube-Client-Name": "1",
        "X-Youtube-Client-Version": client_version,
    }
    text = await transport.fetch_text(BROADCAST_INFO_URL.format(video_id=video_id), headers)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TransportError("Couldn't get broadcast info!", e) from e
    details = find_key(data, "liveBroadcastDetails")
    if not isinstance(details, dict):
        raise TransportError("Couldn't get broadcast info!")
    return LiveBroadcastDetails.from_dict(details)
