"""InnerTube request bodies and SAPISIDHASH authentication headers."""

import hashlib
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from ..core.models import ChatLocale
from ..core.settings import DEFAULT_USER_AGENT

ORIGIN = "https://www.youtube.com"
CLIENT_NAME = "WEB"

# Fallback clientVersion is built from yesterday's date so it is never ahead of YouTube
CLIENT_VERSION_SKEW = timedelta(days=1)
CLIENT_VERSION_SUFFIX = ".06.00"

CLIENT_MESSAGE_ID_LENGTH = 26
_CLIENT_MESSAGE_ID_ALPHABET = string.ascii_letters + "-"
# Counter appended to the client message id wraps before overflowing a signed 32-bit int
MAX_COMMENT_COUNTER = 2**31 - 2


def generate_sapisidhash(sapisid: str, origin: str = ORIGIN, timestamp: int | None = None) -> str:
    """Generate SAPISIDHASH authorization header value.

    The value embeds the current time, so build it right before each request.
    """
    if timestamp is None:
        timestamp = int(time.time())
    hash_input = f"{timestamp} {sapisid} {origin}"
    hash_value = hashlib.sha1(hash_input.encode()).hexdigest()
    return f"SAPISIDHASH {timestamp}_{hash_value}"


def default_client_version(now: datetime | None = None) -> str:
    """clientVersion to use when none was scraped from the page."""
    if now is None:
        now = datetime.now(timezone.utc)
    return f"2.{(now - CLIENT_VERSION_SKEW):%Y%m%d}{CLIENT_VERSION_SUFFIX}"


def generate_client_message_id() -> str:
    """Random base for the clientMessageId of sent messages."""
    return "".join(
        random.choice(_CLIENT_MESSAGE_ID_ALPHABET) for _ in range(CLIENT_MESSAGE_ID_LENGTH)
    )


@dataclass
class SessionIdentity:
    """Per-session values scraped at bootstrap and echoed on every request."""

    api_key: str | None = None
    visitor_data: str | None = None
    client_version: str | None = None
    datasync_id: str | None = None
    send_params: str | None = None
    cookies: dict[str, str] | None = None
    client_message_id_base: str = field(default_factory=generate_client_message_id)
    comment_counter: int = 0

    @property
    def is_authenticated(self) -> bool:
        """Whether user cookies were supplied."""
        return self.cookies is not None

    def next_client_message_id(self) -> str:
        if self.comment_counter >= MAX_COMMENT_COUNTER:
            self.comment_counter = 0
        message_id = f"{self.client_message_id_base}{self.comment_counter}"
        self.comment_counter += 1
        return message_id

    def reset_messages(self) -> None:
        """Start a fresh clientMessageId sequence."""
        self.client_message_id_base = generate_client_message_id()
        self.comment_counter = 0


class PayloadBuilder:
    """Builds InnerTube JSON bodies and headers for one session."""

    def __init__(
        self,
        identity: SessionIdentity,
        locale: ChatLocale | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.identity = identity
        self.locale = locale or ChatLocale()
        self.user_agent = user_agent

    @property
    def client_version(self) -> str:
        return self.identity.client_version or default_client_version()

    def _context(self, on_behalf: bool = True) -> dict:
        client: dict = {}
        if self.identity.visitor_data:
            client["visitorData"] = self.identity.visitor_data
        client["userAgent"] = self.user_agent
        client["clientName"] = CLIENT_NAME
        client["clientVersion"] = self.client_version
        client["gl"] = self.locale.country
        client["hl"] = self.locale.language
        context: dict = {"client": client}
        if on_behalf and self.identity.datasync_id:
            context["user"] = {"onBehalfOfUser": self.identity.datasync_id}
        return context

    def poll(self, continuation: str | None, is_replay: bool = False, offset_ms: int = 0) -> dict:
        """Body for get_live_chat / get_live_chat_replay."""
        body: dict = {"context": self._context(on_behalf=False)}
        if continuation is not None:
            body["continuation"] = continuation
        if is_replay:
            body["currentPlayerState"] = {"playerOffsetMs": str(max(offset_ms, 0))}
        return body

    def send_message(self, text: str) -> dict:
        """Body for send_message; consumes one clientMessageId."""
        body: dict = {
            "clientMessageId": self.identity.next_client_message_id(),
            "context": self._context(),
        }
        if self.identity.send_params is not None:
            body["params"] = self.identity.send_params
        body["richMessage"] = {"textSegments": [{"text": text}]}
        return body

    def moderation(self, params: str | None = None) -> dict:
        """Body for moderate, live_chat_action and get_item_context_menu."""
        body: dict = {"context": self._context()}
        if params is not None:
            body["params"] = params
        return body

    def headers(self) -> dict[str, str]:
        """Client headers plus fresh auth headers when cookies are set."""
        headers = {
            "X-Youtube-Client-Name": "1",
            "X-Youtube-Client-Version": self.client_version,
        }
        headers.update(self.auth_headers())
        return headers

    def auth_headers(self) -> dict[str, str]:
        """SAPISIDHASH, origin and cookie headers, recomputed on every call."""
        cookies = self.identity.cookies
        if cookies is None:
            return {}
        sapisid = cookies.get("SAPISID", "")
        return {
            "Authorization": generate_sapisidhash(sapisid),
            "X-Origin": ORIGIN,
            "Origin": ORIGIN,
            "Cookie": "; ".join(f"{k}={v}" for k, v in cookies.items()),
        }
