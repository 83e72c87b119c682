"""HTTP transport used by live chat sessions."""

import asyncio
import json
import logging
from typing import Protocol

import aiohttp

from ...core.errors import TransportError
from ...core.settings import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0  # seconds


class Transport(Protocol):
    """What a session needs from the network.

    Implementations raise TransportError on connection failures and
    non-200 responses; they never retry.
    """

    async def fetch_text(self, url: str, headers: dict[str, str]) -> str:
        """GET ``url`` and return the response body."""
        ...

    async def fetch_text_with_json(self, url: str, body: dict, headers: dict[str, str]) -> str:
        """POST ``body`` as JSON and return the response body."""
        ...

    async def post_json(self, url: str, body: dict, headers: dict[str, str]) -> None:
        """POST ``body`` as JSON, discarding a successful response."""
        ...


def parse_json_body(text: str, url: str = "") -> dict:
    """Parse a JSON object response, raising TransportError if it is not one."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TransportError(f"Invalid JSON response from {url}", e) from e
    if not isinstance(data, dict):
        raise TransportError(f"Unexpected JSON response from {url}: {type(data).__name__}")
    return data


class AiohttpTransport:
    """Transport backed by a lazily created aiohttp ClientSession."""

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: float = DEFAULT_TIMEOUT):
        self.user_agent = user_agent
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            try:
                await self._session.close()
                # Let the connector finish closing to avoid "Unclosed connector" warnings
                await asyncio.sleep(0.1)
            finally:
                self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _headers(self, headers: dict[str, str], json_body: bool = False) -> dict[str, str]:
        merged = {"Accept-Charset": "utf-8", "User-Agent": self.user_agent}
        if json_body:
            merged["Content-Type"] = "application/json"
        merged.update(headers)
        return merged

    async def fetch_text(self, url: str, headers: dict[str, str]) -> str:
        return await self._request("GET", url, None, headers)

    async def fetch_text_with_json(self, url: str, body: dict, headers: dict[str, str]) -> str:
        return await self._request("POST", url, body, headers)

    async def post_json(self, url: str, body: dict, headers: dict[str, str]) -> None:
        await self._request("POST", url, body, headers)

    async def _request(
        self, method: str, url: str, body: dict | None, headers: dict[str, str]
    ) -> str:
        try:
            async with self.session.request(
                method,
                url,
                json=body,
                headers=self._headers(headers, json_body=body is not None),
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    logger.warning(f"YouTube {method} {_strip_query(url)} failed ({resp.status})")
                    raise TransportError(
                        f"HTTP {resp.status} from {_strip_query(url)}",
                        status=resp.status,
                        body=text[:2000],
                    )
                return text
        except asyncio.TimeoutError as e:
            raise TransportError(f"Timed out requesting {_strip_query(url)}", e) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Error requesting {_strip_query(url)}", e) from e
        except UnicodeDecodeError as e:
            raise TransportError(f"Undecodable response from {_strip_query(url)}", e) from e


def _strip_query(url: str) -> str:
    """Drop the query string (it carries the API key) for log messages."""
    return url.partition("?")[0]
