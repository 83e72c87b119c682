"""Shared test fixtures for ytlivechat tests."""

import json

import pytest

from ytlivechat.core.errors import TransportError


class FakeTransport:
    """Transport that answers from canned responses keyed by URL prefix.

    A response is a str (returned as-is), a dict (returned as JSON) or an
    exception instance (raised). Each response is used once.
    """

    def __init__(self):
        self.calls: list[tuple[str, str, dict | None, dict]] = []
        self._routes: list[tuple[str, list]] = []

    def add(self, prefix: str, *responses) -> None:
        self._routes.append((prefix, list(responses)))

    def urls(self, prefix: str = "") -> list[str]:
        return [url for _, url, _, _ in self.calls if url.startswith(prefix)]

    def bodies(self, prefix: str) -> list[dict]:
        return [body for _, url, body, _ in self.calls if url.startswith(prefix)]

    def _respond(self, method: str, url: str, body: dict | None, headers: dict) -> str:
        self.calls.append((method, url, body, dict(headers)))
        for prefix, responses in self._routes:
            if url.startswith(prefix) and responses:
                response = responses.pop(0)
                if isinstance(response, Exception):
                    raise response
                if isinstance(response, dict):
                    return json.dumps(response)
                return response
        raise TransportError(f"HTTP 404 from {url}", status=404)

    async def fetch_text(self, url, headers):
        return self._respond("GET", url, None, headers)

    async def fetch_text_with_json(self, url, body, headers):
        return self._respond("POST", url, body, headers)

    async def post_json(self, url, body, headers):
        self._respond("POST", url, body, headers)


def text_renderer(item_id="msg-1", text="hello", **extra):
    renderer = {
        "id": item_id,
        "authorName": {"simpleText": "Viewer"},
        "authorExternalChannelId": "UCviewer",
        "authorPhoto": {
            "thumbnails": [
                {"url": "https://yt3.example/32.png", "width": 32, "height": 32},
                {"url": "https://yt3.example/64.png", "width": 64, "height": 64},
            ]
        },
        "message": {"runs": [{"text": text}]},
        "timestampUsec": "1700000000000000",
        "contextMenuEndpoint": {
            "liveChatItemContextMenuEndpoint": {"params": f"menu-{item_id}"}
        },
    }
    renderer.update(extra)
    return renderer


def add_text_action(item_id="msg-1", text="hello"):
    renderer = text_renderer(item_id, text)
    return {"addChatItemAction": {"item": {"liveChatTextMessageRenderer": renderer}}}


def poll_response(actions=None, continuations=None, visitor_data=None, cver=None):
    response_context = {}
    if visitor_data is not None:
        response_context["visitorData"] = visitor_data
    if cver is not None:
        response_context["serviceTrackingParams"] = [
            {"service": "GFEEDBACK", "params": [{"key": "cver", "value": "ignored"}]},
            {"service": "CSI", "params": [{"key": "cver", "value": cver}]},
        ]
    live_chat_continuation = {}
    if actions is not None:
        live_chat_continuation["actions"] = actions
    if continuations is not None:
        live_chat_continuation["continuations"] = continuations
    return {
        "responseContext": response_context,
        "continuationContents": {"liveChatContinuation": live_chat_continuation},
    }


def invalidation(token, timeout_ms=5000):
    return {"invalidationContinuationData": {"continuation": token, "timeoutMs": timeout_ms}}


def watch_page(
    channel_id="UCowner",
    is_replay=False,
    top="TOP_TOKEN",
    all_chat="ALL_TOKEN",
    datasync_id="DSID",
    logged_in=True,
):
    parts = [
        '<html><script>ytcfg.set({"INNERTUBE_API_KEY":"API_KEY",',
        '"INNERTUBE_CLIENT_VERSION":"2.20260101.01.00",',
        f'"LOGGED_IN":{"true" if logged_in else "false"},',
    ]
    if datasync_id:
        parts.append(f'"datasyncId":"{datasync_id}||",')
    parts.append("});</script>")
    parts.append(f'{{"channelId":"{channel_id}","isOwnerViewing":false}}')
    parts.append(f'{{"liveChatRenderer":{{"isReplay":{"true" if is_replay else "false"},')
    parts.append(
        f'"subMenuItems":[{{"title":"Top chat","selected":true,"continuation":'
        f'{{"reloadContinuationData":{{"continuation":"{top}"}}}}}},'
        f'{{"title":"Live chat","selected":false,"continuation":'
        f'{{"reloadContinuationData":{{"continuation":"{all_chat}"}}}}}}]}}}}'
    )
    parts.append("</html>")
    return "".join(parts)


def chat_page(renderer):
    data = {"contents": {"liveChatRenderer": renderer}}
    return f"<html><script>var ytInitialData = {json.dumps(data)};</script></html>"


SEND_PARAMS_PANEL = {
    "liveChatMessageInputRenderer": {
        "sendButton": {
            "buttonRenderer": {
                "serviceEndpoint": {"sendLiveChatMessageEndpoint": {"params": "SEND_PARAMS"}}
            }
        }
    }
}


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def cookies():
    return {"SID": "a", "HSID": "b", "SSID": "c", "APISID": "d", "SAPISID": "sapisid"}


@pytest.fixture
def context_menu_response():
    def menu_item(icon, endpoint, params):
        return {
            "menuServiceItemRenderer": {
                "icon": {"iconType": icon},
                "serviceEndpoint": {endpoint: {"params": params}},
            }
        }

    return {
        "liveChatItemContextMenuSupportedRenderers": {
            "menuRenderer": {
                "items": [
                    menu_item("FLAG", "getReportFormEndpoint", "flag-params"),
                    menu_item("KEEP", "liveChatActionEndpoint", "pin-params"),
                    menu_item("DELETE", "moderateLiveChatEndpoint", "delete-params"),
                    menu_item("HOURGLASS", "moderateLiveChatEndpoint", "timeout-params"),
                    menu_item("REMOVE_CIRCLE", "moderateLiveChatEndpoint", "ban-params"),
                    menu_item("ADD_MODERATOR", "moderateLiveChatEndpoint", "mod-params"),
                ]
            }
        }
    }
