"""Tests for LiveChatSession polling, sending and moderation."""

import pytest
from conftest import (
    SEND_PARAMS_PANEL,
    add_text_action,
    chat_page,
    invalidation,
    poll_response,
    watch_page,
)

from ytlivechat.chat.bootstrap import BootstrapResult
from ytlivechat.chat.continuation import ContinuationPhase
from ytlivechat.chat.session import (
    LIVE_CHAT_ACTION_API,
    LIVE_CHAT_API,
    LIVE_CHAT_REPLAY_API,
    MODERATE_API,
    SEND_MESSAGE_API,
    LiveChatSession,
    parse_cookie_string,
    validate_cookies,
)
from ytlivechat.core.errors import (
    ChatPermissionError,
    ConfigurationError,
    ProtocolError,
    TransportError,
)
from ytlivechat.core.models import IdType
from ytlivechat.core.settings import ChatSettings

CONTEXT_MENU_PREFIX = "https://www.youtube.com/youtubei/v1/live_chat/get_item_context_menu"


def _live_result(**overrides):
    values = {
        "continuation": "C0",
        "video_id": "VIDEO_ID_01",
        "channel_id": "UCowner",
        "api_key": "API_KEY",
        "client_version": "2.20260101.01.00",
        "datasync_id": "DSID",
        "send_params": "SEND_PARAMS",
        "initial_actions": [add_text_action("init-1")],
    }
    values.update(overrides)
    return BootstrapResult(**values)


def _session(transport, cookies=None, **overrides):
    session = LiveChatSession(transport=transport, cookies=cookies)
    session.load_bootstrap(_live_result(**overrides))
    return session


# --- parse_cookie_string / validate_cookies ---


def test_parse_cookie_string_empty():
    assert parse_cookie_string("") == {}


def test_parse_cookie_string_multiple():
    result = parse_cookie_string("SID=abc; HSID=def; SSID=ghi")
    assert result == {"SID": "abc", "HSID": "def", "SSID": "ghi"}


def test_parse_cookie_string_value_with_equals():
    assert parse_cookie_string("SID=abc=def") == {"SID": "abc=def"}


def test_parse_cookie_string_skips_entries_without_equals():
    assert parse_cookie_string("SID=abc;badentry;HSID=def") == {"SID": "abc", "HSID": "def"}


def test_validate_cookies_all_present():
    assert validate_cookies("SID=a; HSID=b; SSID=c; APISID=d; SAPISID=e") is True


def test_validate_cookies_missing_key():
    assert validate_cookies("SID=a; HSID=b; SSID=c; APISID=d") is False


# --- construction ---


def test_cookie_string_is_parsed(transport):
    session = LiveChatSession(transport=transport, cookies="SID=a; SAPISID=b")
    assert session.identity.cookies == {"SID": "a", "SAPISID": "b"}
    assert session.identity.is_authenticated


def test_cookies_default_to_settings(transport):
    settings = ChatSettings(cookies="SAPISID=x")
    session = LiveChatSession(transport=transport, settings=settings)
    assert session.identity.cookies == {"SAPISID": "x"}


def test_empty_cookies_mean_anonymous(transport):
    session = LiveChatSession(transport=transport, cookies={})
    assert not session.identity.is_authenticated


def test_invalid_locale_rejected(transport):
    with pytest.raises(ConfigurationError):
        LiveChatSession(transport=transport, settings=ChatSettings(country=""))


def test_load_bootstrap_without_continuation_raises(transport):
    session = LiveChatSession(transport=transport)
    with pytest.raises(ConfigurationError):
        session.load_bootstrap(_live_result(continuation=None))


# --- open / bootstrap ---


@pytest.mark.asyncio
async def test_open_bootstraps_live_chat(transport):
    transport.add("https://www.youtube.com/watch?v=", watch_page())
    transport.add(
        "https://www.youtube.com/live_chat?",
        chat_page(
            {
                "continuations": [invalidation("C1")],
                "actions": [add_text_action("init-1")],
                "actionPanel": SEND_PARAMS_PANEL,
            }
        ),
    )

    session = await LiveChatSession.open("VIDEO_ID_01", transport=transport)

    assert session.video_id == "VIDEO_ID_01"
    assert session.channel_id == "UCowner"
    assert session.is_replay is False
    assert session.continuation == "C1"
    assert session.identity.api_key == "API_KEY"
    assert session.identity.send_params == "SEND_PARAMS"
    assert [item.id for item in session.chat_items] == ["init-1"]
    assert transport.urls()[1] == "https://www.youtube.com/live_chat?continuation=TOP_TOKEN"


@pytest.mark.asyncio
async def test_open_uses_all_chat_when_configured(transport):
    transport.add("https://www.youtube.com/watch?v=", watch_page())
    transport.add("https://www.youtube.com/live_chat?", chat_page({"continuations": []}))

    settings = ChatSettings(top_chat_only=False)
    session = await LiveChatSession.open("VIDEO_ID_01", transport=transport, settings=settings)

    assert transport.urls()[1].endswith("continuation=ALL_TOKEN")
    assert session.continuation == "ALL_TOKEN"


@pytest.mark.asyncio
async def test_open_channel_not_live(transport):
    transport.add("https://www.youtube.com/channel/UCowner/live", "<html></html>")
    with pytest.raises(ConfigurationError):
        await LiveChatSession.open("UCowner", IdType.CHANNEL, transport=transport)


# --- update ---


@pytest.mark.asyncio
async def test_first_update_after_bootstrap_is_skipped(transport):
    session = _session(transport)

    await session.update()

    assert transport.calls == []
    assert [item.id for item in session.chat_items] == ["init-1"]


@pytest.mark.asyncio
async def test_bootstrap_without_initial_batch_polls_immediately(transport):
    session = _session(transport, initial_actions=None)
    transport.add(LIVE_CHAT_API, poll_response([], [invalidation("C1")]))

    await session.update()

    assert transport.urls() == [f"{LIVE_CHAT_API}?key=API_KEY"]


@pytest.mark.asyncio
async def test_update_replaces_items_and_advances(transport):
    session = _session(transport)
    transport.add(
        LIVE_CHAT_API,
        poll_response([add_text_action("m-1"), add_text_action("m-2")], [invalidation("C1", 3000)]),
    )

    await session.update()  # skipped
    await session.update()

    body = transport.bodies(LIVE_CHAT_API)[0]
    assert body["continuation"] == "C0"
    assert "user" not in body["context"]
    assert [item.id for item in session.chat_items] == ["m-1", "m-2"]
    assert session.continuation == "C1"
    assert session.suggested_delay_ms == 3000
    assert session.phase is ContinuationPhase.LIVE_POLLING


@pytest.mark.asyncio
async def test_items_are_attached_to_session(transport):
    session = _session(transport)
    assert session.chat_items[0].session is session


@pytest.mark.asyncio
async def test_update_without_continuation_breaks_chain(transport):
    session = _session(transport)
    transport.add(LIVE_CHAT_API, poll_response([add_text_action("m-1")], []))

    await session.update()
    await session.update()
    assert session.continuation is None

    with pytest.raises(ProtocolError):
        await session.update()
    assert len(transport.calls) == 1
    assert session.phase is ContinuationPhase.ERROR


@pytest.mark.asyncio
async def test_transport_failure_keeps_token(transport):
    session = _session(transport)
    transport.add(
        LIVE_CHAT_API,
        TransportError("HTTP 503", status=503),
        poll_response([], [invalidation("C1")]),
    )

    await session.update()
    with pytest.raises(TransportError) as exc_info:
        await session.update()
    assert exc_info.value.cause.status == 503
    assert session.continuation == "C0"

    await session.update()
    assert [body["continuation"] for body in transport.bodies(LIVE_CHAT_API)] == ["C0", "C0"]
    assert session.continuation == "C1"


@pytest.mark.asyncio
async def test_invalid_json_response_raises_transport_error(transport):
    session = _session(transport)
    transport.add(LIVE_CHAT_API, "<html>oops</html>")

    await session.update()
    with pytest.raises(TransportError):
        await session.update()
    assert session.continuation == "C0"


@pytest.mark.asyncio
async def test_update_learns_visitor_data_and_client_version(transport):
    session = _session(transport)
    transport.add(
        LIVE_CHAT_API,
        poll_response([], [invalidation("C1")], visitor_data="VISITOR", cver="2.20260315.00.00"),
        poll_response([], [invalidation("C2")], visitor_data="OTHER"),
    )

    await session.update()
    await session.update()
    await session.update()

    assert session.identity.visitor_data == "VISITOR"
    assert session.identity.client_version == "2.20260315.00.00"
    second = transport.bodies(LIVE_CHAT_API)[1]
    assert second["context"]["client"]["visitorData"] == "VISITOR"
    assert second["context"]["client"]["clientVersion"] == "2.20260315.00.00"


@pytest.mark.asyncio
async def test_banner_persists_across_polls(transport):
    session = _session(transport)
    banner = {
        "addBannerToLiveChatCommand": {
            "bannerRenderer": {
                "liveChatBannerRenderer": {
                    "contents": {
                        "liveChatTextMessageRenderer": {
                            "id": "pinned",
                            "message": {"runs": [{"text": "rules"}]},
                        }
                    }
                }
            }
        }
    }
    transport.add(
        LIVE_CHAT_API,
        poll_response([banner], [invalidation("C1")]),
        poll_response([], [invalidation("C2")]),
        poll_response([{"removeBannerForLiveChatCommand": {}}], [invalidation("C3")]),
    )

    await session.update()
    await session.update()
    assert session.banner_item.id == "pinned"
    await session.update()
    assert session.banner_item.id == "pinned"
    await session.update()
    assert session.banner_item is None


@pytest.mark.asyncio
async def test_replay_update_keeps_token_and_sends_offset(transport):
    session = _session(
        transport, is_replay=True, initial_actions=None, continuation="R0", datasync_id=None
    )
    replay_action = {"replayChatItemAction": {"actions": [add_text_action("r-1")]}}
    transport.add(
        LIVE_CHAT_REPLAY_API,
        poll_response(
            [replay_action], [{"liveChatReplayContinuationData": {"continuation": "R1"}}]
        ),
        poll_response([], []),
    )

    await session.update(offset_ms=5000)
    assert session.continuation == "R1"
    assert [item.id for item in session.chat_items] == ["r-1"]
    await session.update(offset_ms=-10)
    assert session.continuation == "R1"

    bodies = transport.bodies(LIVE_CHAT_REPLAY_API)
    assert bodies[0]["currentPlayerState"] == {"playerOffsetMs": "5000"}
    assert bodies[1]["currentPlayerState"] == {"playerOffsetMs": "0"}
    assert session.phase is ContinuationPhase.REPLAY_POLLING


@pytest.mark.asyncio
async def test_reset_rebootstraps_and_invalidates_tokens(transport, cookies):
    session = _session(transport, cookies=cookies)
    item = session.chat_items[0]
    item.moderation.delete = "stale"
    item.moderation.fetched = True
    transport.add("https://www.youtube.com/watch?v=VIDEO_ID_01", watch_page())
    transport.add(
        "https://www.youtube.com/live_chat?",
        chat_page({"continuations": [invalidation("FRESH")], "actions": []}),
    )

    await session.reset()

    assert item.moderation.delete is None
    assert item.moderation.fetched is False
    assert session.continuation == "FRESH"
    assert session.chat_items == []


@pytest.mark.asyncio
async def test_reset_before_bootstrap_raises(transport):
    session = LiveChatSession(transport=transport)
    with pytest.raises(ProtocolError):
        await session.reset()


# --- send_message ---


@pytest.mark.asyncio
async def test_send_message_posts_payload(transport, cookies):
    session = _session(transport, cookies=cookies)
    transport.add(SEND_MESSAGE_API, {})

    await session.send_message("hi there")

    method, url, body, headers = transport.calls[0]
    assert url == f"{SEND_MESSAGE_API}?key=API_KEY"
    assert body["params"] == "SEND_PARAMS"
    assert body["richMessage"] == {"textSegments": [{"text": "hi there"}]}
    assert body["context"]["user"] == {"onBehalfOfUser": "DSID"}
    assert body["clientMessageId"].endswith("0")
    assert headers["Authorization"].startswith("SAPISIDHASH ")
    assert "SAPISID=sapisid" in headers["Cookie"]


@pytest.mark.asyncio
async def test_send_message_increments_client_message_id(transport, cookies):
    session = _session(transport, cookies=cookies)
    transport.add(SEND_MESSAGE_API, {}, {})

    await session.send_message("one")
    await session.send_message("two")

    first, second = (body["clientMessageId"] for body in transport.bodies(SEND_MESSAGE_API))
    base = session.identity.client_message_id_base
    assert (first, second) == (f"{base}0", f"{base}1")


@pytest.mark.asyncio
async def test_send_message_requires_cookies(transport):
    session = _session(transport)
    with pytest.raises(ChatPermissionError, match="Couldn't send a message!"):
        await session.send_message("hi")
    assert transport.calls == []


@pytest.mark.asyncio
async def test_send_message_in_replay_rejected(transport, cookies):
    session = _session(transport, cookies=cookies, is_replay=True)
    with pytest.raises(ChatPermissionError) as exc_info:
        await session.send_message("hi")
    assert "replay" in str(exc_info.value.cause)


@pytest.mark.asyncio
async def test_send_message_without_params_rejected(transport, cookies):
    session = _session(transport, cookies=cookies, send_params=None)
    with pytest.raises(ChatPermissionError):
        await session.send_message("hi")


@pytest.mark.asyncio
async def test_send_message_transport_error_wrapped(transport, cookies):
    session = _session(transport, cookies=cookies)
    transport.add(SEND_MESSAGE_API, TransportError("HTTP 403", status=403))

    with pytest.raises(TransportError) as exc_info:
        await session.send_message("hi")
    assert exc_info.value.message == "Couldn't send a message!"
    assert exc_info.value.cause.status == 403


# --- moderation ---


@pytest.mark.asyncio
async def test_delete_fetches_context_menu_once(transport, cookies, context_menu_response):
    session = _session(transport, cookies=cookies)
    item = session.chat_items[0]
    transport.add(CONTEXT_MENU_PREFIX, context_menu_response)
    transport.add(MODERATE_API, {}, {})

    await item.delete()
    await session.timeout_author(item)

    assert transport.urls(CONTEXT_MENU_PREFIX) == [
        f"{CONTEXT_MENU_PREFIX}?key=API_KEY&params=menu-init-1"
    ]
    assert [body["params"] for body in transport.bodies(MODERATE_API)] == [
        "delete-params",
        "timeout-params",
    ]
    assert transport.urls(MODERATE_API)[0] == f"{MODERATE_API}?key=API_KEY"


@pytest.mark.asyncio
async def test_pin_uses_live_chat_action_endpoint(transport, cookies, context_menu_response):
    session = _session(transport, cookies=cookies)
    transport.add(CONTEXT_MENU_PREFIX, context_menu_response)
    transport.add(LIVE_CHAT_ACTION_API, {})

    await session.chat_items[0].pin_as_banner()

    assert transport.bodies(LIVE_CHAT_ACTION_API)[0]["params"] == "pin-params"


@pytest.mark.asyncio
async def test_unban_not_offered_raises_permission_error(transport, cookies, context_menu_response):
    session = _session(transport, cookies=cookies)
    transport.add(CONTEXT_MENU_PREFIX, context_menu_response)

    with pytest.raises(ChatPermissionError, match="Couldn't unban user!"):
        await session.unban_author(session.chat_items[0])
    with pytest.raises(ChatPermissionError):
        await session.unban_author(session.chat_items[0])
    assert len(transport.urls(CONTEXT_MENU_PREFIX)) == 1


@pytest.mark.asyncio
async def test_moderation_without_cookies_rejected(transport):
    session = _session(transport)
    with pytest.raises(ChatPermissionError, match="Couldn't ban user!"):
        await session.ban_author(session.chat_items[0])
    assert transport.calls == []


@pytest.mark.asyncio
async def test_moderation_without_datasync_id_rejected(transport, cookies):
    session = _session(transport, cookies=cookies, datasync_id=None)
    with pytest.raises(ChatPermissionError):
        await session.delete_item(session.chat_items[0])


@pytest.mark.asyncio
async def test_moderation_transport_error_wrapped(transport, cookies, context_menu_response):
    session = _session(transport, cookies=cookies)
    transport.add(CONTEXT_MENU_PREFIX, context_menu_response)
    transport.add(MODERATE_API, TransportError("HTTP 500", status=500))

    with pytest.raises(TransportError) as exc_info:
        await session.delete_item(session.chat_items[0])
    assert exc_info.value.message == "Couldn't delete chat!"
    assert isinstance(exc_info.value.__cause__, TransportError)


@pytest.mark.asyncio
async def test_context_menu_failure_wrapped(transport, cookies):
    session = _session(transport, cookies=cookies)
    transport.add(CONTEXT_MENU_PREFIX, TransportError("HTTP 500", status=500))

    with pytest.raises(TransportError, match="Couldn't ban user!"):
        await session.ban_author(session.chat_items[0])
    assert session.chat_items[0].moderation.fetched is False


@pytest.mark.asyncio
async def test_update_tolerates_scalar_tracking_params(transport):
    session = _session(transport)
    response = poll_response([add_text_action("m-1")], [invalidation("C1")])
    response["responseContext"]["serviceTrackingParams"] = [
        "oops",
        {"service": "CSI", "params": ["bad", {"key": "cver", "value": "2.20260401.00.00"}]},
    ]
    transport.add(LIVE_CHAT_API, response)

    await session.update()
    await session.update()

    assert [item.id for item in session.chat_items] == ["m-1"]
    assert session.identity.client_version == "2.20260401.00.00"
    assert session.continuation == "C1"


@pytest.mark.asyncio
async def test_reset_invalidates_items_from_earlier_polls(transport, cookies):
    session = _session(transport, cookies=cookies)
    kept = session.chat_items[0]
    kept.moderation.ban = "stale"
    kept.moderation.fetched = True
    transport.add(LIVE_CHAT_API, poll_response([add_text_action("m-2")], [invalidation("C1")]))
    transport.add("https://www.youtube.com/watch?v=VIDEO_ID_01", watch_page())
    transport.add(
        "https://www.youtube.com/live_chat?",
        chat_page({"continuations": [invalidation("FRESH")], "actions": []}),
    )

    await session.update()
    await session.update()
    assert kept not in session.chat_items

    await session.reset()
    assert kept.moderation.ban is None
    assert kept.moderation.fetched is False
