#!/usr/bin/env python3
"""Main entry point for ytlivechat: prints a live chat to the terminal."""

import argparse
import asyncio
import logging
import sys

from .chat.bootstrap import channel_id_from_url, video_id_from_url
from .chat.models import ChatItem, ChatItemType
from .chat.session import LiveChatSession
from .core.errors import ConfigurationError, LiveChatError, ProtocolError, TransportError
from .core.models import ChatLocale, IdType
from .core.settings import ChatSettings

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0  # seconds
REPLAY_STEP_MS = 1000


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("keyring").setLevel(logging.WARNING)


def format_item(item: ChatItem) -> str:
    """One terminal line for a chat item."""
    prefix = ""
    if item.type in (ChatItemType.PAID_MESSAGE, ChatItemType.PAID_STICKER):
        prefix = f"[{item.purchase_amount}] "
    elif item.type is ChatItemType.NEW_MEMBER_MESSAGE:
        prefix = "[member] "
    return f"{prefix}{item.author_name}: {item.message or ''}"


async def run_chat(session: LiveChatSession, interval: float) -> None:
    """Poll until the chat ends, printing new items."""
    offset_ms = 0
    while True:
        try:
            await session.update(offset_ms)
        except TransportError as e:
            logger.warning(f"Poll failed, retrying: {e}")
            await asyncio.sleep(interval)
            continue
        except ProtocolError:
            logger.info("Chat has ended")
            return

        for item in session.chat_items:
            print(format_item(item), flush=True)
        for delete in session.chat_item_deletes:
            logger.debug(f"Deleted: {delete.target_id or delete.target_channel_id}")

        if session.is_replay:
            offset_ms += REPLAY_STEP_MS
            await asyncio.sleep(REPLAY_STEP_MS / 1000)
        else:
            delay = session.suggested_delay_ms
            await asyncio.sleep(delay / 1000 if delay else interval)


async def _run(args: argparse.Namespace) -> int:
    settings = ChatSettings.load()
    if args.all_chat:
        settings.top_chat_only = False
    if args.locale:
        locale = ChatLocale.from_tag(args.locale)
        settings.country, settings.language = locale.country, locale.language

    if args.channel:
        id, id_type = channel_id_from_url(args.target), IdType.CHANNEL
    else:
        id, id_type = video_id_from_url(args.target), IdType.VIDEO

    session = await LiveChatSession.open(id, id_type, settings=settings)
    async with session:
        if args.message:
            await session.send_message(args.message)
            logger.info("Message sent")
            return 0
        await run_chat(session, args.interval)
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(prog="ytlivechat", description=__doc__)
    parser.add_argument("target", help="Video id/URL (or channel id/URL with --channel)")
    parser.add_argument("--channel", action="store_true", help="Target is a channel")
    parser.add_argument(
        "--all-chat", action="store_true", help="Use 'Live chat' instead of 'Top chat'"
    )
    parser.add_argument("--locale", help="Locale tag such as en_US or ja_JP")
    parser.add_argument("--message", help="Send this message and exit (needs saved cookies)")
    parser.add_argument(
        "--interval", type=float, default=DEFAULT_POLL_INTERVAL, help="Live poll interval (s)"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    setup_logging(args.verbose)

    try:
        return asyncio.run(_run(args))
    except ConfigurationError as e:
        logging.error(str(e))
        return 2
    except LiveChatError as e:
        logging.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
