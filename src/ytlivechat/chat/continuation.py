"""Continuation token chaining for live and replay chat polling."""

import logging
from enum import Enum

from ..core.errors import ProtocolError
from ..core.models import ChatMode
from .json_path import get_int, get_list, get_str

logger = logging.getLogger(__name__)

# Live continuation kinds, most preferred first
LIVE_CONTINUATION_KEYS = (
    "invalidationContinuationData",
    "timedContinuationData",
    "reloadContinuationData",
)
REPLAY_CONTINUATION_KEY = "liveChatReplayContinuationData"


class ContinuationPhase(str, Enum):
    """Lifecycle phase of a continuation chain."""

    BOOTSTRAPPED = "bootstrapped"
    LIVE_POLLING = "live_polling"
    REPLAY_POLLING = "replay_polling"
    ERROR = "error"


def select_live_continuation(continuations: list | None) -> tuple[str | None, int | None]:
    """Pick the next live token from a ``continuations`` list.

    Every entry is searched for an invalidation token before any timed token
    is considered, and timed before reload.

    Returns:
        Tuple of (token, timeoutMs hint) - both None when nothing matched.
    """
    entries = [c for c in continuations or [] if isinstance(c, dict)]
    for key in LIVE_CONTINUATION_KEYS:
        for entry in entries:
            token = get_str(entry, key, "continuation")
            if token is not None:
                timeout = get_int(entry, key, "timeoutMs", default=-1)
                return token, (timeout if timeout >= 0 else None)
    return None, None


def select_replay_continuation(continuations: list | None) -> str | None:
    """Return the last replay token in ``continuations``, if any."""
    token = None
    for entry in continuations or []:
        if not isinstance(entry, dict):
            continue
        value = get_str(entry, REPLAY_CONTINUATION_KEY, "continuation")
        if value is not None:
            token = value
    return token


class ContinuationState:
    """Owns the current continuation token and chat mode of one session.

    Not safe for concurrent use; the owning session serializes access.
    """

    def __init__(self) -> None:
        self.token: str | None = None
        self.mode: ChatMode = ChatMode.LIVE
        self.phase: ContinuationPhase = ContinuationPhase.ERROR
        self.initial_fetch_pending: bool = False
        self.suggested_delay_ms: int | None = None

    @property
    def is_replay(self) -> bool:
        return self.mode is ChatMode.REPLAY

    @property
    def _polling_phase(self) -> ContinuationPhase:
        if self.is_replay:
            return ContinuationPhase.REPLAY_POLLING
        return ContinuationPhase.LIVE_POLLING

    def bootstrap(self, token: str | None, mode: ChatMode, initial_batch: bool = True) -> None:
        """Start a new chain from a bootstrap-scraped token.

        Args:
            token: First continuation token.
            mode: Live or replay.
            initial_batch: Whether bootstrap already delivered the first batch
                of actions, in which case the next poll is skipped once.
        """
        self.token = token
        self.mode = mode
        self.suggested_delay_ms = None
        self.initial_fetch_pending = initial_batch
        self.phase = ContinuationPhase.BOOTSTRAPPED
        logger.info(f"Continuation bootstrapped ({mode.value}, initial batch={initial_batch})")

    def begin_poll(self) -> bool:
        """Check whether a poll request should be issued now.

        Returns:
            False when this call only consumed the post-bootstrap skip.

        Raises:
            ProtocolError: If the chain has no token; no request must be made.
        """
        if self.phase is ContinuationPhase.BOOTSTRAPPED and self.initial_fetch_pending:
            self.initial_fetch_pending = False
            self.phase = self._polling_phase
            return False
        if self.phase is ContinuationPhase.ERROR or self.token is None:
            self.phase = ContinuationPhase.ERROR
            raise ProtocolError("continuation is null! Please call reset().")
        self.phase = self._polling_phase
        return True

    def advance(self, live_chat_continuation: dict | None) -> str | None:
        """Select the next token from a poll's ``liveChatContinuation`` node.

        Live mode leaves the token unset when nothing matched, which makes
        the next ``begin_poll`` fail. Replay mode keeps the old token.
        """
        continuations = get_list(live_chat_continuation, "continuations")
        if self.is_replay:
            token = select_replay_continuation(continuations)
            if token is not None:
                self.token = token
            else:
                logger.debug("Replay response carried no continuation, keeping token")
        else:
            self.token, self.suggested_delay_ms = select_live_continuation(continuations)
            if self.token is None:
                logger.warning("Live response carried no continuation; chat has ended or broke")
        return self.token
