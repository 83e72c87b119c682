"""Exception hierarchy for live chat sessions."""


class LiveChatError(Exception):
    """Base class for all errors raised by ytlivechat.

    Args:
        message: Human-readable description of the failed action.
        cause: The underlying exception, kept for programmatic inspection.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} ({self.cause})"
        return self.message


class TransportError(LiveChatError):
    """Network or HTTP failure while talking to YouTube."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        status: int | None = None,
        body: str = "",
    ):
        super().__init__(message, cause)
        self.status = status
        self.body = body


class ProtocolError(LiveChatError):
    """The continuation chain broke; the session must be reset."""


class ChatPermissionError(LiveChatError):
    """A moderation or send action is not available to this session."""


class ConfigurationError(LiveChatError, ValueError):
    """Invalid locale, id or settings supplied by the caller."""
