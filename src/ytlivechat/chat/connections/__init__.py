"""Network transports for live chat sessions."""

from .transport import AiohttpTransport, Transport

__all__ = ["AiohttpTransport", "Transport"]
