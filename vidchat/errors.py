"""Exceptions raised by the vidchat stream path.

All of them derive from RuntimeError so callers that only care about
"the call failed" can keep catching that.
"""

from __future__ import annotations


class VidchatError(RuntimeError):
    """Base class for vidchat failures."""


class TransportError(VidchatError):
    """The HTTP request or the body read failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReplyFailedError(VidchatError):
    """The server sent an ``error`` event for this reply."""


class StreamProtocolError(VidchatError):
    """A frame decoded as JSON but did not match its event schema."""
