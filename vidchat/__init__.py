"""vidchat — streamed chat client for the video-collaboration assistant."""

__version__ = "0.1.0"

from .schemas import ChatMessage, ReplySnapshot, SourceReference, TerminalState
from .session import ChatSession
from .stream import AbortSignal, StreamedReplyAccumulator

__all__ = [
    "AbortSignal",
    "ChatMessage",
    "ChatSession",
    "ReplySnapshot",
    "SourceReference",
    "StreamedReplyAccumulator",
    "TerminalState",
]
