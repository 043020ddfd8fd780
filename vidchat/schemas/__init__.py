"""vidchat schema definitions.

All Pydantic v2 models used by the stream codec, the reply accumulator,
the transport and the chat session.
"""

from vidchat.schemas.config import ClientConfig
from vidchat.schemas.conversations import Conversation, ConversationList
from vidchat.schemas.events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    SourceEvent,
    SourceReference,
    StreamEvent,
    StreamUsage,
)
from vidchat.schemas.messages import (
    FALLBACK_ERROR_MESSAGE,
    STOPPED_MARKER,
    AccumulatedReply,
    ChatMessage,
    MessageList,
    MessageRole,
    ReplySnapshot,
    SendMessageResponse,
    TerminalState,
)

__all__ = [
    "FALLBACK_ERROR_MESSAGE",
    "STOPPED_MARKER",
    "AccumulatedReply",
    "ChatMessage",
    "ChunkEvent",
    "ClientConfig",
    "Conversation",
    "ConversationList",
    "DoneEvent",
    "ErrorEvent",
    "MessageList",
    "MessageRole",
    "ReplySnapshot",
    "SendMessageResponse",
    "SourceEvent",
    "SourceReference",
    "StreamEvent",
    "StreamUsage",
    "TerminalState",
]
