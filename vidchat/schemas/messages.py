"""Reply state and conversation message schemas.

``AccumulatedReply`` is the mutable aggregate the stream reader folds
events into. The presentation layer only ever sees ``ReplySnapshot``
copies of it, and the finished reply is promoted into an immutable
``ChatMessage``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vidchat.schemas.events import SourceReference, StreamUsage

STOPPED_MARKER = "*[Generation stopped]*"

FALLBACK_ERROR_MESSAGE = (
    "Sorry, an error occurred while generating a response. Please try again."
)


def new_message_id() -> str:
    """Generate a client-side message identifier (UUID v4)."""
    return str(uuid.uuid4())


class MessageRole(StrEnum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class TerminalState(StrEnum):
    """Lifecycle state of a streamed reply."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ReplySnapshot(BaseModel):
    """Read-only copy of an in-progress or finished reply."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    sources: tuple[SourceReference, ...] = ()
    state: TerminalState = TerminalState.IN_PROGRESS
    message_id: str | None = None
    usage: StreamUsage | None = None
    error: str | None = None
    acknowledged: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.state is not TerminalState.IN_PROGRESS

    @property
    def display_text(self) -> str:
        """Text to render, including the stop marker for cancelled replies."""
        if self.state is TerminalState.CANCELLED and self.text:
            return f"{self.text}\n\n{STOPPED_MARKER}"
        return self.text


class AccumulatedReply:
    """Mutable aggregate of one streamed reply.

    Owned by a single read loop. Once a terminal state is set the
    aggregate is absorbing and every further mutation raises.
    """

    def __init__(self) -> None:
        self.text: str = ""
        self.sources: list[SourceReference] = []
        self.state: TerminalState = TerminalState.IN_PROGRESS
        self.message_id: str | None = None
        self.usage: StreamUsage | None = None
        self.error: str | None = None
        self.acknowledged: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.state is not TerminalState.IN_PROGRESS

    def append_text(self, fragment: str) -> None:
        self._ensure_open()
        self.text += fragment

    def append_source(self, source: SourceReference) -> None:
        self._ensure_open()
        self.sources.append(source)

    def complete(
        self,
        message_id: str | None,
        usage: StreamUsage | None = None,
        *,
        acknowledged: bool = True,
    ) -> None:
        self._ensure_open()
        self.state = TerminalState.COMPLETED
        self.message_id = message_id or new_message_id()
        self.usage = usage
        self.acknowledged = acknowledged

    def fail(self, message: str) -> None:
        self._ensure_open()
        self.state = TerminalState.FAILED
        self.error = message

    def cancel(self) -> None:
        self._ensure_open()
        self.state = TerminalState.CANCELLED

    def snapshot(self) -> ReplySnapshot:
        return ReplySnapshot(
            text=self.text,
            sources=tuple(self.sources),
            state=self.state,
            message_id=self.message_id,
            usage=self.usage,
            error=self.error,
            acknowledged=self.acknowledged,
        )

    def _ensure_open(self) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Reply is already {self.state.value}; no further updates allowed")


class ChatMessage(BaseModel):
    """Immutable conversation history record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=new_message_id, description="Message identifier")
    role: MessageRole = Field(description="Who authored the message")
    content: str = Field(description="Rendered message text")
    sources: tuple[SourceReference, ...] = Field(
        default=(), description="Citations attached to an assistant message"
    )
    usage: StreamUsage | None = Field(default=None, description="Token usage, when reported")
    acknowledged: bool = Field(
        default=True,
        description="False when the server closed the stream without a done event",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        alias="createdAt",
        description="When this message was created",
    )

    @field_validator("sources", mode="before")
    @classmethod
    def _null_sources(cls, value: object) -> object:
        return () if value is None else value


class SendMessageResponse(BaseModel):
    """Body returned by a non-streaming send."""

    model_config = ConfigDict(populate_by_name=True)

    user_message: ChatMessage = Field(alias="userMessage")
    assistant_message: ChatMessage = Field(alias="assistantMessage")
    sources: list[SourceReference] = Field(default_factory=list)
    usage: StreamUsage | None = None


class MessageList(BaseModel):
    """Body returned when listing a conversation's messages."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessage] = Field(default_factory=list)
    conversation_id: str = Field(alias="conversationId")
