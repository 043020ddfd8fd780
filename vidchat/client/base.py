"""Abstract base class for chat API transports.

Defines the ChatTransport interface the chat session talks to. The
session never touches HTTP directly, which keeps it testable against an
in-memory transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager

from vidchat.schemas.config import ClientConfig
from vidchat.schemas.conversations import Conversation
from vidchat.schemas.messages import MessageList, SendMessageResponse

MAX_CONTENT_LENGTH = 10_000
MAX_HISTORY_LIMIT = 200
MAX_TITLE_LENGTH = 200


def validate_content(content: str) -> None:
    """Reject message bodies the chat API would refuse.

    Raises:
        ValueError: If content is empty or longer than MAX_CONTENT_LENGTH.
    """
    if not content:
        raise ValueError("Message content must not be empty")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValueError(
            f"Message content is {len(content)} chars; the limit is {MAX_CONTENT_LENGTH}"
        )


def validate_limit(limit: int) -> None:
    """Reject history page sizes outside 1..MAX_HISTORY_LIMIT."""
    if not 1 <= limit <= MAX_HISTORY_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}, got {limit}")


def validate_title(title: str) -> str:
    """Return the trimmed conversation title.

    Raises:
        ValueError: If the title is blank or longer than MAX_TITLE_LENGTH.
    """
    title = title.strip()
    if not title:
        raise ValueError("Conversation title must not be empty")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValueError(
            f"Conversation title is {len(title)} chars; the limit is {MAX_TITLE_LENGTH}"
        )
    return title


class ChatTransport(ABC):
    """Interface to the chat API conversation and message endpoints.

    Implementations open the streaming request, hand back the raw body
    chunks, and own the connection teardown. They never retry: a failed
    request surfaces as TransportError and the caller decides what to do.
    """

    def __init__(self, config: ClientConfig) -> None:
        self._config = config

    @property
    def config(self) -> ClientConfig:
        """The ClientConfig backing this transport."""
        return self._config

    @property
    def base_url(self) -> str:
        return self._config.base_url

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    def stream_message(
        self, conversation_id: str, content: str
    ) -> AbstractAsyncContextManager[AsyncIterator[bytes]]:
        """Post a message and stream the assistant reply.

        Returns an async context manager yielding the raw response body
        as an async iterator of byte chunks. Leaving the context closes
        the underlying response.

        Raises:
            ValueError: If content fails validate_content().
            TransportError: On connection failure or a non-2xx status.
        """

    @abstractmethod
    async def send_message(self, conversation_id: str, content: str) -> SendMessageResponse:
        """Post a message and wait for the complete assistant reply."""

    @abstractmethod
    async def list_messages(
        self, conversation_id: str, limit: int | None = None
    ) -> MessageList:
        """Fetch the stored messages of a conversation, oldest first."""

    # ── Conversation management ───────────────────────────────

    @abstractmethod
    async def list_conversations(self, organization_id: str) -> list[Conversation]:
        """List the organization's conversations, as ordered by the server."""

    @abstractmethod
    async def create_conversation(self, organization_id: str) -> Conversation:
        """Start a new, empty conversation in the organization."""

    @abstractmethod
    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        """Set a conversation's title and return the updated record.

        Raises:
            ValueError: If title fails validate_title().
            TransportError: On connection failure or a non-2xx status.
        """

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation together with its messages."""

    async def aclose(self) -> None:
        """Release transport resources. Default: nothing to release."""

    async def __aenter__(self) -> ChatTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
