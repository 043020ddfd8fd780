"""Chat session: conversation history plus one in-flight streamed reply.

ChatSession is the presentation-side owner of a conversation. It posts a
user message, runs a StreamedReplyAccumulator over the reply body, and
promotes whatever the stream produced into an immutable ChatMessage:

- completed reply: the assistant message, with the server's id
- stopped by the user: the partial text plus a stop marker, or nothing
  when no text had arrived yet
- server error event or transport failure: a generic apology; the raw
  server message and any partial text go to the log only
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from vidchat.client.base import ChatTransport, validate_content
from vidchat.errors import ReplyFailedError, StreamProtocolError, TransportError
from vidchat.schemas.messages import (
    FALLBACK_ERROR_MESSAGE,
    ChatMessage,
    MessageRole,
    ReplySnapshot,
    TerminalState,
)
from vidchat.stream.abort import AbortSignal
from vidchat.stream.accumulator import StreamedReplyAccumulator, UpdateCallback

logger = logging.getLogger(__name__)

MessageListener = Callable[[ChatMessage], Any]


class ChatSession:
    """Drives one conversation against a ChatTransport.

    Only one reply may stream at a time; a send() issued while another is
    in flight is ignored, as is blank input.
    """

    def __init__(
        self,
        transport: ChatTransport,
        conversation_id: str,
        *,
        initial_messages: Iterable[ChatMessage] = (),
        on_message_sent: MessageListener | None = None,
    ) -> None:
        self._transport = transport
        self._conversation_id = conversation_id
        self._messages: list[ChatMessage] = list(initial_messages)
        self._on_message_sent = on_message_sent
        self._abort: AbortSignal | None = None
        self._loading = False

    @property
    def conversation_id(self) -> str:
        return self._conversation_id

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        """Immutable view of the conversation so far."""
        return tuple(self._messages)

    @property
    def is_loading(self) -> bool:
        return self._loading

    def stop(self) -> None:
        """Stop the reply currently streaming, if any."""
        if self._abort is not None:
            self._abort.abort()

    async def load_history(self, limit: int | None = None) -> tuple[ChatMessage, ...]:
        """Replace the local history with the messages stored on the server."""
        page = await self._transport.list_messages(self._conversation_id, limit)
        self._messages = list(page.messages)
        return self.history

    async def send(
        self,
        text: str,
        *,
        on_update: UpdateCallback | None = None,
        stream: bool = True,
    ) -> ChatMessage | None:
        """Send a user message and stream the assistant reply.

        Args:
            text: The user's message. Surrounding whitespace is trimmed.
            on_update: Optional sync or async callback receiving a
                       ReplySnapshot after every stream event.
            stream: When False, wait for the complete reply in a single
                    JSON response instead of streaming it.

        Returns:
            The assistant message appended to the history, or None when
            nothing was appended (blank input, busy session, or a stop
            before any text arrived).

        Raises:
            ValueError: If the trimmed text exceeds the API length limit.
        """
        content = text.strip()
        if not content or self._loading:
            return None
        validate_content(content)

        self._messages.append(ChatMessage(role=MessageRole.USER, content=content))
        if not stream:
            return await self._send_blocking(content)

        self._loading = True
        self._abort = AbortSignal()
        accumulator = StreamedReplyAccumulator(
            on_update=on_update,
            max_frame_chars=self._transport.config.max_frame_chars,
        )

        try:
            async with self._transport.stream_message(self._conversation_id, content) as body:
                snapshot = await accumulator.consume(body, self._abort)
        except asyncio.CancelledError:
            self._finish_cancelled(accumulator.snapshot)
            raise
        except ReplyFailedError as e:
            logger.warning("Assistant reply failed: %s", e)
            return self._append_fallback()
        except (TransportError, StreamProtocolError) as e:
            logger.warning("Assistant reply could not be read: %s", e)
            return self._append_fallback()
        finally:
            self._loading = False
            self._abort = None

        if snapshot.state is TerminalState.CANCELLED:
            return self._finish_cancelled(snapshot)

        if not snapshot.acknowledged:
            logger.warning(
                "Reply %s was not acknowledged by the server; keeping partial content",
                snapshot.message_id,
            )
        message = ChatMessage(
            id=snapshot.message_id,
            role=MessageRole.ASSISTANT,
            content=snapshot.text,
            sources=snapshot.sources,
            usage=snapshot.usage,
            acknowledged=snapshot.acknowledged,
        )
        self._messages.append(message)
        await self._notify_sent(message)
        return message

    def _finish_cancelled(self, snapshot: ReplySnapshot) -> ChatMessage | None:
        if not snapshot.text:
            return None
        message = ChatMessage(
            role=MessageRole.ASSISTANT,
            content=snapshot.display_text,
            sources=snapshot.sources,
        )
        self._messages.append(message)
        return message

    def _append_fallback(self) -> ChatMessage:
        message = ChatMessage(role=MessageRole.ASSISTANT, content=FALLBACK_ERROR_MESSAGE)
        self._messages.append(message)
        return message

    async def _notify_sent(self, message: ChatMessage) -> None:
        if self._on_message_sent is None:
            return
        result = self._on_message_sent(message)
        if asyncio.iscoroutine(result):
            await result

    async def _send_blocking(self, content: str) -> ChatMessage:
        self._loading = True
        try:
            response = await self._transport.send_message(self._conversation_id, content)
        except TransportError as e:
            logger.warning("Assistant reply could not be fetched: %s", e)
            return self._append_fallback()
        finally:
            self._loading = False

        message = response.assistant_message
        self._messages.append(message)
        await self._notify_sent(message)
        return message
