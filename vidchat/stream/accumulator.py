"""Streamed reply accumulator.

Reads a chat reply body chunk by chunk, decodes the frames it carries and
folds the resulting events into an ``AccumulatedReply``. The read loop is
the only writer of the aggregate; everyone else sees ``ReplySnapshot``
copies delivered through the ``on_update`` callback.

State machine::

    idle -> streaming -> completed | failed | cancelled

Terminal states are absorbing. No retries happen here: a failed reply is
retried, if at all, by issuing a new request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable
from typing import Any

from vidchat.errors import ReplyFailedError
from vidchat.schemas.events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    SourceEvent,
    StreamEvent,
)
from vidchat.schemas.messages import AccumulatedReply, ReplySnapshot
from vidchat.stream.abort import AbortSignal
from vidchat.stream.codec import FrameDecoder

logger = logging.getLogger(__name__)

# Sync or async callable receiving a read-only copy after every event
UpdateCallback = Callable[[ReplySnapshot], Any]


class StreamedReplyAccumulator:
    """Folds one streamed reply into an aggregate.

    Usage:
        acc = StreamedReplyAccumulator(on_update=render)
        snapshot = await acc.consume(body_chunks, abort=signal)

    ``consume()`` returns the terminal snapshot for completed and
    cancelled replies. An ``error`` event raises ``ReplyFailedError``;
    transport failures raised by the byte source propagate unchanged.
    In both cases the aggregate is left in the failed state.
    """

    def __init__(
        self,
        *,
        on_update: UpdateCallback | None = None,
        max_frame_chars: int | None = None,
    ) -> None:
        self._reply = AccumulatedReply()
        self._decoder = (
            FrameDecoder(max_frame_chars) if max_frame_chars else FrameDecoder()
        )
        self._on_update = on_update
        self._started = False

    @property
    def started(self) -> bool:
        """True once consume() has been called (the reply left idle)."""
        return self._started

    @property
    def snapshot(self) -> ReplySnapshot:
        return self._reply.snapshot()

    async def consume(
        self,
        stream: AsyncIterable[bytes],
        abort: AbortSignal | None = None,
    ) -> ReplySnapshot:
        """Read ``stream`` until a terminal event, its end, or an abort.

        Args:
            stream: Body chunks as delivered by the transport, with no
                    assumption about where frame boundaries fall.
            abort: Optional abort token. Aborting interrupts a pending
                   read immediately.

        Returns:
            The terminal snapshot (completed or cancelled).

        Raises:
            ReplyFailedError: The server sent an ``error`` event.
            StreamProtocolError: A known event failed schema validation.
            TransportError: The byte source failed mid-read.
        """
        if self._started:
            raise RuntimeError("A reply stream can only be consumed once")
        self._started = True

        abort = abort or AbortSignal()
        iterator = aiter(stream)
        try:
            return await self._read_loop(iterator, abort)
        except asyncio.CancelledError:
            if not self._reply.is_terminal:
                self._reply.cancel()
            raise
        except Exception as e:
            if not self._reply.is_terminal:
                self._reply.fail(str(e) or type(e).__name__)
            raise
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _read_loop(
        self, iterator: AsyncIterator[bytes], abort: AbortSignal
    ) -> ReplySnapshot:
        while True:
            chunk = await _next_chunk(iterator, abort)
            if abort.aborted:
                logger.debug("Reply aborted after %d chars", len(self._reply.text))
                self._reply.cancel()
                await self._notify()
                return self.snapshot
            if chunk is None:
                break

            for event in self._decoder.feed(chunk):
                await self._dispatch(event)
                if self._reply.is_terminal:
                    return self.snapshot

        for event in self._decoder.flush():
            await self._dispatch(event)
            if self._reply.is_terminal:
                return self.snapshot

        logger.warning(
            "Reply stream closed without a done or error event (%d chars, %d sources)",
            len(self._reply.text),
            len(self._reply.sources),
        )
        self._reply.complete(None, acknowledged=False)
        await self._notify()
        return self.snapshot

    async def _dispatch(self, event: StreamEvent) -> None:
        if isinstance(event, ChunkEvent):
            self._reply.append_text(event.content)
        elif isinstance(event, SourceEvent):
            if event.source is None:
                return
            self._reply.append_source(event.source)
        elif isinstance(event, DoneEvent):
            self._reply.complete(event.message_id, event.usage)
        elif isinstance(event, ErrorEvent):
            message = event.error or "Unknown error"
            self._reply.fail(message)
            await self._notify()
            raise ReplyFailedError(message)
        await self._notify()

    async def _notify(self) -> None:
        if self._on_update is None:
            return
        result = self._on_update(self._reply.snapshot())
        if asyncio.iscoroutine(result):
            await result


async def _next_chunk(
    iterator: AsyncIterator[bytes], abort: AbortSignal
) -> bytes | None:
    """Await the next body chunk, racing it against the abort token.

    Returns None at end of stream or when the token fired first; the
    caller tells the two apart through ``abort.aborted``.
    """
    if abort.aborted:
        return None

    read = asyncio.ensure_future(_read_one(iterator))
    stop = asyncio.ensure_future(abort.wait())
    try:
        await asyncio.wait({read, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.cancel()
        if not read.done():
            read.cancel()
            await asyncio.wait({read})

    if read.cancelled():
        return None
    return read.result()


async def _read_one(iterator: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None
