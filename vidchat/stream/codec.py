"""Frame codec for the chat reply stream.

The wire format is a minimal server-sent-events subset: every event is a
``data: <json>`` line and events are separated by a blank line. Transport
reads carry no framing guarantee, so ``FrameDecoder`` keeps whatever it
could not decode yet and picks it up again on the next ``feed()``.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any

from pydantic import ValidationError

from vidchat.errors import StreamProtocolError
from vidchat.schemas.events import EVENT_TYPES, StreamEvent, stream_event_adapter

logger = logging.getLogger(__name__)

FRAME_DELIMITER = "\n\n"
DATA_PREFIX = "data: "

_DEFAULT_MAX_FRAME_CHARS = 1_048_576


def encode_event(event: StreamEvent | dict[str, Any]) -> bytes:
    """Encode one event as a ``data: <json>\\n\\n`` frame."""
    if isinstance(event, dict):
        payload = event
    else:
        payload = event.model_dump(by_alias=True, exclude_none=True)
    return f"{DATA_PREFIX}{json.dumps(payload)}{FRAME_DELIMITER}".encode()


def _data_line_start(frame: str) -> int:
    """Return the offset of the frame's data line, or -1 when it has none.

    Lines before the data line (``event:``, ``id:``, ``: keep-alive``
    comments) are ignored.
    """
    if frame.startswith(DATA_PREFIX):
        return 0
    idx = frame.find("\n" + DATA_PREFIX)
    return idx if idx == -1 else idx + 1


class FrameDecoder:
    """Incremental decoder turning raw body bytes into stream events.

    A frame whose JSON does not parse is treated as cut in half by a
    delimiter that happened to fall inside the payload: it is held back
    and retried joined with the next frame. Validation failures of a JSON
    object that names a known event type are fatal.
    """

    def __init__(self, max_frame_chars: int = _DEFAULT_MAX_FRAME_CHARS) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._max_frame_chars = max_frame_chars
        self._tail = ""
        self._pending = ""

    @property
    def buffered(self) -> str:
        """Text received but not yet turned into events."""
        if self._pending:
            return f"{self._pending}{FRAME_DELIMITER}{self._tail}"
        return self._tail

    def feed(self, data: bytes) -> list[StreamEvent]:
        """Decode one transport read and return every complete event in it."""
        text = self._tail + self._utf8.decode(data)
        frames = text.split(FRAME_DELIMITER)
        self._tail = frames.pop()

        if len(self._tail) > self._max_frame_chars:
            logger.warning(
                "Dropping %d buffered chars with no frame delimiter", len(self._tail)
            )
            self._tail = ""

        events: list[StreamEvent] = []
        for frame in frames:
            event = self._decode_frame(frame)
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[StreamEvent]:
        """Decode whatever is left once the stream has closed.

        A final frame that is missing its trailing delimiter is still
        decoded. Anything that does not parse at this point is discarded.
        """
        text = self._tail + self._utf8.decode(b"", final=True)
        self._tail = ""

        events: list[StreamEvent] = []
        remainder = text.strip("\n")
        if remainder:
            event = self._decode_frame(remainder)
            if event is not None:
                events.append(event)

        if self._pending:
            logger.debug("Discarding %d chars of an incomplete frame", len(self._pending))
            self._pending = ""
        return events

    def _decode_frame(self, frame: str) -> StreamEvent | None:
        if self._pending:
            joined = f"{self._pending}{FRAME_DELIMITER}{frame}"
            data = _loads(joined[len(DATA_PREFIX):])
            if data is not None:
                self._pending = ""
                return self._validate(data)

            # The held-back frame may simply be garbage; a fresh data frame
            # that parses on its own wins over it.
            start = _data_line_start(frame)
            data = _loads(frame[start + len(DATA_PREFIX):]) if start != -1 else None
            if data is None:
                self._hold(joined)
                return None
            logger.debug("Discarding %d chars of an unparseable frame", len(self._pending))
            self._pending = ""
            return self._validate(data)

        start = _data_line_start(frame)
        if start == -1:
            if frame.strip():
                logger.debug("Skipping frame without a data line: %.80r", frame)
            return None

        data = _loads(frame[start + len(DATA_PREFIX):])
        if data is None:
            # Held text always begins with the data line
            self._hold(frame[start:])
            return None
        return self._validate(data)

    def _hold(self, text: str) -> None:
        if len(text) > self._max_frame_chars:
            logger.warning("Dropping unparseable frame of %d chars", len(text))
            self._pending = ""
            return
        self._pending = text

    def _validate(self, data: Any) -> StreamEvent | None:
        if not isinstance(data, dict) or data.get("type") not in EVENT_TYPES:
            logger.debug("Skipping frame with unknown event payload: %.80r", data)
            return None
        try:
            return stream_event_adapter.validate_python(data)
        except ValidationError as e:
            raise StreamProtocolError(
                f"Malformed '{data['type']}' event: {e.error_count()} validation error(s)"
            ) from e


def _loads(payload: str) -> Any | None:
    """Parse JSON, returning None instead of raising on a decode error."""
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return None
