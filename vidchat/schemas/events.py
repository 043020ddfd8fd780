"""Stream event schemas for the chat reply protocol.

Each frame on the wire carries one JSON object discriminated by its
``type`` field. Field names on the wire are camelCase; the models accept
either spelling and dump back to camelCase with ``by_alias=True``.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SourceReference(_WireModel):
    """A citation attached to an assistant reply."""

    type: str = Field(description="Source kind, e.g. 'video', 'decision', 'transcript_chunk'")
    id: str = Field(description="Identifier of the cited record")
    relevance: float = Field(
        ge=0.0, le=1.0, description="Retrieval relevance score as a 0-1 fraction"
    )
    preview: str | None = Field(default=None, description="Short excerpt of the cited content")
    video_id: str | None = Field(
        default=None, alias="videoId", description="Video the source originates from"
    )
    timestamp: float | None = Field(
        default=None, ge=0.0, description="Offset into the video in seconds"
    )

    @field_validator("relevance", mode="before")
    @classmethod
    def _as_fraction(cls, value: object) -> object:
        # Search hits arrive as rounded percentages (0-100), decisions as
        # confidence scores on the same scale.
        if isinstance(value, bool) or not isinstance(value, int | float):
            return value
        if value > 1:
            value = value / 100
        return min(max(float(value), 0.0), 1.0)


class StreamUsage(_WireModel):
    """Token usage reported by the server when a reply completes."""

    prompt_tokens: int = Field(ge=0, alias="promptTokens")
    completion_tokens: int = Field(ge=0, alias="completionTokens")
    total_tokens: int = Field(ge=0, alias="totalTokens")


class ChunkEvent(_WireModel):
    """A text fragment to append to the in-progress reply."""

    type: Literal["chunk"] = "chunk"
    content: str = ""


class SourceEvent(_WireModel):
    """A citation discovered while the reply is being generated."""

    type: Literal["source"] = "source"
    source: SourceReference | None = None


class DoneEvent(_WireModel):
    """Terminal event: the reply was generated and stored."""

    type: Literal["done"] = "done"
    message_id: str | None = Field(default=None, alias="messageId")
    usage: StreamUsage | None = None


class ErrorEvent(_WireModel):
    """Terminal event: generation failed on the server."""

    type: Literal["error"] = "error"
    error: str | None = None


StreamEvent = Annotated[
    ChunkEvent | SourceEvent | DoneEvent | ErrorEvent,
    Field(discriminator="type"),
]

EVENT_TYPES = frozenset({"chunk", "source", "done", "error"})

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)
