"""Reply stream decoding and accumulation."""

from vidchat.stream.abort import AbortSignal
from vidchat.stream.accumulator import StreamedReplyAccumulator, UpdateCallback
from vidchat.stream.codec import FrameDecoder, encode_event

__all__ = [
    "AbortSignal",
    "FrameDecoder",
    "StreamedReplyAccumulator",
    "UpdateCallback",
    "encode_event",
]
