"""Tests for vidchat.schemas — stream events, reply state and messages."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from vidchat.schemas.conversations import Conversation, ConversationList
from vidchat.schemas.events import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    SourceEvent,
    SourceReference,
    stream_event_adapter,
)
from vidchat.schemas.messages import (
    AccumulatedReply,
    ChatMessage,
    MessageList,
    MessageRole,
    ReplySnapshot,
    TerminalState,
)


class TestStreamEvent:
    def test_chunk_from_wire(self):
        event = stream_event_adapter.validate_python({"type": "chunk", "content": "hi"})
        assert isinstance(event, ChunkEvent)
        assert event.content == "hi"

    def test_source_from_wire_uses_camel_case(self):
        event = stream_event_adapter.validate_python({
            "type": "source",
            "source": {
                "type": "transcript_chunk",
                "id": "tc-1",
                "relevance": 0.82,
                "videoId": "vid-9",
                "timestamp": 73.5,
            },
        })
        assert isinstance(event, SourceEvent)
        assert event.source.video_id == "vid-9"
        assert event.source.timestamp == 73.5
        assert event.source.preview is None

    def test_done_with_usage(self):
        event = stream_event_adapter.validate_python({
            "type": "done",
            "messageId": "m1",
            "usage": {"promptTokens": 10, "completionTokens": 5, "totalTokens": 15},
        })
        assert isinstance(event, DoneEvent)
        assert event.message_id == "m1"
        assert event.usage.total_tokens == 15

    def test_done_without_fields(self):
        event = stream_event_adapter.validate_python({"type": "done"})
        assert event.message_id is None
        assert event.usage is None

    def test_error(self):
        event = stream_event_adapter.validate_python({"type": "error", "error": "rate limited"})
        assert isinstance(event, ErrorEvent)
        assert event.error == "rate limited"

    def test_relevance_percentage_normalized(self):
        assert SourceReference(type="transcript_chunk", id="t1", relevance=87).relevance == 0.87
        assert SourceReference(type="decision", id="d1", relevance=80).relevance == 0.8

    def test_relevance_fraction_kept(self):
        assert SourceReference(type="video", id="v1", relevance=0.42).relevance == 0.42
        assert SourceReference(type="video", id="v1", relevance=1).relevance == 1.0

    def test_relevance_clamped(self):
        assert SourceReference(type="video", id="v1", relevance=250).relevance == 1.0
        assert SourceReference(type="video", id="v1", relevance=-3).relevance == 0.0

    def test_relevance_not_a_number(self):
        with pytest.raises(ValidationError):
            SourceReference(type="video", id="v1", relevance="high")

    def test_dump_by_alias(self):
        event = DoneEvent(message_id="m1")
        assert event.model_dump(by_alias=True, exclude_none=True) == {
            "type": "done",
            "messageId": "m1",
        }


class TestAccumulatedReply:
    def test_starts_in_progress(self):
        reply = AccumulatedReply()
        assert reply.state is TerminalState.IN_PROGRESS
        assert reply.text == ""
        assert reply.sources == []
        assert not reply.is_terminal

    def test_complete_generates_id(self):
        reply = AccumulatedReply()
        reply.complete(None)
        assert reply.state is TerminalState.COMPLETED
        assert reply.message_id

    def test_terminal_is_absorbing(self):
        reply = AccumulatedReply()
        reply.append_text("a")
        reply.fail("boom")
        with pytest.raises(RuntimeError):
            reply.append_text("b")
        with pytest.raises(RuntimeError):
            reply.complete("m1")
        assert reply.text == "a"
        assert reply.state is TerminalState.FAILED

    def test_snapshot_is_a_copy(self):
        reply = AccumulatedReply()
        reply.append_text("one")
        snap = reply.snapshot()
        reply.append_text(" two")
        reply.append_source(SourceReference(type="video", id="v1", relevance=0.5))
        assert snap.text == "one"
        assert snap.sources == ()

    def test_snapshot_is_frozen(self):
        snap = AccumulatedReply().snapshot()
        with pytest.raises(ValidationError):
            snap.text = "changed"


class TestReplySnapshot:
    def test_display_text_marks_cancelled(self):
        snap = ReplySnapshot(text="Working on it", state=TerminalState.CANCELLED)
        assert snap.display_text == "Working on it\n\n*[Generation stopped]*"

    def test_display_text_cancelled_empty(self):
        snap = ReplySnapshot(state=TerminalState.CANCELLED)
        assert snap.display_text == ""

    def test_display_text_completed(self):
        snap = ReplySnapshot(text="done", state=TerminalState.COMPLETED)
        assert snap.display_text == "done"


class TestChatMessage:
    def test_server_record(self):
        msg = ChatMessage.model_validate({
            "id": "m1",
            "conversationId": "c1",
            "role": "assistant",
            "content": "answer",
            "sources": None,
            "usage": None,
            "createdAt": "2026-01-05T10:00:00Z",
        })
        assert msg.role is MessageRole.ASSISTANT
        assert msg.sources == ()
        assert msg.created_at.year == 2026

    def test_message_list(self):
        page = MessageList.model_validate({
            "conversationId": "c1",
            "messages": [{"id": "m1", "role": "user", "content": "q"}],
        })
        assert page.conversation_id == "c1"
        assert page.messages[0].content == "q"


class TestConversation:
    def test_from_wire(self):
        conversation = Conversation.model_validate({
            "id": "conv-1",
            "title": None,
            "videoIds": ["v1", "v2"],
            "messageCount": 3,
            "createdAt": "2026-03-01T09:00:00Z",
            "updatedAt": "2026-03-02T10:30:00Z",
        })
        assert conversation.video_ids == ("v1", "v2")
        assert conversation.message_count == 3
        assert conversation.display_title == "Untitled conversation"

    def test_null_video_ids(self):
        assert Conversation.model_validate({"id": "c", "videoIds": None}).video_ids == ()

    def test_list(self):
        page = ConversationList.model_validate({"conversations": [{"id": "a", "title": "T"}]})
        assert page.conversations[0].display_title == "T"
