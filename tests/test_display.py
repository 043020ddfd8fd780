"""Tests for vidchat.display — citation labels and Rich rendering."""

from __future__ import annotations

import pytest
from rich.console import Console

from vidchat.display import (
    ReplyDisplay,
    describe_source,
    format_timestamp,
    render_conversations,
    render_message,
    render_snapshot,
    render_sources,
)
from vidchat.schemas.conversations import Conversation
from vidchat.schemas.events import SourceReference, StreamUsage
from vidchat.schemas.messages import ChatMessage, MessageRole, ReplySnapshot, TerminalState


def _render(renderable) -> str:
    console = Console(record=True, width=120, color_system=None)
    console.print(renderable)
    return console.export_text()


def _source(type_: str, **kwargs) -> SourceReference:
    return SourceReference(type=type_, id=kwargs.pop("id", "s1"), relevance=0.5, **kwargs)


class TestFormatTimestamp:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "0:00"), (7.9, "0:07"), (73.5, "1:13"), (3600, "1:00:00"), (3725, "1:02:05")],
    )
    def test_formats(self, seconds, expected):
        assert format_timestamp(seconds) == expected


class TestDescribeSource:
    def test_video(self):
        assert describe_source(_source("video", id="v1", timestamp=90)) == "Video v1 @ 1:30"

    def test_transcript(self):
        label = describe_source(_source("transcript_chunk", video_id="vid-9", timestamp=5))
        assert label == "Transcript of vid-9 @ 0:05"

    def test_decision_with_video(self):
        label = describe_source(_source("decision", id="d1", video_id="vid-2"))
        assert label == "Decision d1 (video vid-2)"

    def test_decision_alone(self):
        assert describe_source(_source("decision", id="d1")) == "Decision d1"

    @pytest.mark.parametrize(
        "type_, expected",
        [("slack", "Slack message s1"), ("notion", "Notion page s1"), ("github", "GitHub item s1")],
    )
    def test_integrations(self, type_, expected):
        assert describe_source(_source(type_)) == expected

    def test_unknown_type_falls_back(self):
        assert describe_source(_source("meeting_note")) == "Meeting note s1"


class TestRenderSources:
    def test_none_when_empty(self):
        assert render_sources([]) is None

    def test_table_rows(self):
        text = _render(render_sources([
            SourceReference(type="video", id="v1", relevance=0.82, preview="We agreed\nto ship"),
        ]))
        assert "Sources" in text
        assert "Video v1" in text
        assert "82%" in text
        assert "We agreed to ship" in text

    def test_percentage_relevance_shown_as_percent(self):
        text = _render(render_sources([SourceReference(type="decision", id="d1", relevance=80)]))
        assert "80%" in text
        assert "8000%" not in text


class TestRenderConversations:
    def test_rows(self):
        text = _render(render_conversations([
            Conversation.model_validate({
                "id": "conv-1",
                "title": "Roadmap sync",
                "messageCount": 12,
                "createdAt": "2026-03-01T09:00:00Z",
            }),
            Conversation(id="conv-2"),
        ]))
        assert "Conversations" in text
        assert "Roadmap sync" in text
        assert "12" in text
        assert "2026-03-01 09:00" in text
        assert "Untitled conversation" in text


class TestRenderMessage:
    def test_user_panel(self):
        text = _render(render_message(ChatMessage(role=MessageRole.USER, content="question?")))
        assert "You" in text
        assert "question?" in text

    def test_assistant_with_usage(self):
        message = ChatMessage(
            role=MessageRole.ASSISTANT,
            content="**answer**",
            usage=StreamUsage(prompt_tokens=1, completion_tokens=2, total_tokens=3),
        )
        text = _render(render_message(message))
        assert "Assistant" in text
        assert "answer" in text
        assert "3 tokens" in text

    def test_unacknowledged_reply_flagged(self):
        message = ChatMessage(role=MessageRole.ASSISTANT, content="partial", acknowledged=False)
        assert "incomplete" in _render(render_message(message))


class TestRenderSnapshot:
    def test_thinking_placeholder(self):
        assert "Thinking" in _render(render_snapshot(ReplySnapshot()))

    def test_in_progress_text(self):
        assert "Hello" in _render(render_snapshot(ReplySnapshot(text="Hello")))

    def test_failed(self):
        snap = ReplySnapshot(state=TerminalState.FAILED, error="rate limited")
        assert "rate limited" in _render(render_snapshot(snap))

    def test_cancelled_shows_marker(self):
        snap = ReplySnapshot(text="Partial", state=TerminalState.CANCELLED)
        text = _render(render_snapshot(snap))
        assert "Partial" in text
        assert "Generation stopped" in text


class TestReplyDisplay:
    def test_tracks_last_snapshot(self):
        console = Console(record=True, width=120, color_system=None)
        with ReplyDisplay(console) as display:
            display.update(ReplySnapshot(text="a"))
            display.update(ReplySnapshot(text="ab"))
        assert display.last_snapshot.text == "ab"

    def test_update_outside_live(self):
        display = ReplyDisplay(Console(record=True, color_system=None))
        display.update(ReplySnapshot(text="x"))
        assert display.last_snapshot.text == "x"
