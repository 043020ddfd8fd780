"""Rich rendering for chat messages, citations and live replies.

ReplyDisplay wraps a Rich Live region that re-renders on every
ReplySnapshot the accumulator publishes. Citation rendering dispatches on
the source type through a single lookup table.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vidchat.schemas.conversations import Conversation
from vidchat.schemas.events import SourceReference
from vidchat.schemas.messages import (
    ChatMessage,
    MessageRole,
    ReplySnapshot,
    TerminalState,
)

COLORS = {
    "accent": "#4fb3ff",
    "user": "#9ad17b",
    "assistant": "#4fb3ff",
    "dim": "#7a8a99",
    "amber": "#ffaa00",
    "red": "#ff4444",
}

_CURSOR = "▍"


# ── Source rendering ──────────────────────────────────────────────


def format_timestamp(seconds: float) -> str:
    """Format a video offset as m:ss, or h:mm:ss past the hour."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _at(source: SourceReference) -> str:
    if source.timestamp is None:
        return ""
    return f" @ {format_timestamp(source.timestamp)}"


def _video_label(source: SourceReference) -> str:
    return f"Video {source.video_id or source.id}{_at(source)}"


def _transcript_label(source: SourceReference) -> str:
    video = source.video_id or "unknown video"
    return f"Transcript of {video}{_at(source)}"


def _decision_label(source: SourceReference) -> str:
    if source.video_id:
        return f"Decision {source.id} (video {source.video_id}{_at(source)})"
    return f"Decision {source.id}"


def _slack_label(source: SourceReference) -> str:
    return f"Slack message {source.id}"


def _notion_label(source: SourceReference) -> str:
    return f"Notion page {source.id}"


def _github_label(source: SourceReference) -> str:
    return f"GitHub item {source.id}"


def _generic_label(source: SourceReference) -> str:
    return f"{source.type.replace('_', ' ').capitalize()} {source.id}"


_SOURCE_LABELS: dict[str, Callable[[SourceReference], str]] = {
    "video": _video_label,
    "transcript_chunk": _transcript_label,
    "decision": _decision_label,
    "slack": _slack_label,
    "notion": _notion_label,
    "github": _github_label,
}


def describe_source(source: SourceReference) -> str:
    """One-line label for a citation, chosen by its source type."""
    return _SOURCE_LABELS.get(source.type, _generic_label)(source)


def render_sources(sources: Iterable[SourceReference]) -> Table | None:
    """Citation table, or None when there are no sources."""
    sources = list(sources)
    if not sources:
        return None

    table = Table(
        title="Sources", title_style=COLORS["dim"], show_edge=False, expand=False
    )
    table.add_column("#", justify="right", style=COLORS["dim"])
    table.add_column("Source", style=COLORS["accent"])
    table.add_column("Relevance", justify="right")
    table.add_column("Preview", style=COLORS["dim"], overflow="ellipsis", max_width=60)

    for index, source in enumerate(sources, start=1):
        table.add_row(
            str(index),
            describe_source(source),
            f"{source.relevance:.0%}",
            (source.preview or "").replace("\n", " "),
        )
    return table


# ── Conversation rendering ────────────────────────────────────────


def render_conversations(conversations: Iterable[Conversation]) -> Table:
    table = Table(title="Conversations", show_lines=False)
    table.add_column("ID", style=COLORS["accent"], no_wrap=True)
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Updated", style=COLORS["dim"])

    for conversation in conversations:
        stamp = conversation.updated_at or conversation.created_at
        table.add_row(
            conversation.id,
            conversation.display_title,
            str(conversation.message_count),
            stamp.strftime("%Y-%m-%d %H:%M") if stamp else "",
        )
    return table


# ── Message rendering ─────────────────────────────────────────────


def render_message(message: ChatMessage) -> RenderableType:
    """Render one history message as a titled panel."""
    if message.role is MessageRole.USER:
        return Panel(
            Text(message.content),
            title="You",
            title_align="left",
            border_style=COLORS["user"],
        )

    parts: list[RenderableType] = [Markdown(message.content)]
    table = render_sources(message.sources)
    if table is not None:
        parts.append(table)

    subtitle = None
    if not message.acknowledged:
        subtitle = f"[{COLORS['amber']}]incomplete: server did not confirm this reply[/]"
    elif message.usage is not None:
        subtitle = f"[{COLORS['dim']}]{message.usage.total_tokens} tokens[/]"

    return Panel(
        Group(*parts),
        title="Assistant" if message.role is MessageRole.ASSISTANT else "System",
        title_align="left",
        subtitle=subtitle,
        subtitle_align="right",
        border_style=COLORS["assistant"],
    )


def render_snapshot(snapshot: ReplySnapshot) -> RenderableType:
    """Render an in-progress or finished reply snapshot."""
    if snapshot.state is TerminalState.IN_PROGRESS:
        body: RenderableType = (
            Text(snapshot.text + _CURSOR)
            if snapshot.text
            else Text("Thinking…", style=COLORS["dim"])
        )
        border = COLORS["accent"]
    elif snapshot.state is TerminalState.FAILED:
        body = Text(snapshot.error or "Generation failed", style=COLORS["red"])
        border = COLORS["red"]
    else:
        body = Markdown(snapshot.display_text)
        border = COLORS["assistant"] if snapshot.acknowledged else COLORS["amber"]

    parts: list[RenderableType] = [body]
    table = render_sources(snapshot.sources)
    if table is not None:
        parts.append(table)

    return Panel(
        Group(*parts),
        title="Assistant",
        title_align="left",
        subtitle=f"[{COLORS['dim']}]{snapshot.state.value.replace('_', ' ')}[/]",
        subtitle_align="right",
        border_style=border,
    )


class ReplyDisplay:
    """Live terminal region showing one streaming reply.

    Usage:
        with ReplyDisplay(console) as display:
            await session.send(text, on_update=display.update)
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._live: Live | None = None
        self._last: ReplySnapshot = ReplySnapshot()

    @property
    def last_snapshot(self) -> ReplySnapshot:
        return self._last

    def __enter__(self) -> ReplyDisplay:
        self._live = Live(
            render_snapshot(self._last),
            console=self._console,
            refresh_per_second=12,
            transient=True,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._live is not None:
            self._live.__exit__(None, None, None)
            self._live = None

    def update(self, snapshot: ReplySnapshot) -> None:
        """Accumulator callback: re-render with the latest snapshot."""
        self._last = snapshot
        if self._live is not None:
            self._live.update(render_snapshot(snapshot))
