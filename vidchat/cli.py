"""vidchat CLI — Typer + Rich terminal interface.

Commands: ask, chat, history, conversations, new, rename, delete,
config, setup.
Replies stream into a Rich Live panel; Ctrl+C stops the generation and
keeps whatever text already arrived.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vidchat import __version__
from vidchat.client.base import ChatTransport, validate_title
from vidchat.client.http_transport import HttpChatTransport
from vidchat.config_loader import load_client_config
from vidchat.display import COLORS, ReplyDisplay, render_conversations, render_message
from vidchat.errors import TransportError
from vidchat.keys import (
    clear_keys,
    get_token,
    load_keys_env,
    mask_token,
    save_token,
)
from vidchat.schemas.config import ClientConfig
from vidchat.schemas.conversations import Conversation
from vidchat.schemas.messages import ChatMessage
from vidchat.session import ChatSession

# Load the API token from ~/.vidchat/keys.env and .env on startup
load_keys_env()

console = Console()

app = typer.Typer(
    name="vidchat",
    help="Chat with the assistant about your video content.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"vidchat {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log stream and transport details."
    ),
    config_path: str = typer.Option(
        None, "--config", "-c", help="Path to a TOML file with a [client] table."
    ),
) -> None:
    """vidchat — chat over your organization's video content."""
    _configure_logging(verbose)
    ctx.obj = {"config_path": config_path}


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(ctx: typer.Context) -> ClientConfig:
    """Load client config, exit on error."""
    path = (ctx.obj or {}).get("config_path")
    try:
        return load_client_config(Path(path) if path else None)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _make_transport(config: ClientConfig) -> ChatTransport:
    return HttpChatTransport(config)


def _organization_id(config: ClientConfig, override: str | None) -> str:
    """Resolve the organization from --org or config, exit when unset."""
    organization_id = override or config.organization_id
    if not organization_id:
        console.print(
            "[red]No organization set.[/red] Pass --org or set "
            "organization_id in the config file (or VIDCHAT_ORGANIZATION_ID)."
        )
        raise typer.Exit(1)
    return organization_id


def _run_transport(config: ClientConfig, action: str, call):
    """Run ``call(transport)`` on a fresh transport, exit on TransportError."""

    async def _run():
        async with _make_transport(config) as transport:
            return await call(transport)

    try:
        return asyncio.run(_run())
    except TransportError as e:
        console.print(f"[red]Error {action}:[/red] {e}")
        raise typer.Exit(1) from None


def _install_stop_handler(session: ChatSession) -> bool:
    """Route Ctrl+C to session.stop() while a reply streams."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, session.stop)
    except (NotImplementedError, RuntimeError, ValueError):
        # Windows event loops and non-main threads cannot install handlers
        return False
    return True


def _remove_stop_handler() -> None:
    try:
        asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError, ValueError):
        pass


async def _stream_reply(session: ChatSession, text: str, stream: bool) -> ChatMessage | None:
    if not stream:
        with console.status("Waiting for the assistant…"):
            return await session.send(text, stream=False)

    installed = _install_stop_handler(session)
    try:
        with ReplyDisplay(console) as display:
            return await session.send(text, on_update=display.update)
    finally:
        if installed:
            _remove_stop_handler()


# ── Commands ─────────────────────────────────────────────────────


@app.command()
def ask(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation to post into."),
    message: str = typer.Argument(..., help="Your question."),
    stream: bool = typer.Option(
        True, "--stream/--no-stream", help="Stream the reply as it is generated."
    ),
) -> None:
    """Ask one question and print the assistant's reply."""
    config = _load_config(ctx)

    async def _run() -> ChatMessage | None:
        async with _make_transport(config) as transport:
            session = ChatSession(transport, conversation_id)
            return await _stream_reply(session, message, stream)

    try:
        reply = asyncio.run(_run())
    except ValueError as e:
        console.print(f"[red]Invalid message:[/red] {e}")
        raise typer.Exit(1) from None

    if reply is None:
        console.print(f"[{COLORS['dim']}]Stopped before any reply arrived.[/]")
        return
    console.print(render_message(reply))


@app.command()
def chat(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation to continue."),
    load_history: bool = typer.Option(
        True, "--history/--no-history", help="Show stored messages first."
    ),
) -> None:
    """Interactive chat loop. Empty line or Ctrl+D exits."""
    config = _load_config(ctx)

    async def _run() -> None:
        async with _make_transport(config) as transport:
            session = ChatSession(transport, conversation_id)
            if load_history:
                try:
                    for item in await session.load_history():
                        console.print(render_message(item))
                except TransportError as e:
                    console.print(f"[{COLORS['amber']}]Could not load history:[/] {e}")

            while True:
                try:
                    text = await asyncio.to_thread(console.input, "[bold]you ▸ [/bold]")
                except (EOFError, KeyboardInterrupt):
                    break
                if not text.strip():
                    break
                try:
                    reply = await _stream_reply(session, text, stream=True)
                except ValueError as e:
                    console.print(f"[red]Invalid message:[/red] {e}")
                    continue
                if reply is not None:
                    console.print(render_message(reply))

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print()
    console.print(f"[{COLORS['dim']}]Goodbye.[/]")


@app.command()
def history(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation to show."),
    limit: int = typer.Option(
        None, "--limit", "-n", min=1, max=200, help="Number of messages to fetch."
    ),
) -> None:
    """Print the stored messages of a conversation."""
    config = _load_config(ctx)

    page = _run_transport(
        config,
        "fetching history",
        lambda transport: transport.list_messages(conversation_id, limit),
    )

    if not page.messages:
        console.print(f"[{COLORS['dim']}]No messages in {conversation_id}.[/]")
        return
    for item in page.messages:
        console.print(render_message(item))


# ── Conversation management ──────────────────────────────────────


@app.command()
def conversations(
    ctx: typer.Context,
    org: str = typer.Option(None, "--org", help="Organization ID (defaults to config)."),
) -> None:
    """List the organization's conversations."""
    config = _load_config(ctx)
    organization_id = _organization_id(config, org)

    items = _run_transport(
        config,
        "listing conversations",
        lambda transport: transport.list_conversations(organization_id),
    )
    if not items:
        console.print(f"[{COLORS['dim']}]No conversations yet. Start one with `vidchat new`.[/]")
        return
    console.print(render_conversations(items))


@app.command()
def new(
    ctx: typer.Context,
    org: str = typer.Option(None, "--org", help="Organization ID (defaults to config)."),
    title: str = typer.Option(None, "--title", "-t", help="Title for the new conversation."),
) -> None:
    """Start a new conversation and print its ID."""
    config = _load_config(ctx)
    organization_id = _organization_id(config, org)
    if title is not None:
        try:
            title = validate_title(title)
        except ValueError as e:
            console.print(f"[red]Invalid title:[/red] {e}")
            raise typer.Exit(1) from None

    async def _create(transport: ChatTransport) -> Conversation:
        conversation = await transport.create_conversation(organization_id)
        if title:
            conversation = await transport.rename_conversation(conversation.id, title)
        return conversation

    conversation = _run_transport(config, "creating conversation", _create)
    console.print(f"Created conversation {conversation.id} ({conversation.display_title})")


@app.command()
def rename(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation to rename."),
    title: str = typer.Argument(..., help="New title."),
) -> None:
    """Rename a conversation."""
    config = _load_config(ctx)
    try:
        title = validate_title(title)
    except ValueError as e:
        console.print(f"[red]Invalid title:[/red] {e}")
        raise typer.Exit(1) from None

    conversation = _run_transport(
        config,
        "renaming conversation",
        lambda transport: transport.rename_conversation(conversation_id, title),
    )
    console.print(f"Renamed {conversation.id} to {conversation.display_title}")


@app.command()
def delete(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation to delete."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete a conversation and its messages."""
    config = _load_config(ctx)
    if not yes:
        typer.confirm(f"Delete conversation {conversation_id}?", abort=True)

    _run_transport(
        config,
        "deleting conversation",
        lambda transport: transport.delete_conversation(conversation_id),
    )
    console.print(f"Deleted conversation {conversation_id}")


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the effective client configuration."""
    config = _load_config(ctx)

    table = Table(title="Client Configuration", show_lines=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    for key, value in config.model_dump().items():
        table.add_row(key, str(value))
    token = get_token(config.token_env)
    table.add_row("token", mask_token(token) if token else "[dim]not set[/dim]")
    console.print(table)


@app.command()
def setup(
    token: str = typer.Option(
        None, "--token", help="API token to save (prompted when omitted)."
    ),
    clear: bool = typer.Option(False, "--clear", help="Remove the saved token file."),
) -> None:
    """Save the API token to ~/.vidchat/keys.env."""
    if clear:
        removed = clear_keys()
        if removed is not None:
            console.print(f"Removed {removed}")
        else:
            console.print(f"[{COLORS['dim']}]Nothing to remove.[/]")
        return

    if token is None:
        token = typer.prompt("API token", hide_input=True)
    token = token.strip()
    if not token:
        console.print("[red]Token must not be empty.[/red]")
        raise typer.Exit(1)

    path = save_token(token)
    console.print(f"Saved token {mask_token(token)} to {path}")
