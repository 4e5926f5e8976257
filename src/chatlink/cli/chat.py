"""CLI: chatlink chat, chatlink history"""

import asyncio
import json
from typing import Any, Optional

import click
from rich.console import Console

from chatlink.connection import ConnectionState
from chatlink.models.events import SessionEvent
from chatlink.models.log import LogEntry

console = Console()

_ROLE_STYLE = {
    "user": "bold",
    "assistant": "green",
    "tool": "cyan",
    "meta_agent": "magenta",
    "system": "yellow",
}


def _get_session(session_key: str, **overrides):
    from chatlink.cli.main import _get_session
    return _get_session(session_key, **overrides)


def _run(coro):
    from chatlink.cli.main import _run
    return _run(coro)


def _print_entry(entry: LogEntry) -> None:
    style = _ROLE_STYLE.get(entry.role, "white")
    console.print(f"[{style}]{entry.role}:[/{style}] {entry.content}")


@click.command("chat")
@click.argument("session_key")
@click.option("--no-history", is_flag=True, help="Skip loading durable history.")
@click.option("--max-attempts", default=5, type=int, show_default=True)
def chat_cmd(session_key: str, no_history: bool, max_attempts: int):
    """Interactive chat. /abort cancels the current turn, /quit exits."""

    async def _chat():
        session = _get_session(session_key, max_attempts=max_attempts)
        # Streamed entries print once, when their turn completes
        streamed: dict[str, LogEntry] = {}

        def on_event(event: str, data: Any) -> None:
            if event == SessionEvent.STREAM:
                streamed[data.id] = data
            elif event in (SessionEvent.TOOL_USE, SessionEvent.META_AGENT):
                _print_entry(data)
            elif event == SessionEvent.MESSAGE and data.role != "user":
                _print_entry(data)
            elif event in (SessionEvent.COMPLETE, SessionEvent.ABORTED):
                for entry in streamed.values():
                    _print_entry(entry)
                streamed.clear()
            elif event == SessionEvent.TURN_ERROR:
                console.print(f"[red]Error:[/red] {data}")
            elif event == SessionEvent.STATE:
                console.print(f"[dim][{data.value}][/dim]")
            elif event == SessionEvent.NOT_READY:
                console.print("[yellow]Environment is starting; waiting for it to become ready...[/yellow]")
            elif event == SessionEvent.CONNECTION_ERROR:
                console.print(f"[red]Connection error:[/red] {data}")

        def on_processing(processing: bool, message: Optional[str]) -> None:
            if processing:
                console.print(f"[dim]{message or 'Working...'}[/dim]")

        session.manager.add_event_handler(on_event)
        session.subscribe_processing(on_processing)

        await session.open(load_history=not no_history)
        for entry in session.messages:
            _print_entry(entry)
        console.print("[cyan]Type your message (/abort, /quit)[/cyan]\n")
        try:
            while session.state is not ConnectionState.FAILED:
                msg = await asyncio.to_thread(click.prompt, "You", prompt_suffix=": ")
                if msg.lower() in ("/quit", "/exit"):
                    break
                if msg.lower() == "/abort":
                    session.abort()
                    continue
                if not session.send(msg):
                    console.print("[red]Not connected; message not sent.[/red]")
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            await session.aclose()

    _run(_chat())


@click.command("history")
@click.argument("session_key")
@click.option("--json-output", "--json", is_flag=True)
def history_cmd(session_key: str, json_output: bool):
    """Print durable conversation history."""

    async def _history():
        session = _get_session(session_key)
        try:
            entries = await session.history.fetch(session_key)
        finally:
            await session.http.close()
        if json_output:
            click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
            return
        if not entries:
            console.print("[dim]No history.[/dim]")
        for entry in entries:
            _print_entry(entry)

    _run(_history())
