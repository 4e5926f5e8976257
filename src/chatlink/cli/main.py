"""
chatlink CLI — `chatlink` command.

Commands:
  chatlink chat <session-key>      Interactive REPL over a live session
  chatlink history <session-key>   Print durable history
  chatlink config <cmd>            Show / set endpoints and token
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install chatlink[cli]")

from chatlink.client import AsyncChatSession
from chatlink.config import ConnectionConfig, load_config, resolve_settings

console = Console()


def _get_session(session_key: str, **overrides) -> AsyncChatSession:
    settings = resolve_settings(load_config())
    return AsyncChatSession(
        session_key,
        ws_url=settings["ws_url"],
        base_url=settings["base_url"],
        access_token=settings["access_token"],
        config=ConnectionConfig(**overrides),
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log connection lifecycle to stderr.")
def main(verbose: bool):
    """chatlink — resilient chat sessions with a remote agent."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# Register subcommands from separate modules
from chatlink.cli.chat import chat_cmd, history_cmd
from chatlink.cli.config import config

main.add_command(chat_cmd)
main.add_command(history_cmd)
main.add_command(config)


if __name__ == "__main__":
    main()
