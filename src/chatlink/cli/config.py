"""CLI: chatlink config show|set-url|set-token|clear"""

from typing import Optional

import click
from rich.console import Console

from chatlink.config import CONFIG_FILE, load_config, resolve_settings, save_config

console = Console()


@click.group()
def config():
    """Endpoint and credential settings."""


@config.command("show")
def config_show():
    """Show effective settings (environment overrides the config file)."""
    settings = resolve_settings(load_config())
    console.print(f"base_url: {settings['base_url']}")
    console.print(f"ws_url:   {settings['ws_url']}")
    token = settings["access_token"]
    console.print(f"token:    {'set' if token else '[yellow]not set[/yellow]'}")


@config.command("set-url")
@click.option("--base-url", default=None, help="HTTP base URL (history, status).")
@click.option("--ws-url", default=None, help="WebSocket base URL.")
def config_set_url(base_url: Optional[str], ws_url: Optional[str]):
    """Save endpoint URLs."""
    cfg = load_config()
    if base_url:
        cfg["base_url"] = base_url
    if ws_url:
        cfg["ws_url"] = ws_url
    save_config(cfg)
    console.print(f"[green]Saved to {CONFIG_FILE}[/green]")


@config.command("set-token")
@click.option("--token", prompt=True, hide_input=True)
def config_set_token(token: str):
    """Save an access token."""
    save_config({**load_config(), "access_token": token})
    console.print("[green]Token saved.[/green]")


@config.command("clear")
def config_clear():
    """Clear saved settings."""
    save_config({})
    console.print("[green]Settings cleared.[/green]")
