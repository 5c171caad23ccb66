"""Helpers shared by CLI commands."""

from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from tradesense.config import AppConfig, load_config
from tradesense.errors import ConfigError

console = Console()


def error_panel(title: str, detail: str) -> None:
    """Print a red error panel and exit with status 1."""
    console.print(Panel(
        f"[red]{title}[/red]\n\n{detail}",
        title="[bold red]Error[/bold red]",
        border_style="red",
    ))
    raise SystemExit(1)


def get_config(ctx: Optional[click.Context] = None) -> AppConfig:
    """Load configuration for the current invocation."""
    path = None
    if ctx is not None and ctx.obj:
        path = ctx.obj.get("config_path")

    try:
        return load_config(path)
    except ConfigError as e:
        error_panel("Configuration error:", str(e))
