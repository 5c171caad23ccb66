"""Trade signal commands for TradeSense CLI."""

import json
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradesense.cli.common import error_panel, get_config
from tradesense.models import AnalysisInput, SignalStats

console = Console()

STATUS_STYLES = {
    "ACTIVE": "cyan",
    "TARGET_HIT": "green",
    "STOP_LOSS": "red",
    "EXPIRED": "yellow",
    "CANCELLED": "dim",
}


def load_analysis(path: Path) -> AnalysisInput:
    """Read an analysis JSON file.

    Raises:
        ValueError: If the file is not valid JSON or not a valid analysis.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e

    try:
        return AnalysisInput.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid analysis data:\n{e}") from e


def _service(config, with_cache: bool = False):
    from tradesense.config import get_data_cache, get_data_store
    from tradesense.signals import SignalService

    return SignalService(
        get_data_store(config),
        data_cache=get_data_cache(config) if with_cache else None,
        expiry_days=config.signals.expiry_days,
    )


@click.command("signal")
@click.argument("user_id")
@click.argument("analysis_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def create_signal(ctx: click.Context, user_id: str, analysis_json: Path) -> None:
    """Generate a trade signal for USER_ID from an analysis file.

    ANALYSIS_JSON holds symbol, price, score, confidence, details,
    timeframe and optional risk/technicals blocks.

    \b
    Example:
      tradesense signal u1 tcs_analysis.json
    """
    try:
        analysis = load_analysis(analysis_json)
    except ValueError as e:
        error_panel("Cannot read analysis:", str(e))

    config = get_config(ctx)

    try:
        signal, reason = _service(config).create_signal(user_id, analysis)
    except Exception as e:
        error_panel("Failed to create signal:", str(e))

    if signal is None:
        console.print(Panel(
            f"[yellow]No signal for {analysis.symbol}[/yellow]\n\n{reason}",
            title="[bold]Signal Rejected[/bold]",
            border_style="yellow",
        ))
        return

    color = "green" if signal.signal_type == "BUY" else "red"
    reasons = "\n".join(f"  {r}" for r in signal.reasons) or "  -"
    console.print(Panel(
        f"[bold {color}]{signal.signal_type}[/bold {color}] {signal.symbol}\n\n"
        f"Entry:       ₹{signal.entry_price:,.2f}\n"
        f"Target:      ₹{signal.target_price:,.2f}\n"
        f"Stop Loss:   ₹{signal.stop_loss:,.2f}\n"
        f"Risk/Reward: {signal.risk_reward:.2f}\n"
        f"Confidence:  {signal.confidence * 100:.0f}%\n"
        f"Expires:     {signal.expires_at.strftime('%Y-%m-%d')}\n\n"
        f"[bold]Reasons:[/bold]\n{reasons}",
        title=f"[bold]Signal #{signal.id}[/bold]",
        border_style=color,
    ))


@click.command("signals")
@click.argument("user_id")
@click.option(
    "--status",
    type=click.Choice(["ACTIVE", "CLOSED"], case_sensitive=False),
    default=None,
    help="Only show active or closed signals.",
)
@click.option("--check", "check_outcomes", is_flag=True, help="Resolve active signals against live prices.")
@click.option("--cancel", "cancel_id", type=int, default=None, help="Cancel an active signal by ID.")
@click.option("--limit", type=int, default=50, show_default=True, help="Signals to show.")
@click.pass_context
def list_signals(
    ctx: click.Context,
    user_id: str,
    status: Optional[str],
    check_outcomes: bool,
    cancel_id: Optional[int],
    limit: int,
) -> None:
    """List USER_ID's trade signals with performance stats.

    \b
    Examples:
      tradesense signals u1                  # All signals
      tradesense signals u1 --status CLOSED  # Closed signals
      tradesense signals u1 --check          # Resolve target/stop hits
      tradesense signals u1 --cancel 7       # Cancel signal 7
    """
    config = get_config(ctx)

    try:
        service = _service(config, with_cache=check_outcomes)

        if cancel_id is not None:
            if service.cancel_signal(user_id, cancel_id):
                console.print(f"[green]✓ Cancelled signal {cancel_id}[/green]")
            else:
                console.print(f"[yellow]No active signal with ID {cancel_id}[/yellow]")
            return

        if check_outcomes:
            result = service.check_active_signals(user_id)
            console.print(
                f"[bold]Checked {result['checked']} active signals, "
                f"{result['updated']} closed[/bold]"
            )
            for update in result["updates"]:
                style = STATUS_STYLES.get(update["status"], "white")
                console.print(
                    f"  [{style}]{update['status']}[/{style}] #{update['id']} "
                    f"{update['symbol']} {update['return_pct']:+.2f}%"
                )

        signals = service.list_signals(user_id, status=status.upper() if status else None, limit=limit)
        stats = service.get_stats(user_id)
    except Exception as e:
        error_panel("Failed to load signals:", str(e))

    if not signals:
        console.print(Panel(
            "[dim]No signals yet. Use 'tradesense signal USER_ID ANALYSIS_JSON' to create one.[/dim]",
            title="[bold]Signals[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Trade Signals", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Symbol", style="bold")
    table.add_column("Type", justify="center")
    table.add_column("Entry", justify="right")
    table.add_column("Target", justify="right")
    table.add_column("Stop", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Return", justify="right")
    table.add_column("Created", style="dim")

    for signal in signals:
        type_color = "green" if signal.signal_type == "BUY" else "red"
        style = STATUS_STYLES.get(signal.status, "white")
        ret = f"{signal.return_pct:+.2f}%" if signal.return_pct is not None else "-"
        table.add_row(
            str(signal.id),
            signal.symbol,
            f"[{type_color}]{signal.signal_type}[/{type_color}]",
            f"₹{signal.entry_price:,.2f}",
            f"₹{signal.target_price:,.2f}",
            f"₹{signal.stop_loss:,.2f}",
            f"[{style}]{signal.status}[/{style}]",
            ret,
            signal.created_at.strftime("%Y-%m-%d"),
        )

    console.print(table)
    _print_stats(stats)


def _print_stats(stats: SignalStats) -> None:
    color = "green" if stats.total_return >= 0 else "red"
    console.print(Panel(
        f"Signals:   {stats.total_signals} "
        f"({stats.active_signals} active, {stats.closed_signals} closed)\n"
        f"Wins:      {stats.wins}   Losses: {stats.losses}\n"
        f"Win Rate:  {stats.win_rate:.1f}%\n"
        f"Avg Return: [{color}]{stats.avg_return:+.2f}%[/{color}]\n"
        f"Total:     [{color}]{stats.total_return:+.2f}%[/{color}]\n"
        f"Best:      {stats.best_trade:+.2f}%   Worst: {stats.worst_trade:+.2f}%",
        title="[bold]Performance[/bold]",
        border_style="cyan",
    ))
