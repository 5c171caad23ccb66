"""Alert commands for TradeSense CLI.

Creates alerts, runs a check cycle and lists alerts or their trigger
history.
"""

import re
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradesense.cli.common import error_panel, get_config
from tradesense.models import Alert, AlertCondition

console = Console()


OPERATOR_ALIASES = {
    ">": "above",
    "<": "below",
    "above": "above",
    "below": "below",
    "crosses_above": "crosses_above",
    "crosses_below": "crosses_below",
    "crosses above": "crosses_above",
    "crosses below": "crosses_below",
}

CONDITION_PATTERN = re.compile(
    r"^\s*(price|rsi|volume|sma_cross|macd|score)\s*"
    r"(>|<|crosses[_ ]above|crosses[_ ]below|above|below)\s*"
    r"([\d.]+)?\s*$",
    re.IGNORECASE,
)
VOLUME_SPIKE_PATTERN = re.compile(r"^\s*volume\s+spike\s*$", re.IGNORECASE)
DEFAULT_VOLUME_SPIKE = 2.0


def parse_condition(text: str) -> Optional[AlertCondition]:
    """Parse a condition string such as ``price > 3500`` or ``rsi crosses_above 70``.

    ``volume spike`` is shorthand for ``volume above 2``. ``sma_cross`` takes
    no value.

    Returns:
        AlertCondition, or None if the text is not a supported condition.
    """
    if VOLUME_SPIKE_PATTERN.match(text):
        return AlertCondition(indicator="volume", operator="above", value=DEFAULT_VOLUME_SPIKE)

    match = CONDITION_PATTERN.match(text)
    if not match:
        return None

    indicator = match.group(1).lower()
    operator = OPERATOR_ALIASES[match.group(2).lower()]
    raw_value = match.group(3)

    if raw_value is None:
        if indicator != "sma_cross":
            return None
        value = 0.0
    else:
        try:
            value = float(raw_value)
        except ValueError:
            return None

    return AlertCondition(indicator=indicator, operator=operator, value=value)


def describe_condition(condition: AlertCondition) -> str:
    """Short human description of a condition."""
    operator = condition.operator.replace("_", " ")
    if condition.indicator == "sma_cross":
        return f"SMA50 {operator} SMA200"
    if condition.indicator == "volume":
        return f"volume >= {condition.value:g}x avg"
    return f"{condition.indicator} {operator} {condition.value:g}"


@click.command("alert")
@click.argument("user_id")
@click.argument("symbol")
@click.argument("condition")
@click.option("--recurring", is_flag=True, help="Keep the alert active after it fires.")
@click.option("--telegram", is_flag=True, help="Notify through Telegram when it fires.")
@click.option(
    "--expires-days",
    type=click.IntRange(min=1),
    default=None,
    help="Deactivate the alert after this many days.",
)
@click.pass_context
def create_alert(
    ctx: click.Context,
    user_id: str,
    symbol: str,
    condition: str,
    recurring: bool,
    telegram: bool,
    expires_days: Optional[int],
) -> None:
    """Create an alert for USER_ID on SYMBOL.

    \b
    Supported conditions:
      price > VALUE              price above VALUE
      price < VALUE              price below VALUE
      price crosses_above VALUE  price crosses up through VALUE
      rsi > VALUE                RSI(14) above VALUE
      rsi crosses_below VALUE    RSI(14) crosses down through VALUE
      volume spike               volume at least 2x average
      volume > VALUE             volume at least VALUE x average
      sma_cross crosses_above    golden cross (SMA50 over SMA200)

    \b
    Examples:
      tradesense alert u1 TCS.NS "price > 3500"
      tradesense alert u1 INFY.NS "rsi crosses_below 30" --telegram
    """
    parsed = parse_condition(condition)
    if parsed is None:
        error_panel(f"Invalid condition: {condition}", "Run [cyan]tradesense alert -h[/cyan] for examples.")

    config = get_config(ctx)
    now = datetime.now(timezone.utc)
    alert = Alert(
        user_id=user_id,
        symbol=symbol.upper(),
        alert_type=parsed.indicator,
        condition=parsed,
        is_recurring=recurring,
        notification_channels=["telegram"] if telegram else [],
        expires_at=now + timedelta(days=expires_days) if expires_days else None,
        created_at=now,
    )

    try:
        from tradesense.config import get_data_store

        alert_id = get_data_store(config).save_alert(alert)
    except Exception as e:
        error_panel("Failed to create alert:", str(e))

    console.print(Panel(
        f"[bold green]Alert Created[/bold green]\n\n"
        f"ID:        {alert_id}\n"
        f"Symbol:    {alert.symbol}\n"
        f"Condition: {describe_condition(parsed)}\n"
        f"Recurring: {'yes' if recurring else 'no'}",
        title="[bold]New Alert[/bold]",
        border_style="green",
    ))


@click.command("check")
@click.argument("user_id")
@click.option("--force", is_flag=True, help="Check even when the market is closed.")
@click.option("--watch", is_flag=True, help="Keep checking until Ctrl+C.")
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    default=300,
    show_default=True,
    help="Seconds between cycles with --watch.",
)
@click.option(
    "--cycles",
    type=click.IntRange(min=1),
    default=None,
    help="Stop --watch after this many cycles.",
)
@click.pass_context
def check(
    ctx: click.Context,
    user_id: str,
    force: bool,
    watch: bool,
    interval: int,
    cycles: Optional[int],
) -> None:
    """Run alert check cycles for USER_ID.

    Without --watch one cycle runs and the command exits. Crossing
    conditions compare against the previous cycle's price, so they only
    fire with --watch, where one runner and one data cache live across
    cycles. Closed-market cycles are skipped unless --force is given.

    \b
    Examples:
      tradesense check u1                          # One cycle
      tradesense check u1 --watch --interval 300   # Every 5 minutes
    """
    from tradesense.market import get_market_status

    status = get_market_status()
    if not watch and not status["is_open"] and not force:
        console.print(f"[yellow]{status['message']}[/yellow]")
        console.print("[dim]Use --force to check anyway.[/dim]")
        return

    config = get_config(ctx)

    try:
        from tradesense.alerts import AlertBatchRunner
        from tradesense.config import get_data_cache, get_data_store, get_notifier

        store = get_data_store(config)
        notifier = get_notifier(config)
        runner = AlertBatchRunner(
            store,
            get_data_cache(config),
            notifier=notifier,
            batch_deadline=config.alerts.batch_deadline,
        )
    except Exception as e:
        error_panel("Failed to start alert check:", str(e))

    if watch:
        console.print(f"[dim]Watching alerts for {user_id} every {interval}s...[/dim]\n")

    completed = 0
    try:
        while True:
            if completed:
                status = get_market_status()
            if status["is_open"] or force:
                with console.status(f"[dim]Checking alerts for {user_id}...[/dim]"):
                    summary = runner.run(user_id)
                _print_summary(summary)
            else:
                console.print(f"[yellow]{status['message']}[/yellow] [dim]Skipping cycle.[/dim]")
            completed += 1

            if not watch or (cycles is not None and completed >= cycles):
                break
            console.print(f"[dim]Next check in {interval}s (Ctrl+C to stop)[/dim]\n")
            time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching alerts.[/dim]")
    finally:
        if notifier is not None:
            notifier.close()


def _print_summary(summary) -> None:
    """Print one cycle's results table and totals."""
    if summary.results:
        table = Table(title="Alert Check", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Symbol", style="bold")
        table.add_column("Value", justify="right")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        for result in summary.results:
            if result.error:
                status_text = "[red]Error[/red]"
                message = result.error
            elif result.triggered:
                status_text = "[green]🔔 Triggered[/green]"
                message = result.message
            else:
                status_text = "[dim]●[/dim]"
                message = result.message
            table.add_row(
                str(result.alert_id),
                result.symbol,
                f"{result.current_value:,.2f}",
                status_text,
                message,
            )
        console.print(table)

    style = "yellow" if summary.errors or summary.timed_out else "green"
    lines = [
        f"Checked:   {summary.checked}",
        f"Triggered: {summary.triggered}",
        f"Errors:    {summary.errors}",
        f"Expired:   {summary.expired}",
    ]
    if summary.timed_out:
        lines.append("[yellow]Stopped early: batch deadline reached[/yellow]")
    console.print(Panel("\n".join(lines), title="[bold]Summary[/bold]", border_style=style))


@click.command("alerts")
@click.argument("user_id")
@click.option("--history", is_flag=True, help="Show trigger history instead.")
@click.option(
    "--remove", "remove_id",
    type=int,
    default=None,
    help="Deactivate alert with specified ID.",
)
@click.option("--limit", type=int, default=50, show_default=True, help="History rows to show.")
@click.pass_context
def list_alerts(
    ctx: click.Context, user_id: str, history: bool, remove_id: Optional[int], limit: int
) -> None:
    """List USER_ID's active alerts or their trigger history.

    \b
    Examples:
      tradesense alerts u1              # Active alerts
      tradesense alerts u1 --history    # Trigger history
      tradesense alerts u1 --remove 5   # Deactivate alert 5
    """
    config = get_config(ctx)

    try:
        from tradesense.config import get_data_store

        store = get_data_store(config)

        if remove_id is not None:
            alert = store.get_alert(remove_id)
            if alert is None or alert.user_id != user_id:
                console.print(f"[yellow]Alert with ID {remove_id} not found[/yellow]")
                return
            store.update_alert(remove_id, user_id, is_active=False)
            console.print(
                f"[green]✓ Deactivated alert {remove_id} "
                f"({alert.symbol}: {describe_condition(alert.condition)})[/green]"
            )
            return

        if history:
            _print_history(store.get_history(user_id, limit=limit))
            return

        alerts = store.get_active_alerts(user_id)
    except Exception as e:
        error_panel("Failed to list alerts:", str(e))

    if not alerts:
        console.print(Panel(
            "[dim]No active alerts. Use 'tradesense alert USER_ID SYMBOL CONDITION' to create one.[/dim]",
            title="[bold]Alerts[/bold]",
            border_style="dim",
        ))
        return

    table = Table(title="Active Alerts", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=6)
    table.add_column("Symbol", style="bold")
    table.add_column("Condition")
    table.add_column("Recurring", justify="center")
    table.add_column("Last Checked", style="dim")
    table.add_column("Expires", style="dim")

    for alert in alerts:
        table.add_row(
            str(alert.id),
            alert.symbol,
            describe_condition(alert.condition),
            "✓" if alert.is_recurring else "",
            alert.last_checked_at.strftime("%Y-%m-%d %H:%M") if alert.last_checked_at else "-",
            alert.expires_at.strftime("%Y-%m-%d") if alert.expires_at else "-",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(alerts)} alerts[/dim]")


def _print_history(entries) -> None:
    if not entries:
        console.print("[dim]No alerts have triggered yet.[/dim]")
        return

    table = Table(title="Alert History", show_header=True, header_style="bold cyan")
    table.add_column("When", style="dim")
    table.add_column("Symbol", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Message")
    table.add_column("Sent To", style="dim")

    for entry in entries:
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M"),
            entry.symbol,
            f"{entry.triggered_value:,.2f}",
            entry.message,
            ", ".join(entry.notification_sent_to) or "-",
        )

    console.print(table)
