"""Market status command."""

import click
from rich.console import Console
from rich.panel import Panel

from tradesense.market import get_market_status

console = Console()


@click.command("market")
def market() -> None:
    """Show whether the NSE cash market is open.

    Market hours are 9:15 AM to 3:30 PM IST, Monday to Friday.
    """
    status = get_market_status()
    color = "green" if status["is_open"] else "yellow"

    console.print(Panel(
        f"[bold {color}]{status['message']}[/bold {color}]\n\n"
        f"Date: {status['date']} ({status['day']})\n"
        f"Time: {status['current_time']} IST",
        title="[bold]Market Status[/bold]",
        border_style=color,
    ))
