"""Main CLI entry point for TradeSense.

Subcommands are imported only when invoked, so ``tradesense market`` does
not pay for loading yfinance or SmartAPI.
"""

import click
from rich.console import Console

console = Console()


class LazyGroup(click.Group):
    """A click Group that imports subcommand modules on first use."""

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        base = super().list_commands(ctx)
        return sorted(set(base + list(self._lazy_subcommands)))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        if cmd_name in self.commands:
            return self.commands[cmd_name]
        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)
        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        """Import a command from its module path and register it."""
        import importlib

        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        cmd = None
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if isinstance(attr, click.Command) and attr.name == cmd_name:
                cmd = attr
                break

        if cmd is None:
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd)
        return cmd


LAZY_SUBCOMMANDS = {
    "market": "tradesense.cli.market",
    "check": "tradesense.cli.alerts",
    "alert": "tradesense.cli.alerts",
    "alerts": "tradesense.cli.alerts",
    "signal": "tradesense.cli.signals",
    "signals": "tradesense.cli.signals",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(cls=LazyGroup, lazy_subcommands=LAZY_SUBCOMMANDS, context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="tradesense")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default ~/.config/tradesense/config.toml).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """TradeSense - price alerts and trade signals for NSE stocks.

    \b
    Quick Start:
      tradesense market                          # Is the market open?
      tradesense alert u1 TCS.NS "price > 3500"  # Create an alert
      tradesense check u1                        # Run one alert check
      tradesense signals u1 --check              # Resolve open signals
    """
    from tradesense.logutil import setup_logging

    setup_logging("DEBUG" if verbose else None)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
