"""Command-line interface for TradeSense.

Provides market status, alert checking and trade signal commands.
"""

from tradesense.cli.main import cli, main

__all__ = ["cli", "main"]
