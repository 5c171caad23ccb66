"""Logging setup for the CLI."""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LEVEL = "WARNING"


def setup_logging(level: Optional[str] = None, console: Optional[Console] = None) -> None:
    """Route ``tradesense`` loggers through a rich handler.

    Args:
        level: Level name. Falls back to the ``LOG_LEVEL`` environment
            variable, then WARNING.
        console: Console to log to; stderr by default.
    """
    name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL).upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.getLevelName(DEFAULT_LEVEL)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger = logging.getLogger("tradesense")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(numeric)
    logger.propagate = False
