"""Logging setup shared by the CLI and the API server."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from fuelwatch.core.config import LoggingConfig


def configure_logging(
    config: LoggingConfig,
    verbose: bool = False,
    console: Console | None = None,
) -> None:
    """Route the ``fuelwatch`` logger tree through a rich handler.

    ``verbose`` forces DEBUG regardless of the configured level. Calling
    this twice replaces the handler rather than stacking a second one.
    """
    level = logging.DEBUG if verbose else logging.getLevelName(config.level)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter(config.format))

    root = logging.getLogger("fuelwatch")
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
