"""Shared utilities for CLI commands"""

from __future__ import annotations

import logging
import os

import typer
from rich.console import Console
from rich.logging import RichHandler

from chartwright.errors import RenderError

console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the chartwright CLI.

    Log levels:
    - Normal: Only warnings/errors shown
    - Verbose (-v): INFO level - values files merged, templates rendered
    - Debug (CHARTWRIGHT_DEBUG=1): DEBUG level - parsing, registration, lookups
    """
    debug = bool(os.environ.get("CHARTWRIGHT_DEBUG"))
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=debug,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("chartwright")
    logger.setLevel(level)
    logger.handlers = [handler]
    logger.propagate = False


def exit_with_error(error: Exception) -> None:
    """Print `error` to stderr and exit 1"""
    message = error.describe() if isinstance(error, RenderError) else str(error)
    typer.secho(f"Error: {message}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)
