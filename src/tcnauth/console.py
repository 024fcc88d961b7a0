"""Centralized terminal output for tcnauth.

All user-facing CLI output goes through this module.

Key principle: stderr for status/progress, stdout for data.
"""

from __future__ import annotations

from rich.console import Console

from tcnauth.exceptions import AppError

# stderr console for status messages (success/error)
err_console = Console(stderr=True)

# stdout console for data output (JSON, tables)
out_console = Console()


def success(message: str, *, console: Console | None = None) -> None:
    """Print a success message (green checkmark) to stderr."""
    c = console or err_console
    c.print(f"[green]  \u2713 {message}[/green]")


def error(message: str, *, console: Console | None = None) -> None:
    """Print an error message (red X) to stderr."""
    c = console or err_console
    c.print(f"[red]  \u2717 {message}[/red]")


def warn(message: str, *, console: Console | None = None) -> None:
    """Print a warning message (yellow) to stderr."""
    c = console or err_console
    c.print(f"[yellow]  \u26a0 {message}[/yellow]")


def info(message: str, *, console: Console | None = None) -> None:
    """Print an info message (dim) to stderr."""
    c = console or err_console
    c.print(f"[dim]  {message}[/dim]")


def app_error(exc: AppError, *, console: Console | None = None) -> None:
    """Print an ``AppError`` as ``CODE: message``, as a warning when minor."""
    if exc.descriptor.severity == "error":
        error(exc.to_display_string(), console=console)
    else:
        warn(exc.to_display_string(), console=console)
