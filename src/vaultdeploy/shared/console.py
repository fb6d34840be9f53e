"""Marked operator messages.

Logging goes through structlog; these helpers are for what the operator is
meant to read while a deploy runs. Messages often carry raw tool output, so
they are printed as plain text with a style, never parsed as markup.
"""

from rich.console import Console

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def info(message: str) -> None:
    """Print a progress message."""
    console.print(f"• {message}", style="green", markup=False, emoji=False)


def warn(message: str) -> None:
    """Print a warning."""
    console.print(f"! {message}", style="yellow", markup=False, emoji=False)


def error(message: str) -> None:
    """Print a fatal error to stderr."""
    err_console.print(f"✗ {message}", style="red", markup=False, emoji=False)


def secret(value: str) -> None:
    """Print a secret value once, in bold, without markup interpretation."""
    console.print(value, style="bold", markup=False, emoji=False, soft_wrap=True)
