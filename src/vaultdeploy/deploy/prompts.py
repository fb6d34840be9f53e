"""Operator acknowledgement of the one-time admin token."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Protocol

import click

from ..shared import console


class ConfirmationPrompt(Protocol):
    """Show a secret once and ask the operator to confirm it was recorded."""

    def acknowledge_secret(self, secret: str, record_path: Path) -> bool: ...


class TerminalPrompt:
    """Interactive prompt on the controlling terminal."""

    def acknowledge_secret(self, secret: str, record_path: Path) -> bool:
        console.warn(f"Admin token generated, its hash will be stored in {record_path}")
        console.warn("Record the raw token below. It is shown only once and opens the admin page:")
        console.secret(secret)
        return click.confirm("Token recorded?", default=False)


class NonInteractivePrompt:
    """Never confirms, so an unattended run cannot leave an unrecorded token."""

    def acknowledge_secret(self, secret: str, record_path: Path) -> bool:
        console.warn("Admin token needs interactive confirmation, re-run from a terminal")
        return False


def default_prompt(non_interactive: bool = False) -> ConfirmationPrompt:
    """Pick the terminal prompt only when stdin is a TTY."""
    if non_interactive or not sys.stdin.isatty():
        return NonInteractivePrompt()
    return TerminalPrompt()
