"""Typed wrapper around blocking external commands.

Every external tool call (package manager, openssl, argon2, docker) goes
through :func:`run_command` so callers decide success from the return code,
never from scraping output.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .logging import get_logger

log = get_logger(__name__)

# Conventional shell exit codes for "command not found" and "timed out"
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0

    @property
    def diagnostic(self) -> str:
        """Best available error text: stderr, then stdout, then the exit code."""
        return (
            self.stderr.strip()
            or self.stdout.strip()
            or f"{self.args[0] if self.args else 'command'} exited with status {self.returncode}"
        )


def run_command(
    args: Sequence[str],
    *,
    input: str | None = None,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    Args:
        args: Command and arguments.
        input: Text fed to the command's stdin.
        cwd: Working directory.
        timeout: Seconds before the command is killed.

    Returns:
        CommandResult. A missing executable maps to status 127 and a timeout
        to status 124 instead of raising.
    """
    argv = tuple(str(a) for a in args)
    log.debug("process.run", args=argv[:3], cwd=str(cwd) if cwd else None)
    try:
        completed = subprocess.run(
            list(argv),
            input=input,
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(argv, EXIT_NOT_FOUND, stderr=f"{argv[0]}: command not found")
    except subprocess.TimeoutExpired:
        return CommandResult(argv, EXIT_TIMEOUT, stderr=f"{argv[0]}: timed out after {timeout}s")

    return CommandResult(
        argv,
        completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
