"""Host dependency detection and installation.

Ensures the tools the deploy shells out to are installed: Docker, the
Compose plugin, openssl and argon2. Missing tools are installed with the
host package manager; Docker itself uses the upstream convenience script.
"""

from __future__ import annotations

import getpass
import os
import shutil
import tempfile
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..errors import DependencyInstallFailed, ReauthenticationRequired, UnsupportedPlatform
from ..shared.logging import get_logger
from ..shared.process import CommandResult, run_command

log = get_logger(__name__)

DOCKER_INSTALL_URL = "https://get.docker.com"

Runner = Callable[[Sequence[str]], CommandResult]


class DependencyStatus(Enum):
    """Outcome of ensuring one tool."""

    PRESENT = "present"
    INSTALLED = "installed"  # Installed during this run
    FAILED = "failed"


@dataclass(frozen=True)
class ToolRequirement:
    """A tool the deploy needs on the host."""

    name: str
    binary: str | None = None  # Present when found on PATH
    probe: tuple[str, ...] = ()  # Present when this command exits 0
    package: str | None = None  # Package name for apt-get/dnf/yum


DOCKER = ToolRequirement("docker", binary="docker")
COMPOSE = ToolRequirement(
    "compose",
    probe=("docker", "compose", "version"),
    package="docker-compose-plugin",
)
OPENSSL = ToolRequirement("openssl", binary="openssl", package="openssl")
ARGON2 = ToolRequirement("argon2", binary="argon2", package="argon2")

REQUIRED_TOOLS = (DOCKER, COMPOSE, OPENSSL, ARGON2)


@dataclass(frozen=True)
class PackageManager:
    """Install commands for a supported package manager."""

    name: str
    install: tuple[str, ...]
    refresh: tuple[str, ...] | None = None


# Detection order
PACKAGE_MANAGERS = (
    PackageManager(
        "apt-get",
        install=("apt-get", "install", "-y", "-qq"),
        refresh=("apt-get", "update", "-qq"),
    ),
    PackageManager("dnf", install=("dnf", "install", "-y", "-q")),
    PackageManager("yum", install=("yum", "install", "-y", "-q")),
)


class DependencyResolver:
    """Ensure required tools are present, installing them when missing."""

    def __init__(
        self,
        runner: Runner = run_command,
        which: Callable[[str], str | None] = shutil.which,
        user: str | None = None,
        is_root: bool | None = None,
    ):
        """Initialize resolver.

        Args:
            runner: Executes commands and returns a CommandResult.
            which: PATH lookup.
            user: Account added to the docker group (default: current user).
            is_root: Skip sudo when True (default: effective uid is 0).
        """
        self.runner = runner
        self.which = which
        self.user = user or getpass.getuser()
        self.is_root = (os.geteuid() == 0) if is_root is None else is_root
        self.statuses: dict[str, DependencyStatus] = {}
        self._refreshed = False

    def _sudo(self, *args: str) -> list[str]:
        return list(args) if self.is_root else ["sudo", *args]

    def is_present(self, tool: ToolRequirement) -> bool:
        """Check whether a tool is usable right now."""
        if tool.binary and not self.which(tool.binary):
            return False
        if tool.probe:
            return self.runner(list(tool.probe)).ok
        return True

    def detect_package_manager(self) -> PackageManager | None:
        """Return the first supported package manager found on PATH."""
        for manager in PACKAGE_MANAGERS:
            if self.which(manager.name):
                return manager
        return None

    def ensure(self, tool: ToolRequirement) -> DependencyStatus:
        """Make sure a tool is present.

        Returns:
            PRESENT when nothing had to be done, INSTALLED otherwise.

        Raises:
            ReauthenticationRequired: Docker was installed; the operator must
                log in again before anything else can run.
            UnsupportedPlatform: No supported package manager.
            DependencyInstallFailed: Installation did not succeed.
        """
        if self.is_present(tool):
            self.statuses[tool.name] = DependencyStatus.PRESENT
            log.debug("dependency.present", tool=tool.name)
            return DependencyStatus.PRESENT

        try:
            if tool.package is None:
                self._install_docker()
            else:
                self._install_package(tool)
        except (UnsupportedPlatform, DependencyInstallFailed):
            self.statuses[tool.name] = DependencyStatus.FAILED
            raise

        if not self.is_present(tool):
            self.statuses[tool.name] = DependencyStatus.FAILED
            raise DependencyInstallFailed(
                f"{tool.name} is still unavailable after installation", tool=tool.name
            )

        self.statuses[tool.name] = DependencyStatus.INSTALLED
        log.info("dependency.installed", tool=tool.name)
        return DependencyStatus.INSTALLED

    def ensure_all(
        self, tools: Iterable[ToolRequirement] = REQUIRED_TOOLS
    ) -> dict[str, DependencyStatus]:
        """Ensure every tool in order, stopping at the first failure."""
        for tool in tools:
            self.ensure(tool)
        return dict(self.statuses)

    def _install_package(self, tool: ToolRequirement) -> None:
        manager = self.detect_package_manager()
        if manager is None:
            raise UnsupportedPlatform(
                f"No supported package manager found, install {tool.package} manually",
                tool=tool.name,
            )

        log.info("dependency.installing", tool=tool.name, manager=manager.name)
        if manager.refresh and not self._refreshed:
            refresh = self.runner(self._sudo(*manager.refresh))
            if not refresh.ok:
                raise DependencyInstallFailed(
                    f"{manager.name} could not refresh package lists",
                    detail=refresh.diagnostic,
                    tool=tool.name,
                )
            self._refreshed = True

        result = self.runner(self._sudo(*manager.install, tool.package))
        if not result.ok:
            raise DependencyInstallFailed(
                f"Failed to install {tool.package} with {manager.name}",
                detail=result.diagnostic,
                tool=tool.name,
            )

    def _install_docker(self) -> None:
        log.info("dependency.installing", tool="docker", source=DOCKER_INSTALL_URL)
        with tempfile.TemporaryDirectory() as tmpdir:
            script = Path(tmpdir) / "get-docker.sh"
            steps = [
                ["curl", "-fsSL", DOCKER_INSTALL_URL, "-o", str(script)],
                self._sudo("sh", str(script)),
                self._sudo("usermod", "-aG", "docker", self.user),
            ]
            for args in steps:
                result = self.runner(args)
                if not result.ok:
                    raise DependencyInstallFailed(
                        "Failed to install Docker",
                        detail=result.diagnostic,
                        tool="docker",
                    )

        self.statuses["docker"] = DependencyStatus.INSTALLED
        raise ReauthenticationRequired(
            detail=f"user '{self.user}' was added to the docker group"
        )
