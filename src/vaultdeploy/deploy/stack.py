"""Service lifecycle through docker compose.

ComposeRuntime is the only place that knows the docker compose command
line; ServiceController turns its results into the deploy's error model.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from ..config import DeployConfig
from ..errors import BackupFailed, ServiceStartFailed
from ..shared.logging import get_logger
from ..shared.process import CommandResult, run_command
from .health import (
    ExecHealthProbe,
    HealthCheckResult,
    HealthPoller,
    HealthProbe,
    HttpsHealthProbe,
)

log = get_logger(__name__)


class StackState(Enum):
    """State of the compose stack."""

    NOT_FOUND = "not_found"  # No compose file
    STOPPED = "stopped"  # Compose file exists, service down
    RUNNING = "running"


@dataclass
class StackStatus:
    """Status of the compose stack."""

    state: StackState
    running_services: list[str] = field(default_factory=list)
    stopped_services: list[str] = field(default_factory=list)
    message: str = ""


class ServiceRuntime(Protocol):
    """Container runtime capability for a single descriptor."""

    def up(self) -> CommandResult: ...

    def down(self) -> CommandResult: ...

    def ps(self) -> CommandResult: ...

    def exec(
        self, service: str, args: Sequence[str], timeout: float | None = None
    ) -> CommandResult: ...


class ComposeRuntime:
    """Run ``docker compose`` against a descriptor file."""

    def __init__(
        self,
        compose_file: Path,
        runner: Callable[..., CommandResult] = run_command,
    ):
        self.compose_file = compose_file
        self.compose_dir = compose_file.parent
        self.runner = runner

    def _compose(self, *args: str, timeout: float | None = None) -> CommandResult:
        return self.runner(
            ["docker", "compose", "-f", str(self.compose_file), *args],
            cwd=self.compose_dir,
            timeout=timeout,
        )

    def up(self) -> CommandResult:
        return self._compose("up", "-d")

    def down(self) -> CommandResult:
        return self._compose("down")

    def ps(self) -> CommandResult:
        return self._compose("ps", "--format", "json")

    def exec(
        self, service: str, args: Sequence[str], timeout: float | None = None
    ) -> CommandResult:
        return self._compose("exec", "-T", service, *args, timeout=timeout)


def _parse_ps_output(output: str) -> list[dict[str, Any]]:
    """Parse ``ps --format json``: a JSON array or one object per line."""
    output = output.strip()
    if not output:
        return []
    if output.startswith("["):
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            return []
        return [s for s in data if isinstance(s, dict)]

    services = []
    for line in output.splitlines():
        if line.strip():
            try:
                services.append(json.loads(line))
            except json.JSONDecodeError:
                log.debug("stack.ps_unparsed", line=line)
    return services


class ServiceController:
    """Start, stop, probe and exec into the vault service."""

    def __init__(
        self,
        config: DeployConfig,
        runtime: ServiceRuntime | None = None,
        probe: HealthProbe | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        """Initialize the controller.

        Args:
            config: Deployment configuration.
            runtime: Container runtime (default: docker compose on the descriptor).
            probe: Health probe (default: chosen by ``config.health_probe``).
            sleep: Sleep used between health attempts (default: time.sleep).
        """
        self.config = config
        self.service = config.app_name
        self.descriptor_file = config.descriptor_file
        self.runtime = runtime or ComposeRuntime(config.descriptor_file)
        self.probe = probe or self._default_probe()
        self.sleep = sleep

    def _default_probe(self) -> HealthProbe:
        if self.config.health_probe == "https":
            return HttpsHealthProbe(
                f"https://{self.config.probe_host}:{self.config.port}/health"
            )
        return ExecHealthProbe(self.runtime, self.service)

    def start(self) -> None:
        """Bring the service up in detached mode.

        Raises:
            ServiceStartFailed: With the runtime's error output.
        """
        if not self.descriptor_file.exists():
            raise ServiceStartFailed(f"No {self.descriptor_file.name} found at {self.descriptor_file}")

        log.info("service.starting", service=self.service)
        result = self.runtime.up()
        if not result.ok:
            raise ServiceStartFailed(detail=result.diagnostic)
        log.info("service.started", service=self.service)

    def stop(self) -> tuple[bool, str]:
        """Stop and remove the service containers.

        Returns:
            Tuple of (success, message).
        """
        if not self.descriptor_file.exists():
            return False, f"No {self.descriptor_file.name} found"

        result = self.runtime.down()
        if not result.ok:
            return False, f"Failed to stop service: {result.diagnostic}"
        return True, "Service stopped"

    def status(self) -> StackStatus:
        """Get current stack status."""
        if not self.descriptor_file.exists():
            return StackStatus(StackState.NOT_FOUND, message=f"No {self.descriptor_file.name} found")

        result = self.runtime.ps()
        if not result.ok:
            return StackStatus(StackState.STOPPED, message=result.diagnostic)

        services = _parse_ps_output(result.stdout)
        if not services:
            return StackStatus(StackState.STOPPED, message="No services found")

        running = [
            s.get("Service", s.get("Name", "unknown"))
            for s in services
            if s.get("State") == "running"
        ]
        stopped = [
            s.get("Service", s.get("Name", "unknown"))
            for s in services
            if s.get("State") != "running"
        ]
        state = StackState.RUNNING if running else StackState.STOPPED
        return StackStatus(state, running, stopped)

    def poll_healthy(
        self,
        max_attempts: int | None = None,
        interval: float | None = None,
        on_attempt: Callable[[int, int, str | None], None] | None = None,
    ) -> HealthCheckResult:
        """Poll until the service reports healthy or attempts run out.

        Never raises on an unhealthy service; check ``healthy`` on the result.
        """
        poller_args: dict[str, Any] = {
            "max_attempts": max_attempts or self.config.health_max_attempts,
            "interval_seconds": (
                self.config.health_interval_seconds if interval is None else interval
            ),
        }
        if self.sleep is not None:
            poller_args["sleep"] = self.sleep

        result = HealthPoller(**poller_args).wait_for_healthy(self.probe, on_attempt)
        log.info(
            "service.health",
            healthy=result.healthy,
            attempts=result.attempts,
            elapsed=round(result.elapsed_seconds, 2),
        )
        return result

    def exec(self, args: Sequence[str]) -> CommandResult:
        """Run a command inside the service container."""
        return self.runtime.exec(self.service, args)

    def exec_backup(self, args: Sequence[str]) -> CommandResult:
        """Run a backup command inside the service container.

        Raises:
            BackupFailed: When the command exits non-zero.
        """
        result = self.exec(args)
        if not result.ok:
            raise BackupFailed("Backup command failed inside the container", detail=result.diagnostic)
        return result
