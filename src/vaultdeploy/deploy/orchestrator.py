"""Bootstrap pipeline and backup dispatch.

The bootstrap is a linear sequence of idempotent steps. Any step that fails
raises and ends the run; artifacts written by earlier steps stay on disk and
are reused by the next run.
"""

from __future__ import annotations

import socket
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from ..config import DeployConfig
from ..shared.logging import get_logger
from .backups import BackupManager, BackupRecord
from .certificates import CertIssuer, CertificateStore, OpenSSLIssuer
from .compose import DescriptorGenerator, VolumeManager
from .credentials import Argon2Hasher, Credential, HashFunction, SecretStore
from .health import HealthCheckResult
from .prerequisites import DependencyResolver
from .prompts import ConfirmationPrompt, NonInteractivePrompt
from .stack import ServiceController, ServiceRuntime

log = get_logger(__name__)


class BootstrapStep(Enum):
    """Bootstrap steps, in execution order."""

    CHECK_DEPENDENCIES = "check_dependencies"
    INIT_DIRECTORIES = "init_directories"
    ENSURE_CREDENTIAL = "ensure_credential"
    ENSURE_CERTIFICATE = "ensure_certificate"
    RENDER_DESCRIPTOR = "render_descriptor"
    START_SERVICE = "start_service"
    POLL_HEALTH = "poll_health"
    REPORT_SUMMARY = "report_summary"


@dataclass
class DeploymentSummary:
    """What the operator needs after a deploy."""

    access_url: str
    signup_url: str
    admin_url: str
    healthy: bool
    self_signed: bool = True


@dataclass
class BootstrapResult:
    """Result of a bootstrap run."""

    success: bool
    healthy: bool = False
    credential: Credential | None = None
    certificate_created: bool = False
    descriptor_path: Path | None = None
    health: HealthCheckResult | None = None
    summary: DeploymentSummary | None = None
    steps: list[BootstrapStep] = field(default_factory=list)


def primary_ip() -> str:
    """Best guess at the host's LAN address; falls back to loopback."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent for a UDP connect
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()


class Orchestrator:
    """Sequence the deploy components."""

    def __init__(
        self,
        config: DeployConfig,
        resolver: DependencyResolver | None = None,
        hasher: HashFunction | None = None,
        issuer: CertIssuer | None = None,
        prompt: ConfirmationPrompt | None = None,
        runtime: ServiceRuntime | None = None,
        controller: ServiceController | None = None,
        host_ip: Callable[[], str] = primary_ip,
        on_step: Callable[[BootstrapStep], None] | None = None,
        on_health_attempt: Callable[[int, int, str | None], None] | None = None,
    ):
        self.config = config
        self.resolver = resolver or DependencyResolver()
        self.secret_store = SecretStore(
            config, hasher or Argon2Hasher(), prompt or NonInteractivePrompt()
        )
        self.cert_store = CertificateStore(config, issuer or OpenSSLIssuer())
        self.volumes = VolumeManager(config)
        self.generator = DescriptorGenerator()
        self.controller = controller or ServiceController(config, runtime=runtime)
        self.backups = BackupManager(config, self.controller)
        self.host_ip = host_ip
        self.on_step = on_step
        self.on_health_attempt = on_health_attempt

    def _enter(self, step: BootstrapStep, result: BootstrapResult) -> None:
        log.info("bootstrap.step", step=step.value)
        result.steps.append(step)
        if self.on_step:
            self.on_step(step)

    def run_bootstrap(self) -> BootstrapResult:
        """Run the full bootstrap pipeline.

        Returns:
            BootstrapResult; ``healthy`` is False when health was not confirmed.

        Raises:
            DeployError: Any fatal step failure, unchanged.
        """
        result = BootstrapResult(success=False)

        self._enter(BootstrapStep.CHECK_DEPENDENCIES, result)
        self.resolver.ensure_all()

        self._enter(BootstrapStep.INIT_DIRECTORIES, result)
        self.volumes.setup_directories()

        self._enter(BootstrapStep.ENSURE_CREDENTIAL, result)
        result.credential = self.secret_store.ensure_credential()

        self._enter(BootstrapStep.ENSURE_CERTIFICATE, result)
        result.certificate_created = self.cert_store.ensure_certificate() is not None

        self._enter(BootstrapStep.RENDER_DESCRIPTOR, result)
        result.descriptor_path = self.generator.write(self.config)

        self._enter(BootstrapStep.START_SERVICE, result)
        self.controller.start()

        self._enter(BootstrapStep.POLL_HEALTH, result)
        result.health = self.controller.poll_healthy(on_attempt=self.on_health_attempt)
        result.healthy = result.health.healthy

        self._enter(BootstrapStep.REPORT_SUMMARY, result)
        result.summary = self.summarize(result.healthy)
        result.success = True
        return result

    def summarize(self, healthy: bool) -> DeploymentSummary:
        base = f"https://{self.host_ip()}:{self.config.port}"
        return DeploymentSummary(
            access_url=base,
            signup_url=f"{base}/#/signup",
            admin_url=f"{base}/admin",
            healthy=healthy,
        )

    def run_backup(self, now: datetime | None = None) -> BackupRecord:
        """Back up the running service, skipping every bootstrap step."""
        return self.backups.backup(now)
