"""Deployment state detection.

Reports which bootstrap artifacts exist and whether the service runs, so an
operator can see where a re-run would pick up.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import DeployConfig
from .backups import BACKUP_GLOB
from .stack import ServiceController, StackState


@dataclass
class DeploymentState:
    """Current state of a deployment."""

    has_credential: bool = False
    has_certificate: bool = False
    has_descriptor: bool = False
    backup_count: int = 0
    stack_state: StackState = StackState.NOT_FOUND
    running_services: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def bootstrapped(self) -> bool:
        return self.has_credential and self.has_certificate and self.has_descriptor


class DeploymentStateManager:
    """Detect deployment state for a configuration."""

    def __init__(self, config: DeployConfig, controller: ServiceController | None = None):
        self.config = config
        self.controller = controller or ServiceController(config)

    def detect_state(self) -> DeploymentState:
        state = DeploymentState(
            has_credential=self.config.env_file.exists(),
            has_certificate=self.config.key_file.exists() and self.config.cert_file.exists(),
            has_descriptor=self.config.descriptor_file.exists(),
        )
        if self.config.backup_dir.is_dir():
            state.backup_count = len(list(self.config.backup_dir.glob(BACKUP_GLOB)))

        if state.has_descriptor:
            stack_status = self.controller.status()
            state.stack_state = stack_status.state
            state.running_services = stack_status.running_services
            state.message = stack_status.message

        return state
