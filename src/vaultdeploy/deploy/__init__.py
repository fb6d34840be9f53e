"""Deploy package for the self-hosted vault.

This package provides the `vaultdeploy` pipeline which:
1. Ensures Docker, Compose, openssl and argon2 are installed
2. Generates the admin token record and TLS certificate once
3. Regenerates docker-compose.yml from configuration
4. Starts the service and waits for its health endpoint
5. Backs up the database with retention when run in backup mode
"""

from .backups import BackupManager, BackupRecord
from .certificates import (
    CertificateMaterial,
    CertificateRequest,
    CertificateStore,
    CertIssuer,
    OpenSSLIssuer,
)
from .compose import INTERNAL_PORT, DescriptorGenerator, VolumeManager
from .credentials import Argon2Hasher, Credential, HashFunction, SecretStore
from .health import (
    ExecHealthProbe,
    HealthCheckResult,
    HealthPoller,
    HttpsHealthProbe,
    ProbeResult,
)
from .orchestrator import BootstrapResult, BootstrapStep, DeploymentSummary, Orchestrator
from .prerequisites import (
    REQUIRED_TOOLS,
    DependencyResolver,
    DependencyStatus,
    PackageManager,
    ToolRequirement,
)
from .prompts import ConfirmationPrompt, NonInteractivePrompt, TerminalPrompt, default_prompt
from .stack import ComposeRuntime, ServiceController, ServiceRuntime, StackState, StackStatus
from .state import DeploymentState, DeploymentStateManager

__all__ = [
    # Prerequisites
    "DependencyResolver",
    "DependencyStatus",
    "PackageManager",
    "ToolRequirement",
    "REQUIRED_TOOLS",
    # Credentials
    "Argon2Hasher",
    "Credential",
    "HashFunction",
    "SecretStore",
    "ConfirmationPrompt",
    "TerminalPrompt",
    "NonInteractivePrompt",
    "default_prompt",
    # Certificates
    "CertIssuer",
    "CertificateMaterial",
    "CertificateRequest",
    "CertificateStore",
    "OpenSSLIssuer",
    # Compose generation
    "DescriptorGenerator",
    "VolumeManager",
    "INTERNAL_PORT",
    # Service lifecycle and health
    "ComposeRuntime",
    "ServiceController",
    "ServiceRuntime",
    "StackState",
    "StackStatus",
    "HealthPoller",
    "HealthCheckResult",
    "ProbeResult",
    "ExecHealthProbe",
    "HttpsHealthProbe",
    # Backups
    "BackupManager",
    "BackupRecord",
    # State
    "DeploymentState",
    "DeploymentStateManager",
    # Pipeline
    "Orchestrator",
    "BootstrapResult",
    "BootstrapStep",
    "DeploymentSummary",
]
