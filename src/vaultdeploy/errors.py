"""Error kinds raised by the deploy pipeline.

Every fatal condition aborts the run by raising a DeployError subclass. The
CLI layer is the only place that turns them into exit codes.
"""

from dataclasses import dataclass

EXIT_OK = 0
EXIT_FAILURE = 1


@dataclass
class DeployError(Exception):
    """Base error class for deploy failures."""

    message: str
    exit_code: int = EXIT_FAILURE
    detail: str | None = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


@dataclass
class ConfigError(DeployError):
    """Configuration file or value is invalid."""

    message: str = "Invalid configuration"


@dataclass
class UnsupportedPlatform(DeployError):
    """No supported package manager is available to install a tool."""

    message: str = "Unsupported package manager"
    tool: str = ""


@dataclass
class DependencyInstallFailed(DeployError):
    """A required tool could not be installed."""

    message: str = "Dependency installation failed"
    tool: str = ""


@dataclass
class ReauthenticationRequired(DeployError):
    """Docker was just installed; group membership needs a fresh login.

    Not a failure: the run stops here and exits 0.
    """

    message: str = "Docker installed, log out and back in, then re-run"
    exit_code: int = EXIT_OK


@dataclass
class CredentialGenerationFailed(DeployError):
    """Salt, token or hash pipeline produced malformed output."""

    message: str = "Admin token generation failed"


@dataclass
class UserDidNotConfirmCredential(DeployError):
    """Operator did not acknowledge recording the admin token."""

    message: str = "Admin token was not confirmed as recorded, re-run and record it"


@dataclass
class CertificateGenerationFailed(DeployError):
    """TLS certificate issuance failed."""

    message: str = "Certificate generation failed"


@dataclass
class ServiceStartFailed(DeployError):
    """Container runtime refused to bring the service up."""

    message: str = "Failed to start service"


@dataclass
class BackupFailed(DeployError):
    """Backup snapshot could not be created or archived."""

    message: str = "Backup failed"
