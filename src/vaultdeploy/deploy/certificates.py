"""Self-signed TLS certificate for the vault's built-in HTTPS listener."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..config import DeployConfig
from ..errors import CertificateGenerationFailed
from ..shared.logging import get_logger
from ..shared.process import CommandResult, run_command

log = get_logger(__name__)

RSA_KEY_BITS = 4096


@dataclass(frozen=True)
class CertificateRequest:
    """Parameters for issuing a self-signed certificate."""

    key_file: Path
    cert_file: Path
    subject: str
    validity_days: int


@dataclass(frozen=True)
class CertificateMaterial:
    """Key and certificate written to disk."""

    key_file: Path
    cert_file: Path
    subject: str
    validity_days: int


class CertIssuer(Protocol):
    """TLS issuance capability: request -> key and certificate files."""

    def __call__(self, request: CertificateRequest) -> CommandResult: ...


class OpenSSLIssuer:
    """Issue certificates with ``openssl req -x509``."""

    def __init__(self, runner: Callable[..., CommandResult] = run_command):
        self.runner = runner

    def __call__(self, request: CertificateRequest) -> CommandResult:
        return self.runner(
            [
                "openssl",
                "req",
                "-x509",
                "-newkey",
                f"rsa:{RSA_KEY_BITS}",
                "-nodes",
                "-keyout",
                str(request.key_file),
                "-out",
                str(request.cert_file),
                "-days",
                str(request.validity_days),
                "-subj",
                f"/CN={request.subject}",
            ]
        )


class CertificateStore:
    """Create the key/certificate pair exactly once."""

    def __init__(self, config: DeployConfig, issuer: CertIssuer):
        self.key_file = config.key_file
        self.cert_file = config.cert_file
        self.subject = config.domain
        self.validity_days = config.cert_validity_days
        self.issuer = issuer

    def exists(self) -> bool:
        return self.key_file.exists() and self.cert_file.exists()

    def ensure_certificate(self) -> CertificateMaterial | None:
        """Issue a certificate unless both files are already present.

        Returns:
            CertificateMaterial when a certificate was issued, None otherwise.

        Raises:
            CertificateGenerationFailed: The issuer failed.
        """
        if self.exists():
            log.info("certificate.exists", path=str(self.cert_file))
            return None

        request = CertificateRequest(
            key_file=self.key_file,
            cert_file=self.cert_file,
            subject=self.subject,
            validity_days=self.validity_days,
        )
        log.info("certificate.issuing", subject=self.subject, days=self.validity_days)
        result = self.issuer(request)
        if not result.ok:
            raise CertificateGenerationFailed(
                "Certificate generation failed, check that openssl works",
                detail=result.diagnostic,
            )
        if not self.exists():
            raise CertificateGenerationFailed(
                "Certificate generation produced no files",
                detail=f"expected {self.key_file} and {self.cert_file}",
            )

        for path in (self.key_file, self.cert_file):
            path.chmod(0o600)

        log.info("certificate.generated", path=str(self.cert_file))
        return CertificateMaterial(
            key_file=self.key_file,
            cert_file=self.cert_file,
            subject=self.subject,
            validity_days=self.validity_days,
        )
