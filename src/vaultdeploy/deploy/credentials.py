"""Admin token generation and the on-disk credential record.

The raw admin token is generated once, shown to the operator once, and only
its argon2id hash is persisted in the env file docker compose reads.
"""

from __future__ import annotations

import base64
import os
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ..config import DeployConfig
from ..errors import (
    CredentialGenerationFailed,
    UserDidNotConfirmCredential,
)
from ..shared.logging import get_logger
from ..shared.process import CommandResult, run_command
from .prompts import ConfirmationPrompt

log = get_logger(__name__)

# argon2id cost parameters. -m is log2 of the memory in KiB (2^16 = 64 MiB).
ARGON2_MEMORY_EXPONENT = 16
ARGON2_TIME_COST = 3
ARGON2_PARALLELISM = 4

TOKEN_BYTES = 48
SALT_BYTES = 32
SALT_LENGTH = 16
MIN_SALT_LENGTH = 8

HASH_PREFIX = "$argon2id$"
ESCAPED_HASH_PREFIX = "$$argon2id$"


class HashFunction(Protocol):
    """Password hashing capability: (secret, salt) -> tagged hash."""

    def __call__(self, secret: str, salt: str) -> CommandResult: ...


class Argon2Hasher:
    """Hash with the ``argon2`` command line utility."""

    def __init__(self, runner: Callable[..., CommandResult] = run_command):
        self.runner = runner

    def __call__(self, secret: str, salt: str) -> CommandResult:
        return self.runner(
            [
                "argon2",
                salt,
                "-e",
                "-id",
                "-m",
                str(ARGON2_MEMORY_EXPONENT),
                "-t",
                str(ARGON2_TIME_COST),
                "-p",
                str(ARGON2_PARALLELISM),
            ],
            input=secret,
        )


@dataclass(frozen=True)
class Credential:
    """Freshly generated admin credential."""

    raw_token: str = field(repr=False)
    encoded_hash: str
    salt: str = field(repr=False)


def generate_salt() -> str:
    """Random printable salt: base64 of 32 random bytes, cut to 16 characters."""
    return base64.b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")[:SALT_LENGTH]


def generate_token() -> str:
    """Random admin token: base64 of 48 random bytes."""
    return base64.b64encode(secrets.token_bytes(TOKEN_BYTES)).decode("ascii")


def escape_hash(encoded_hash: str) -> str:
    """Escape ``$`` so docker compose does not treat it as variable expansion."""
    return encoded_hash.replace("$", "$$")


def is_valid_escaped_hash(escaped: str) -> bool:
    """Check that an escaped hash is in argon2id tagged format."""
    return escaped.startswith(ESCAPED_HASH_PREFIX)


def render_record(encoded_hash: str, config: DeployConfig) -> str:
    """Render the env file holding the admin token hash and deployment flags.

    The tagged hash is escaped here, where it is embedded for docker compose.
    """
    lines = [
        f"ADMIN_TOKEN={escape_hash(encoded_hash)}",
        f"SIGNUPS_ALLOWED={str(config.signups_allowed).lower()}",
        f"INVITATIONS_ALLOWED={str(config.invitations_allowed).lower()}",
        f"DOMAIN={config.public_url}",
    ]
    return "\n".join(lines) + "\n"


class SecretStore:
    """Create the credential record exactly once."""

    def __init__(
        self,
        config: DeployConfig,
        hasher: HashFunction,
        prompt: ConfirmationPrompt,
        token_factory: Callable[[], str] = generate_token,
        salt_factory: Callable[[], str] = generate_salt,
    ):
        self.config = config
        self.path = config.env_file
        self.hasher = hasher
        self.prompt = prompt
        self.token_factory = token_factory
        self.salt_factory = salt_factory

    def exists(self) -> bool:
        return self.path.exists()

    def ensure_credential(self) -> Credential | None:
        """Generate and persist the admin credential if it does not exist yet.

        Returns:
            The new Credential, or None when a record already exists. The raw
            token is never recoverable after this call.

        Raises:
            CredentialGenerationFailed: Malformed salt or hash; nothing written.
            UserDidNotConfirmCredential: Operator declined; nothing written.
        """
        if self.exists():
            log.info("credential.exists", path=str(self.path))
            return None

        credential = self._generate()

        if not self.prompt.acknowledge_secret(credential.raw_token, self.path):
            log.warning("credential.not_confirmed", path=str(self.path))
            raise UserDidNotConfirmCredential()

        self._write(render_record(credential.encoded_hash, self.config))
        log.info("credential.generated", path=str(self.path))
        return credential

    def _generate(self) -> Credential:
        salt = self.salt_factory()
        if len(salt) < MIN_SALT_LENGTH or "\n" in salt or "\r" in salt:
            raise CredentialGenerationFailed(
                detail=f"salt must be at least {MIN_SALT_LENGTH} characters without line breaks"
            )

        token = self.token_factory()
        if not token:
            raise CredentialGenerationFailed(detail="empty token")

        result = self.hasher(token, salt)
        if not result.ok:
            raise CredentialGenerationFailed(
                "argon2 hashing failed, make sure argon2 is installed",
                detail=result.diagnostic,
            )

        encoded = result.stdout.strip()
        if not is_valid_escaped_hash(escape_hash(encoded)):
            raise CredentialGenerationFailed(
                "argon2 output is not an argon2id hash",
                detail=f"expected prefix {HASH_PREFIX}",
            )

        return Credential(raw_token=token, encoded_hash=encoded, salt=salt)

    def _write(self, content: str) -> None:
        path: Path = self.path
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(content)
            # Owner-only regardless of umask
            path.chmod(0o600)
        except FileExistsError as exc:
            raise CredentialGenerationFailed(
                f"{path} appeared while generating the admin token"
            ) from exc
        except OSError as exc:
            raise CredentialGenerationFailed(
                f"Could not write the admin token record to {path}", detail=str(exc)
            ) from exc
