"""Deployment configuration.

A single immutable DeployConfig is resolved at startup and handed to every
component. Values come from (highest to lowest precedence):

1. Explicit overrides (CLI flags)
2. Environment variables (VAULTDEPLOY_<KEY>)
3. Config file (~/.vaultdeploy/config.yaml or --config)
4. Defaults
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .shared.paths import (
    BACKUP_DIR_NAME,
    CERT_FILE_NAME,
    CONFIG_FILE,
    DESCRIPTOR_FILE_NAME,
    ENV_FILE_NAME,
    KEY_FILE_NAME,
    default_base_dir,
)

# Default values
DEFAULT_APP_NAME = "vaultwarden"
DEFAULT_IMAGE = "vaultwarden/server:latest"
DEFAULT_PORT = 8443
DEFAULT_DOMAIN = "localhost"

ENV_PREFIX = "VAULTDEPLOY_"
HEALTH_PROBES = ("exec", "https")

_CONTAINER_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")


@dataclass(frozen=True)
class DeployConfig:
    """Resolved deployment configuration."""

    app_name: str = DEFAULT_APP_NAME
    base_dir: Path = field(default_factory=lambda: default_base_dir(DEFAULT_APP_NAME))
    data_dir: Path | None = None
    ssl_dir: Path | None = None
    port: int = DEFAULT_PORT
    domain: str = DEFAULT_DOMAIN
    image: str = DEFAULT_IMAGE
    signups_allowed: bool = True
    invitations_allowed: bool = True
    cert_validity_days: int = 3650
    backup_retention_days: int = 30
    health_max_attempts: int = 10
    health_interval_seconds: float = 1.0
    health_probe: str = "exec"
    probe_host: str = "localhost"

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        # data/ssl directories live under base_dir unless set explicitly
        if self.data_dir is None:
            object.__setattr__(self, "data_dir", self.base_dir / "data")
        if self.ssl_dir is None:
            object.__setattr__(self, "ssl_dir", self.base_dir / "ssl")

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    @property
    def env_file(self) -> Path:
        return self.base_dir / ENV_FILE_NAME

    @property
    def descriptor_file(self) -> Path:
        return self.base_dir / DESCRIPTOR_FILE_NAME

    @property
    def backup_dir(self) -> Path:
        return self.base_dir / BACKUP_DIR_NAME

    @property
    def key_file(self) -> Path:
        return self.ssl_dir / KEY_FILE_NAME

    @property
    def cert_file(self) -> Path:
        return self.ssl_dir / CERT_FILE_NAME

    @property
    def public_url(self) -> str:
        """URL the vault advertises to clients (DOMAIN in the env file)."""
        return f"https://{self.domain}:{self.port}"


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _to_path(value: Any) -> Path:
    return Path(str(value)).expanduser()


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "app_name": str,
    "base_dir": _to_path,
    "data_dir": _to_path,
    "ssl_dir": _to_path,
    "port": int,
    "domain": str,
    "image": str,
    "signups_allowed": _to_bool,
    "invitations_allowed": _to_bool,
    "cert_validity_days": int,
    "backup_retention_days": int,
    "health_max_attempts": int,
    "health_interval_seconds": float,
    "health_probe": str,
    "probe_host": str,
}

CONFIG_KEYS = tuple(f.name for f in fields(DeployConfig) if not f.name.startswith("_"))


def _convert(key: str, value: Any, source: str) -> Any:
    try:
        return _CONVERTERS[key](value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for '{key}' from {source}", detail=str(exc)) from exc


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse config file {path}", detail=str(exc)) from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}", detail=str(exc)) from exc

    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping")

    unknown = sorted(set(data) - set(CONFIG_KEYS))
    if unknown:
        raise ConfigError(f"Unknown keys in {path}", detail=", ".join(map(str, unknown)))
    return dict(data)


def _validate(values: Mapping[str, Any]) -> None:
    app_name = values.get("app_name", DEFAULT_APP_NAME)
    if not _CONTAINER_NAME.match(app_name):
        raise ConfigError(f"app_name '{app_name}' is not a valid container name")

    port = values.get("port", DEFAULT_PORT)
    if not 1 <= port <= 65535:
        raise ConfigError(f"port {port} is out of range (1-65535)")

    if not str(values.get("domain", DEFAULT_DOMAIN)).strip():
        raise ConfigError("domain must not be empty")

    if values.get("health_probe", "exec") not in HEALTH_PROBES:
        raise ConfigError(
            f"health_probe must be one of {', '.join(HEALTH_PROBES)}",
            detail=str(values.get("health_probe")),
        )
    if values.get("health_max_attempts", 1) < 1:
        raise ConfigError("health_max_attempts must be at least 1")
    if values.get("health_interval_seconds", 0.0) < 0:
        raise ConfigError("health_interval_seconds must not be negative")
    if values.get("backup_retention_days", 1) < 1:
        raise ConfigError("backup_retention_days must be at least 1")
    if values.get("cert_validity_days", 1) < 1:
        raise ConfigError("cert_validity_days must be at least 1")


def load_config(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> DeployConfig:
    """Load deployment configuration.

    Args:
        config_path: Explicit config file. Must exist when given.
        overrides: Values from CLI flags; ``None`` entries are ignored.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        DeployConfig with values and sources.

    Raises:
        ConfigError: On unreadable files, unknown keys or invalid values.
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    sources: dict[str, str] = {key: "default" for key in CONFIG_KEYS}

    # Load from config file
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        file_path: Path | None = config_path
    else:
        file_path = CONFIG_FILE if CONFIG_FILE.exists() else None

    if file_path is not None:
        for key, value in _read_config_file(file_path).items():
            values[key] = _convert(key, value, "config file")
            sources[key] = "config file"

    # Override with environment variables
    for key in CONFIG_KEYS:
        env_value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if env_value:
            values[key] = _convert(key, env_value, "environment")
            sources[key] = "environment"

    # Override with CLI flags
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in CONFIG_KEYS:
            raise ConfigError(f"Unknown config key '{key}'")
        values[key] = _convert(key, value, "command line")
        sources[key] = "command line"

    # base_dir follows app_name unless given
    if "base_dir" not in values and "app_name" in values:
        values["base_dir"] = default_base_dir(values["app_name"])

    _validate(values)
    return DeployConfig(**values, _sources=sources)
