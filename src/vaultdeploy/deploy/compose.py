"""Docker Compose generation for the vault service.

The descriptor is rebuilt from configuration on every run, never patched,
so it always matches the current settings. Secrets and certificates are
referenced by path and reused unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..config import DeployConfig

# Fixed HTTPS port inside the container
INTERNAL_PORT = 443

# Mount points inside the container
DATA_MOUNT = "/data"
SSL_MOUNT = "/ssl"


def health_url(port: int = INTERNAL_PORT) -> str:
    """Health endpoint as seen from inside the container."""
    return f"https://localhost:{port}/health"


class DescriptorGenerator:
    """Generate docker-compose.yml."""

    def render(self, config: DeployConfig) -> str:
        """Render the descriptor as YAML text.

        Args:
            config: Deployment configuration.

        Returns:
            Descriptor text; identical configuration yields identical text.
        """
        return yaml.dump(
            self._build_compose_dict(config),
            default_flow_style=False,
            sort_keys=False,
        )

    def write(self, config: DeployConfig) -> Path:
        """Render and overwrite the descriptor file.

        Returns:
            Path to the written docker-compose.yml.
        """
        config.descriptor_file.parent.mkdir(parents=True, exist_ok=True)
        config.descriptor_file.write_text(self.render(config))
        return config.descriptor_file

    def _build_compose_dict(self, config: DeployConfig) -> dict[str, Any]:
        """Build the docker-compose structure."""
        tls = f'{{certs="{SSL_MOUNT}/cert.pem",key="{SSL_MOUNT}/key.pem"}}'

        service: dict[str, Any] = {
            "image": config.image,
            "container_name": config.app_name,
            "restart": "always",
            "security_opt": ["no-new-privileges:true"],
            "env_file": [str(config.env_file)],
            "environment": [
                "ENABLE_HTTPS=true",
                f"ROCKET_TLS={tls}",
                f"ROCKET_PORT={INTERNAL_PORT}",
            ],
            "volumes": [
                f"{config.data_dir}:{DATA_MOUNT}",
                f"{config.ssl_dir}:{SSL_MOUNT}",
            ],
            "ports": [f"{config.port}:{INTERNAL_PORT}"],
            "healthcheck": {
                "test": [
                    "CMD",
                    "curl",
                    "-k",
                    "--silent",
                    "--show-error",
                    "--fail",
                    health_url(),
                ],
                "interval": "30s",
                "timeout": "10s",
                "retries": 3,
            },
        }

        return {"services": {config.app_name: service}}


class VolumeManager:
    """Create the deployment directories with owner-only permissions."""

    def __init__(self, config: DeployConfig):
        self.directories = [config.base_dir, config.data_dir, config.ssl_dir]

    def setup_directories(self) -> list[Path]:
        """Create required directories and restrict them to the owner.

        Returns:
            List of directory paths.
        """
        for directory in self.directories:
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            directory.chmod(0o700)

        return self.directories
