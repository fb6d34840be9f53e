"""Default filesystem locations for vaultdeploy."""

from pathlib import Path

# Directory holding the operator's vaultdeploy settings
SETTINGS_DIR = Path.home() / ".vaultdeploy"

# Default settings file, optional
CONFIG_FILE = SETTINGS_DIR / "config.yaml"

# File names inside the deployment base directory
ENV_FILE_NAME = ".env"
DESCRIPTOR_FILE_NAME = "docker-compose.yml"
BACKUP_DIR_NAME = "backups"

# File names inside the certificate directory
KEY_FILE_NAME = "key.pem"
CERT_FILE_NAME = "cert.pem"


def default_base_dir(app_name: str) -> Path:
    """Get the default deployment directory for an application.

    Args:
        app_name: Application name (e.g., "vaultwarden")

    Returns:
        ``~/<app_name>``
    """
    return Path.home() / app_name
