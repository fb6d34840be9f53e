"""vaultdeploy - bootstrap and back up a self-hosted Vaultwarden."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("vaultdeploy")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .main import main

__all__ = ["main", "__version__"]
