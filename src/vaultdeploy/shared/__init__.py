"""Shared modules for vaultdeploy.

Logging, operator console output, default paths and the external
process wrapper used by every deploy component.
"""

from .logging import configure_logging, get_logger, level_for_verbosity
from .paths import CONFIG_FILE, SETTINGS_DIR, default_base_dir
from .process import CommandResult, run_command

__all__ = [
    # Paths
    "SETTINGS_DIR",
    "CONFIG_FILE",
    "default_base_dir",
    # Logging
    "configure_logging",
    "get_logger",
    "level_for_verbosity",
    # Processes
    "CommandResult",
    "run_command",
]
