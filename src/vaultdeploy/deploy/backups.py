"""SQLite snapshots of the running vault with age-based retention.

The snapshot is taken in place with SQLite's online backup, then moved out
of the data directory. A crash between the two steps leaves at most a stray
snapshot next to the live database.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

from ..config import DeployConfig
from ..errors import BackupFailed
from ..shared.logging import get_logger
from .compose import DATA_MOUNT
from .stack import ServiceController

log = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
BACKUP_GLOB = "backup_*.sqlite3"
DATABASE_NAME = "db.sqlite3"

_BACKUP_NAME = re.compile(r"^backup_(\d{8}_\d{6})\.sqlite3$")


@dataclass
class BackupRecord:
    """A completed backup run."""

    created_at: datetime
    source_path: Path
    archived_path: Path
    pruned: list[Path] = field(default_factory=list)


def backup_name(when: datetime) -> str:
    return f"backup_{when.strftime(TIMESTAMP_FORMAT)}.sqlite3"


def backup_timestamp(path: Path) -> datetime:
    """When a backup was taken: from its name, else its modification time."""
    match = _BACKUP_NAME.match(path.name)
    if match:
        try:
            return datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
        except ValueError:
            pass
    return datetime.fromtimestamp(path.stat().st_mtime)


class BackupManager:
    """Create a snapshot through the running service and prune old ones."""

    def __init__(self, config: DeployConfig, controller: ServiceController):
        self.data_dir = config.data_dir
        self.backup_dir = config.backup_dir
        self.descriptor_file = config.descriptor_file
        self.retention = timedelta(days=config.backup_retention_days)
        self.controller = controller

    def ensure_backup_dir(self) -> Path:
        self.backup_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        return self.backup_dir

    def backup(self, now: datetime | None = None) -> BackupRecord:
        """Snapshot the database, archive it and apply retention.

        Args:
            now: Backup time (default: current local time).

        Returns:
            BackupRecord including any pruned files.

        Raises:
            BackupFailed: Not bootstrapped, snapshot failed or could not be moved.
        """
        now = now or datetime.now()
        if not self.descriptor_file.exists():
            raise BackupFailed(
                "No deployment found, run bootstrap first",
                detail=str(self.descriptor_file),
            )
        self.ensure_backup_dir()

        name = backup_name(now)
        container_path = f"{DATA_MOUNT}/{name}"
        log.info("backup.snapshot", name=name)
        self.controller.exec_backup(
            ["sqlite3", f"{DATA_MOUNT}/{DATABASE_NAME}", f".backup {container_path}"]
        )

        source = self.data_dir / name
        if not source.exists():
            raise BackupFailed("Snapshot not found in data directory", detail=str(source))

        archived = self.backup_dir / name
        try:
            shutil.move(str(source), str(archived))
        except OSError as exc:
            raise BackupFailed(f"Could not move snapshot to {self.backup_dir}", detail=str(exc)) from exc
        log.info("backup.archived", path=str(archived))

        pruned = self.prune(now)
        return BackupRecord(created_at=now, source_path=source, archived_path=archived, pruned=pruned)

    def prune(self, now: datetime | None = None) -> list[Path]:
        """Delete backups older than the retention window.

        Returns:
            Paths that were deleted.
        """
        now = now or datetime.now()
        cutoff = now - self.retention
        pruned = []
        for path in sorted(self.backup_dir.glob(BACKUP_GLOB)):
            if backup_timestamp(path) < cutoff:
                path.unlink()
                pruned.append(path)
                log.info("backup.pruned", path=str(path))
        return pruned
