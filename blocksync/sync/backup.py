# BlockSync Backup Manager
# Timestamped snapshots of the store file, restore and pruning

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from blocksync.errors import BackupError
from blocksync.utils.paths import atomic_copy, ensure_dir

logger = logging.getLogger(__name__)

BACKUP_MARKER = "_Backup_"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S_%f"


@dataclass(frozen=True)
class BackupHandle:
    """An immutable snapshot of a store file."""

    path: Path
    source_path: Path
    created_at: datetime

    @property
    def size(self) -> int:
        return self.path.stat().st_size if self.path.exists() else 0


class BackupManager:
    """
    Creates, lists, restores and prunes store snapshots.

    Snapshots are named "<stem>_Backup_<timestamp><suffix>" and live in
    backup_dir, or beside the store file when no directory is configured.
    """

    def __init__(self, backup_dir: Optional[Path] = None, keep_count: int = 5):
        self.backup_dir = backup_dir
        self.keep_count = keep_count

    def _dir_for(self, source_path: Path) -> Path:
        return self.backup_dir if self.backup_dir is not None else source_path.parent

    def snapshot(self, source_path: Path) -> BackupHandle:
        """
        Create a byte-identical copy of source_path.

        Raises:
            BackupError: If the source is missing or the copy fails.
        """
        if not source_path.is_file():
            raise BackupError(f"Store file not found: {source_path}")

        directory = self._dir_for(source_path)
        created_at = datetime.now()
        name = f"{source_path.stem}{BACKUP_MARKER}{created_at.strftime(BACKUP_TIMESTAMP_FORMAT)}{source_path.suffix}"
        target = directory / name

        counter = 2
        while target.exists():
            target = directory / f"{Path(name).stem}_{counter}{source_path.suffix}"
            counter += 1

        try:
            ensure_dir(directory)
            atomic_copy(source_path, target)
        except OSError as e:
            raise BackupError(f"Failed to create backup of {source_path}: {e}") from e

        logger.info("Backup created: %s -> %s", source_path, target)
        return BackupHandle(path=target, source_path=source_path, created_at=created_at)

    def restore(self, handle: BackupHandle | Path, target_path: Path) -> None:
        """
        Replace target_path with the snapshot's bytes.

        Raises:
            BackupError: If the snapshot is missing or the copy fails.
        """
        backup_path = handle.path if isinstance(handle, BackupHandle) else handle
        if not backup_path.is_file():
            raise BackupError(f"Backup file not found: {backup_path}")

        try:
            atomic_copy(backup_path, target_path)
        except OSError as e:
            raise BackupError(f"Failed to restore {target_path} from {backup_path}: {e}") from e

        logger.info("Backup restored: %s -> %s", backup_path, target_path)

    def list_backups(self, source_path: Path) -> list[BackupHandle]:
        """Snapshots of source_path, newest first."""
        directory = self._dir_for(source_path)
        if not directory.is_dir():
            return []

        pattern = f"{source_path.stem}{BACKUP_MARKER}*{source_path.suffix}"
        found: list[tuple[int, str, Path]] = []
        for path in directory.glob(pattern):
            try:
                found.append((path.stat().st_mtime_ns, path.name, path))
            except OSError as e:
                logger.warning("Cannot stat backup %s: %s", path, e)

        found.sort(reverse=True)
        return [
            BackupHandle(path=path, source_path=source_path, created_at=datetime.fromtimestamp(mtime_ns / 1e9))
            for mtime_ns, _name, path in found
        ]

    def latest(self, source_path: Path) -> Optional[BackupHandle]:
        backups = self.list_backups(source_path)
        return backups[0] if backups else None

    def prune(self, source_path: Path, keep_count: Optional[int] = None) -> list[Path]:
        """
        Delete the oldest snapshots beyond keep_count.

        Individual deletion failures are logged and skipped.

        Returns:
            Paths that were deleted.
        """
        keep = self.keep_count if keep_count is None else keep_count
        deleted: list[Path] = []

        for handle in self.list_backups(source_path)[max(keep, 0) :]:
            try:
                handle.path.unlink()
                deleted.append(handle.path)
            except OSError as e:
                logger.warning("Could not delete old backup %s: %s", handle.path, e)

        if deleted:
            logger.info("Pruned %d old backup(s) of %s", len(deleted), source_path)
        return deleted
