# BlockSync Errors
# Exception hierarchy and result error kinds

from enum import Enum


class ErrorKind(str, Enum):
    """Distinguishable failure kinds carried on batch results."""

    CONFIGURATION = "configuration"
    FATAL = "fatal"
    ROLLBACK_FAILED = "rollback_failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class BlockSyncError(Exception):
    """Base class for all blocksync errors."""


class ConfigurationError(BlockSyncError):
    """Invalid root path, store path, or naming rules. Nothing was mutated."""


class StoreError(BlockSyncError):
    """A single store operation failed; the store itself is still usable."""


class FatalStoreError(StoreError):
    """The store cannot continue (open or save failed)."""


class BackupError(BlockSyncError):
    """Snapshot creation or restore failed."""


class RollbackError(BlockSyncError):
    """Restoring the pre-batch snapshot failed; the store may be inconsistent."""

    def __init__(self, message: str, *, store_path: str = "", backup_path: str = ""):
        super().__init__(message)
        self.store_path = store_path
        self.backup_path = backup_path
