"""BlockSync - entry source file synchronization for document stores.

Keeps a directory tree of entry source files (AT_<name>.docx) in sync with
the named, categorized entries of a document store, with change tracking,
backups and rollback.
"""

__version__ = "1.0.0"
__author__ = "Equitania Software GmbH"
__email__ = "info@equitania.de"

__all__ = [
    "__version__",
    "NamingRules",
    "EntryIdentity",
    "scan_directory",
    "ChangeLedger",
    "BackupManager",
    "ArchiveStore",
    "SyncOrchestrator",
    "ImportResult",
    "ExportResult",
    "QueryResult",
]


def __getattr__(name: str):
    """Lazy import to avoid loading dependencies during setup."""
    if name in ("NamingRules", "EntryIdentity"):
        from blocksync.sync import naming

        return getattr(naming, name)
    if name == "scan_directory":
        from blocksync.sync.scanner import scan_directory

        return scan_directory
    if name == "ChangeLedger":
        from blocksync.sync.ledger import ChangeLedger

        return ChangeLedger
    if name == "BackupManager":
        from blocksync.sync.backup import BackupManager

        return BackupManager
    if name == "ArchiveStore":
        from blocksync.sync.store import ArchiveStore

        return ArchiveStore
    if name in ("SyncOrchestrator", "ImportResult", "ExportResult", "QueryResult"):
        from blocksync.sync import orchestrator

        return getattr(orchestrator, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
