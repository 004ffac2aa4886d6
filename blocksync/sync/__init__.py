# BlockSync Sync Module
# Scanning, change tracking, backups and the import/export orchestrator

from blocksync.sync.backup import BackupHandle, BackupManager
from blocksync.sync.ledger import AbsentEntry, ChangeAnalysis, ChangeLedger, LedgerEntry
from blocksync.sync.naming import (
    EntryIdentity,
    FileClass,
    NamingRules,
    classify_file_name,
    derive_identity,
    validate_file_name,
    validate_folders,
)
from blocksync.sync.orchestrator import (
    BatchState,
    ChangeStatus,
    ExportOptions,
    ExportResult,
    ImportOptions,
    ImportResult,
    QueryResult,
    RemovalResult,
    SyncOrchestrator,
)
from blocksync.sync.scanner import FileDescriptor, ScanResult, describe_file, scan_directory
from blocksync.sync.store import ArchiveStore, DocumentStore, StoreEntry, StoreResult

__all__ = [
    # Naming
    "NamingRules",
    "EntryIdentity",
    "FileClass",
    "classify_file_name",
    "validate_file_name",
    "validate_folders",
    "derive_identity",
    # Scanner
    "FileDescriptor",
    "ScanResult",
    "scan_directory",
    "describe_file",
    # Ledger
    "LedgerEntry",
    "AbsentEntry",
    "ChangeAnalysis",
    "ChangeLedger",
    # Backup
    "BackupHandle",
    "BackupManager",
    # Store
    "DocumentStore",
    "ArchiveStore",
    "StoreEntry",
    "StoreResult",
    # Orchestrator
    "SyncOrchestrator",
    "BatchState",
    "ChangeStatus",
    "ImportOptions",
    "ExportOptions",
    "ImportResult",
    "ExportResult",
    "QueryResult",
    "RemovalResult",
]
