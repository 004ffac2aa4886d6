# BlockSync Orchestrator
# Transactional import/export workflow between source files and the store

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from blocksync.errors import (
    BackupError,
    ConfigurationError,
    ErrorKind,
    FatalStoreError,
    RollbackError,
    StoreError,
)
from blocksync.logger import log_exchange
from blocksync.sync.backup import BackupHandle, BackupManager
from blocksync.sync.ledger import ChangeAnalysis, ChangeLedger
from blocksync.sync.naming import EntryIdentity, NamingRules, category_to_parts
from blocksync.sync.scanner import DEFAULT_MAX_DEPTH, FileDescriptor, ScanResult, describe_file, scan_directory
from blocksync.sync.store import ArchiveStore, DocumentStore, StoreEntry, StoreResult
from blocksync.utils.paths import ensure_dir, unique_path

if TYPE_CHECKING:
    from blocksync.config.schema import BlockSyncConfig, ExportConfig, ImportConfig

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]
ProgressCallback = Callable[[int], None]
ConfirmCallback = Callable[[list[FileDescriptor]], bool]


class BatchState(str, Enum):
    """States of the import workflow."""

    IDLE = "idle"
    SCANNING = "scanning"
    DIFFING = "diffing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    BACKING_UP = "backing_up"
    MUTATING = "mutating"
    COMMITTING = "committing"
    SAVING = "saving"
    ROLLING_BACK = "rolling_back"


class ChangeStatus(str, Enum):
    """Per-entry status reported by a query."""

    NEW = "new"
    MODIFIED = "modified"
    UP_TO_DATE = "up_to_date"
    MISSING = "missing"
    REMOVED = "removed"


@dataclass
class ImportOptions:
    """Options for an import batch."""

    only_changed: bool = True
    confirm_new: bool = True
    flat: bool = False
    flat_category: str = "InternalAutotext"

    @classmethod
    def from_config(cls, config: ImportConfig) -> ImportOptions:
        return cls(
            only_changed=config.only_changed,
            confirm_new=config.confirm_new,
            flat=config.flat,
            flat_category=config.flat_category,
        )


@dataclass
class ExportOptions:
    """Options for an export batch."""

    flat: bool = False
    names: Optional[list[str]] = None
    category_prefix: Optional[str] = None

    @classmethod
    def from_config(cls, config: ExportConfig) -> ExportOptions:
        return cls(flat=config.flat)


@dataclass
class ItemFailure:
    """A single entry that could not be processed."""

    item: str
    error: str

    def __str__(self) -> str:
        return f"{self.item}: {self.error}"


@dataclass
class BatchResult:
    """Common outcome of a mutating batch."""

    success: bool = False
    failed: list[ItemFailure] = field(default_factory=list)
    backup: Optional[BackupHandle] = None
    rolled_back: bool = False
    cancelled: bool = False
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    transitions: list[BatchState] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def rollback_failed(self) -> bool:
        return self.error_kind == ErrorKind.ROLLBACK_FAILED


@dataclass
class ImportResult(BatchResult):
    """Outcome of an import batch."""

    imported: list[FileDescriptor] = field(default_factory=list)
    skipped_count: int = 0
    new_entries: list[FileDescriptor] = field(default_factory=list)
    scan: Optional[ScanResult] = None
    analysis: Optional[ChangeAnalysis] = None

    @property
    def imported_count(self) -> int:
        return len(self.imported)


@dataclass
class RemovalResult(BatchResult):
    """Outcome of an explicit entry removal."""

    identity: Optional[EntryIdentity] = None
    removed_from_store: bool = False
    removed_from_ledger: bool = False


@dataclass
class ExportResult:
    """Outcome of an export batch."""

    success: bool = False
    exported: list[Path] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)
    export_directory: Optional[Path] = None
    cancelled: bool = False
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    processing_time: float = 0.0

    @property
    def exported_count(self) -> int:
        return len(self.exported)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


@dataclass
class ChangeDetail:
    """One row of a query report."""

    status: ChangeStatus
    path: Optional[str]
    identity: Optional[EntryIdentity]
    current_modified: Optional[datetime] = None
    last_imported: Optional[datetime] = None


@dataclass
class QueryResult:
    """Read-only analysis of a source directory."""

    success: bool = False
    scan: Optional[ScanResult] = None
    analysis: Optional[ChangeAnalysis] = None
    details: list[ChangeDetail] = field(default_factory=list)
    scan_time: float = 0.0
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    def count(self, status: ChangeStatus) -> int:
        return sum(1 for d in self.details if d.status == status)

    @property
    def ignored_count(self) -> int:
        return len(self.scan.ignored) if self.scan else 0

    @property
    def invalid_count(self) -> int:
        return len(self.scan.invalid) if self.scan else 0


_STATUS_ORDER = list(ChangeStatus)


class SyncOrchestrator:
    """
    Drives scan, diff, backup, mutation, commit and save for one store.

    Runs one batch at a time; callers must not start a second mutating
    batch while one is in flight. Expected failures are returned on the
    result objects, never raised.
    """

    def __init__(
        self,
        store: DocumentStore,
        ledger: ChangeLedger,
        backups: BackupManager,
        *,
        rules: Optional[NamingRules] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        status_callback: Optional[StatusCallback] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            store: Document store adapter.
            ledger: Change ledger, owned by this orchestrator for writing.
            backups: Backup manager for the store file.
            rules: Naming convention.
            max_depth: Scan depth bound.
            status_callback: Receives textual status updates.
            progress_callback: Receives percentage updates (0-100).
        """
        self.store = store
        self.ledger = ledger
        self.backups = backups
        self.rules = rules or NamingRules()
        self.max_depth = max_depth
        self.status_callback = status_callback
        self.progress_callback = progress_callback
        self.state = BatchState.IDLE

    @classmethod
    def from_config(
        cls,
        config: BlockSyncConfig,
        store: Optional[DocumentStore] = None,
        **callbacks,
    ) -> SyncOrchestrator:
        """Build an orchestrator with ledger and backups placed per config."""
        ledger = ChangeLedger(config.paths.ledger_path, config.paths.manifest_path)
        backup_dir = Path(config.backup.directory) if config.backup.directory else None
        backups = BackupManager(backup_dir, keep_count=config.backup.keep_count)
        return cls(
            store or ArchiveStore(),
            ledger,
            backups,
            rules=config.rules,
            max_depth=config.scan.max_depth,
            **callbacks,
        )

    # Events

    def _status(self, message: str) -> None:
        logger.info(message)
        if self.status_callback:
            self.status_callback(message)

    def _progress(self, percentage: int) -> None:
        if self.progress_callback:
            self.progress_callback(max(0, min(100, percentage)))

    def _set_state(self, state: BatchState, result: Optional[BatchResult] = None) -> None:
        logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state
        if result is not None:
            result.transitions.append(state)

    def _fail(self, result: BatchResult, kind: ErrorKind, message: str) -> None:
        result.success = False
        result.error_kind = kind
        result.error_message = message
        if kind in (ErrorKind.ABORTED, ErrorKind.CANCELLED):
            logger.warning(message)
        else:
            logger.error(message)
        self._set_state(BatchState.IDLE, result)

    # Query

    def query(self, source_dir: Path) -> QueryResult:
        """Scan and classify without touching store or ledger."""
        start = time.monotonic()
        result = QueryResult()
        self._status("Scanning directory...")

        try:
            scan = scan_directory(source_dir, self.rules, max_depth=self.max_depth)
        except ConfigurationError as e:
            result.error_kind = ErrorKind.CONFIGURATION
            result.error_message = str(e)
            logger.error(str(e))
            return result

        analysis = self.ledger.diff(scan.valid, root_path=source_dir, rules=self.rules)
        result.scan = scan
        result.analysis = analysis
        result.details = self._details(analysis)
        result.scan_time = time.monotonic() - start
        result.success = True

        logger.info(
            "Scanned %s: %d files (%d valid, %d invalid, %d ignored) in %.2fs",
            source_dir,
            scan.total_files_scanned,
            len(scan.valid),
            len(scan.invalid),
            len(scan.ignored),
            result.scan_time,
        )
        if analysis.new:
            logger.info("New entries detected: %s", ", ".join(str(d.identity) for d in analysis.new))
        if analysis.missing:
            logger.warning("Missing source files: %s", ", ".join(a.label for a in analysis.missing))

        self._status("Directory analysis complete")
        return result

    def _details(self, analysis: ChangeAnalysis) -> list[ChangeDetail]:
        details: list[ChangeDetail] = []
        for status, descriptors in (
            (ChangeStatus.NEW, analysis.new),
            (ChangeStatus.MODIFIED, analysis.modified),
            (ChangeStatus.UP_TO_DATE, analysis.up_to_date),
        ):
            for d in descriptors:
                entry = self.ledger.get(d.identity) if d.identity else None
                details.append(
                    ChangeDetail(
                        status=status,
                        path=str(d.full_path),
                        identity=d.identity,
                        current_modified=d.last_modified,
                        last_imported=entry.last_modified if entry else None,
                    )
                )
        for status, absent in ((ChangeStatus.MISSING, analysis.missing), (ChangeStatus.REMOVED, analysis.removed)):
            for a in absent:
                details.append(
                    ChangeDetail(
                        status=status,
                        path=a.path,
                        identity=a.identity,
                        last_imported=a.ledger_entry.last_modified if a.ledger_entry else None,
                    )
                )
        return sorted(details, key=lambda d: (_STATUS_ORDER.index(d.status), d.path or ""))

    # Import

    def run_import(
        self,
        source_dir: Path,
        store_path: Path,
        options: Optional[ImportOptions] = None,
        *,
        confirm: Optional[ConfirmCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ImportResult:
        """
        Import new and modified source files into the store.

        Args:
            source_dir: Root of the source tree.
            store_path: Store file.
            options: Import options.
            confirm: Called with the new descriptors when options.confirm_new
                is set and new identities exist. Returning False aborts with
                no side effects.
            cancel: Checked before confirmation and between items. Setting it
                stops the batch; finished items stay committed and saved.

        Returns:
            ImportResult describing the batch.
        """
        options = options or ImportOptions()
        start = time.monotonic()
        result = ImportResult()
        self._status("Starting batch import...")

        self._set_state(BatchState.SCANNING, result)
        try:
            if not store_path.is_file():
                raise ConfigurationError(f"Store file not found: {store_path}")
            scan = scan_directory(source_dir, self.rules, max_depth=self.max_depth)
        except ConfigurationError as e:
            self._fail(result, ErrorKind.CONFIGURATION, str(e))
            return result
        result.scan = scan

        self._set_state(BatchState.DIFFING, result)
        analysis = self.ledger.diff(scan.valid, root_path=source_dir, rules=self.rules)
        result.analysis = analysis
        result.new_entries = list(analysis.new)

        if options.confirm_new and analysis.new and confirm is not None:
            self._set_state(BatchState.AWAITING_CONFIRMATION, result)
            if cancel is not None and cancel.is_set():
                self._fail(result, ErrorKind.CANCELLED, "Import cancelled before confirmation")
                return result
            proceed = confirm(list(analysis.new))
            if cancel is not None and cancel.is_set():
                self._fail(result, ErrorKind.CANCELLED, "Import cancelled during confirmation")
                return result
            if not proceed:
                self._fail(result, ErrorKind.ABORTED, "Import cancelled by user")
                return result

        if options.only_changed:
            work = analysis.changed
        else:
            work = sorted(scan.valid, key=lambda d: str(d.full_path))
        result.skipped_count = len(scan.valid) - len(work)

        self._run_batch(work, store_path, options, result, cancel)

        if result.success and not result.cancelled:
            try:
                self.ledger.update_manifest(scan.valid)
            except OSError as e:
                logger.warning("Could not save manifest %s: %s", self.ledger.manifest_path, e)

        result.processing_time = time.monotonic() - start
        logger.info(
            "Import summary: %d imported, %d failed, %d skipped in %.2fs",
            result.imported_count,
            result.failed_count,
            result.skipped_count,
            result.processing_time,
        )
        self._progress(100)
        return result

    def import_file(
        self,
        file_path: Path,
        store_path: Path,
        *,
        root: Optional[Path] = None,
        force: bool = False,
        options: Optional[ImportOptions] = None,
    ) -> ImportResult:
        """
        Import a single source file.

        The identity is derived relative to root, or as a root-level entry
        when root is None. An unmodified file is skipped unless force is set.
        The manifest is left untouched.
        """
        options = options or ImportOptions()
        start = time.monotonic()
        result = ImportResult()

        try:
            if not store_path.is_file():
                raise ConfigurationError(f"Store file not found: {store_path}")
            descriptor = describe_file(file_path, root, self.rules)
        except ConfigurationError as e:
            self._fail(result, ErrorKind.CONFIGURATION, str(e))
            return result

        if not descriptor.is_valid:
            self._fail(result, ErrorKind.CONFIGURATION, f"{file_path.name}: {descriptor.validation_error}")
            return result

        entry = self.ledger.get(descriptor.identity) if descriptor.identity else None
        if entry is None:
            result.new_entries = [descriptor]
        elif not force and not self.ledger.is_modified(descriptor):
            result.success = True
            result.skipped_count = 1
            self._status(
                f"{file_path.name} has not been modified since last import "
                f"({entry.last_modified:%Y-%m-%d %H:%M}), skipped"
            )
            return result

        self._status(f"Importing {file_path.name}...")
        self._run_batch([descriptor], store_path, options, result, None)
        result.processing_time = time.monotonic() - start
        self._progress(100)
        return result

    def _run_batch(
        self,
        work: list[FileDescriptor],
        store_path: Path,
        options: ImportOptions,
        result: ImportResult,
        cancel: Optional[threading.Event],
    ) -> None:
        """Backup, mutate, commit and save; roll back on fatal errors."""
        if not work:
            self._status("Nothing to import")
            result.success = True
            self._set_state(BatchState.IDLE, result)
            return

        self._set_state(BatchState.BACKING_UP, result)
        self._status("Creating store backup...")
        try:
            result.backup = self.backups.snapshot(store_path)
        except BackupError as e:
            self._fail(result, ErrorKind.FATAL, str(e))
            return

        succeeded: list[FileDescriptor] = []
        try:
            self._set_state(BatchState.MUTATING, result)
            self.store.open(store_path)
            self._status(f"Importing {len(work)} files...")

            for index, descriptor in enumerate(work):
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    break
                self._progress(index * 100 // len(work))

                category = options.flat_category if options.flat else descriptor.category
                outcome = self._add(descriptor, category)
                log_exchange(
                    "Import",
                    descriptor.full_path,
                    EntryIdentity(descriptor.name, category),
                    success=outcome.success,
                    error=outcome.error,
                )
                if outcome.success:
                    succeeded.append(descriptor)
                else:
                    result.failed.append(ItemFailure(str(descriptor.full_path), outcome.error or "unknown error"))

            self._set_state(BatchState.COMMITTING, result)
            for descriptor in succeeded:
                if descriptor.identity is not None:
                    self.ledger.commit(descriptor.identity, descriptor.last_modified, descriptor.full_path)
            result.imported = succeeded

            self._set_state(BatchState.SAVING, result)
            self._status("Saving store...")
            self.store.save()
            # Ledger reaches disk only once the store holds the entries
            if succeeded:
                self.ledger.save()
        except (FatalStoreError, OSError) as e:
            result.imported = []
            self._rollback(result, store_path, str(e))
            return
        finally:
            self._close_store()

        result.success = bool(result.imported) or not result.failed
        if result.cancelled:
            result.error_kind = ErrorKind.CANCELLED
            result.error_message = f"Import cancelled after {len(succeeded) + len(result.failed)} of {len(work)} items"
            logger.warning(result.error_message)

        self.backups.prune(store_path)
        self._status(f"Import complete: {len(succeeded)} imported, {len(result.failed)} failed")
        self._set_state(BatchState.IDLE, result)

    def _add(self, descriptor: FileDescriptor, category: str) -> StoreResult:
        try:
            return self.store.add(descriptor.name, category, descriptor.full_path)
        except FatalStoreError:
            raise
        except (StoreError, OSError) as e:
            return StoreResult.failed(str(e))

    def _close_store(self) -> None:
        try:
            self.store.close()
        except (StoreError, OSError) as e:
            logger.warning("Error while closing store: %s", e)

    def _rollback(self, result: BatchResult, store_path: Path, cause: str) -> None:
        """Restore the batch's backup after a fatal error."""
        result.success = False
        result.error_kind = ErrorKind.FATAL
        result.error_message = cause
        logger.error("Batch failed: %s", cause)
        # Drop in-memory commits of the failed batch
        self.ledger.reload()

        if result.backup is None:
            self._set_state(BatchState.IDLE, result)
            return

        self._set_state(BatchState.ROLLING_BACK, result)
        self._close_store()
        try:
            self.backups.restore(result.backup, store_path)
        except BackupError as e:
            result.error_kind = ErrorKind.ROLLBACK_FAILED
            result.error_message = f"{cause}; rollback from {result.backup.path} failed: {e}"
            logger.critical(
                "ROLLBACK FAILED, store %s may be inconsistent. Backup left at %s: %s",
                store_path,
                result.backup.path,
                e,
            )
        else:
            result.rolled_back = True
            self._status("Store restored from backup due to error")
        self._set_state(BatchState.IDLE, result)

    # Removal

    def remove_entry(self, identity: EntryIdentity, store_path: Path) -> RemovalResult:
        """
        Remove an entry from the store and the ledger on explicit request.

        An entry absent from the store is still removed from the ledger.
        """
        start = time.monotonic()
        result = RemovalResult(identity=identity)

        if not store_path.is_file():
            self._fail(result, ErrorKind.CONFIGURATION, f"Store file not found: {store_path}")
            return result

        self._set_state(BatchState.BACKING_UP, result)
        try:
            result.backup = self.backups.snapshot(store_path)
        except BackupError as e:
            self._fail(result, ErrorKind.FATAL, str(e))
            return result

        try:
            self._set_state(BatchState.MUTATING, result)
            self.store.open(store_path)
            try:
                outcome = self.store.remove(identity.name, identity.category)
            except FatalStoreError:
                raise
            except StoreError as e:
                outcome = StoreResult.failed(str(e))
            log_exchange("Remove", store_path, identity, success=outcome.success, error=outcome.error)
            if outcome.success:
                result.removed_from_store = True
            else:
                result.failed.append(ItemFailure(str(identity), outcome.error or "unknown error"))

            self._set_state(BatchState.SAVING, result)
            if result.removed_from_store:
                self.store.save()
        except (FatalStoreError, OSError) as e:
            self._rollback(result, store_path, str(e))
            return result
        finally:
            self._close_store()

        self._set_state(BatchState.COMMITTING, result)
        try:
            result.removed_from_ledger = self.ledger.remove(identity)
        except OSError as e:
            result.failed.append(ItemFailure(str(identity), f"Ledger update failed: {e}"))
            logger.error("Could not update ledger %s: %s", self.ledger.ledger_path, e)

        result.success = result.removed_from_store or result.removed_from_ledger
        if not result.success:
            result.error_kind = ErrorKind.CONFIGURATION
            result.error_message = f"Entry not found: {identity}"
        result.processing_time = time.monotonic() - start
        self.backups.prune(store_path)
        self._set_state(BatchState.IDLE, result)
        return result

    def rollback(self, store_path: Path, backup: Optional[BackupHandle | Path] = None) -> Path:
        """
        Restore the store from a chosen or the most recent backup.

        Returns:
            Path of the backup that was restored.

        Raises:
            RollbackError: If no backup exists or the restore fails.
        """
        if backup is None:
            backup = self.backups.latest(store_path)
            if backup is None:
                raise RollbackError(f"No backups found for {store_path}", store_path=str(store_path))

        backup_path = backup.path if isinstance(backup, BackupHandle) else backup
        self._set_state(BatchState.ROLLING_BACK)
        self._close_store()
        try:
            self.backups.restore(backup_path, store_path)
        except BackupError as e:
            raise RollbackError(str(e), store_path=str(store_path), backup_path=str(backup_path)) from e
        finally:
            self._set_state(BatchState.IDLE)

        self._status(f"Store restored from {backup_path.name}")
        return backup_path

    # Export

    def run_export(
        self,
        store_path: Path,
        output_dir: Path,
        options: Optional[ExportOptions] = None,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> ExportResult:
        """
        Write store entries to files under output_dir.

        Existing files are never overwritten; colliding names get a numeric
        suffix. The ledger is not involved.
        """
        options = options or ExportOptions()
        start = time.monotonic()
        result = ExportResult(export_directory=output_dir)
        self._status("Starting batch export...")

        if not store_path.is_file():
            result.error_kind = ErrorKind.CONFIGURATION
            result.error_message = f"Store file not found: {store_path}"
            logger.error(result.error_message)
            return result

        try:
            self.store.open(store_path)
        except FatalStoreError as e:
            result.error_kind = ErrorKind.FATAL
            result.error_message = str(e)
            logger.error(result.error_message)
            return result

        try:
            prefix = self.rules.root_category if options.category_prefix is None else options.category_prefix
            entries = self.store.list_entries(prefix)
            if options.names:
                wanted = set(options.names) | {self.rules.normalize(n) for n in options.names}
                entries = [e for e in entries if e.name in wanted]

            if not entries:
                result.error_kind = ErrorKind.CONFIGURATION
                result.error_message = f"No entries found with category '{prefix}'"
                logger.warning(result.error_message)
                return result

            try:
                ensure_dir(output_dir)
            except OSError as e:
                result.error_kind = ErrorKind.CONFIGURATION
                result.error_message = f"Cannot create export directory {output_dir}: {e}"
                logger.error(result.error_message)
                return result

            self._status(f"Exporting {len(entries)} entries...")
            for index, entry in enumerate(entries):
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    result.error_kind = ErrorKind.CANCELLED
                    result.error_message = f"Export cancelled after {index} of {len(entries)} entries"
                    break
                self._progress(index * 100 // len(entries))

                output_path = unique_path(self.export_path_for(entry, output_dir, flat=options.flat))
                try:
                    outcome = self.store.export(entry.name, entry.category, output_path)
                except (StoreError, OSError) as e:
                    outcome = StoreResult.failed(str(e))

                log_exchange(
                    "Export",
                    output_path,
                    EntryIdentity(entry.name, entry.category),
                    success=outcome.success,
                    error=outcome.error,
                )
                if outcome.success:
                    result.exported.append(output_path)
                else:
                    result.failed.append(ItemFailure(f"{entry.name} ({entry.category})", outcome.error or "unknown"))
        finally:
            self._close_store()

        result.success = bool(result.exported)
        result.processing_time = time.monotonic() - start
        logger.info(
            "Export summary: %d exported, %d failed to %s in %.2fs",
            result.exported_count,
            result.failed_count,
            output_dir,
            result.processing_time,
        )
        self._status(f"Export complete: {result.exported_count} exported, {result.failed_count} failed")
        self._progress(100)
        return result

    def export_path_for(self, entry: StoreEntry, output_dir: Path, *, flat: bool = False) -> Path:
        """Target file for an entry before collision handling."""
        if flat:
            return output_dir / self.rules.file_name_for(entry.name)

        folder = output_dir
        for part in category_to_parts(entry.category, self.rules):
            segment = self.rules.denormalize(part).strip()
            if segment in ("", ".", ".."):
                continue
            folder = folder / segment
        return folder / self.rules.file_name_for(entry.name, restore_spaces=True)
