# BlockSync Change Ledger
# Durable record of imported entries and the last known set of source paths

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from blocksync.sync.naming import EntryIdentity, NamingRules, derive_identity
from blocksync.sync.scanner import FileDescriptor
from blocksync.utils.paths import atomic_write

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
IMPORTED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"
LEDGER_HEADER = "# Name|Category|LastModified|SourcePath|ImportedAt"


def truncate_timestamp(value: datetime) -> datetime:
    """Reduce a timestamp to the ledger's minute resolution."""
    return value.replace(second=0, microsecond=0)


@dataclass
class LedgerEntry:
    """Last successful import of one entry identity."""

    name: str
    category: str
    last_modified: datetime
    source_path: str = ""
    imported_at: Optional[datetime] = None

    @property
    def identity(self) -> EntryIdentity:
        return EntryIdentity(name=self.name, category=self.category)

    def to_line(self) -> str:
        """Serialize to a pipe-delimited ledger line."""
        parts = [self.name, self.category, self.last_modified.strftime(TIMESTAMP_FORMAT), self.source_path]
        if self.imported_at is not None:
            parts.append(self.imported_at.strftime(IMPORTED_AT_FORMAT))
        return "|".join(parts)

    @classmethod
    def from_line(cls, line: str) -> "LedgerEntry":
        """
        Parse a ledger line.

        Raises:
            ValueError: If the line is malformed.
        """
        parts = line.split("|", 3)
        if len(parts) < 3:
            raise ValueError(f"Expected at least 3 fields, got {len(parts)}")

        name, category, stamp = parts[0].strip(), parts[1].strip(), parts[2].strip()
        if not name:
            raise ValueError("Empty entry name")
        last_modified = datetime.strptime(stamp, TIMESTAMP_FORMAT)

        source_path = ""
        imported_at = None
        if len(parts) == 4:
            source_path = parts[3].rstrip("\r\n")
            head, sep, tail = source_path.rpartition("|")
            if sep:
                try:
                    imported_at = datetime.strptime(tail.strip(), IMPORTED_AT_FORMAT)
                    source_path = head
                except ValueError:
                    pass

        return cls(
            name=name,
            category=category,
            last_modified=last_modified,
            source_path=source_path.strip(),
            imported_at=imported_at,
        )


@dataclass
class AbsentEntry:
    """A previously known path or ledger entry not found in the current scan."""

    path: Optional[str]
    identity: Optional[EntryIdentity] = None
    ledger_entry: Optional[LedgerEntry] = None

    @property
    def label(self) -> str:
        if self.identity is not None:
            return str(self.identity)
        return self.path or "?"


@dataclass
class ChangeAnalysis:
    """Classification of a scan against the ledger and manifest."""

    new: list[FileDescriptor] = field(default_factory=list)
    modified: list[FileDescriptor] = field(default_factory=list)
    up_to_date: list[FileDescriptor] = field(default_factory=list)
    missing: list[AbsentEntry] = field(default_factory=list)
    removed: list[AbsentEntry] = field(default_factory=list)

    @property
    def total_changed(self) -> int:
        return len(self.new) + len(self.modified)

    @property
    def total_files(self) -> int:
        return len(self.new) + len(self.modified) + len(self.up_to_date)

    @property
    def changed(self) -> list[FileDescriptor]:
        """New and modified descriptors in stable path order."""
        return sorted(self.new + self.modified, key=lambda d: str(d.full_path))

    def summary(self) -> str:
        if self.total_changed == 0:
            return f"All {self.total_files} files are up-to-date"
        text = f"{self.total_changed} of {self.total_files} files need importing"
        if self.new:
            text += f" • {len(self.new)} new"
        if self.modified:
            text += f" • {len(self.modified)} modified"
        return text


class ChangeLedger:
    """
    Ledger of imported entries plus the manifest of last seen paths.

    Loaded lazily on first access. Malformed ledger lines are skipped one by
    one; an unreadable file loads as an empty ledger.
    """

    def __init__(self, ledger_path: Path, manifest_path: Optional[Path] = None):
        """
        Initialize the ledger.

        Args:
            ledger_path: Pipe-delimited ledger file.
            manifest_path: Manifest file. Defaults to manifest.txt beside the ledger.
        """
        self.ledger_path = ledger_path
        self.manifest_path = manifest_path or ledger_path.with_name("manifest.txt")
        self._entries: Optional[dict[EntryIdentity, LedgerEntry]] = None
        self._manifest: Optional[set[str]] = None

    # Loading

    @property
    def _data(self) -> dict[EntryIdentity, LedgerEntry]:
        if self._entries is None:
            self._entries = self._load_entries()
        return self._entries

    @property
    def manifest(self) -> set[str]:
        """Paths seen during the last completed cycle."""
        if self._manifest is None:
            self._manifest = self._load_manifest()
        return self._manifest

    def _load_entries(self) -> dict[EntryIdentity, LedgerEntry]:
        entries: dict[EntryIdentity, LedgerEntry] = {}
        if not self.ledger_path.exists():
            return entries

        try:
            lines = self.ledger_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Ledger %s is unreadable, starting empty: %s", self.ledger_path, e)
            return entries

        for number, line in enumerate(lines, start=1):
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            try:
                entry = LedgerEntry.from_line(line)
            except ValueError as e:
                logger.warning("Skipping malformed ledger line %d in %s: %s", number, self.ledger_path, e)
                continue
            entries[entry.identity] = entry
        return entries

    def _load_manifest(self) -> set[str]:
        if not self.manifest_path.exists():
            return set()
        try:
            lines = self.manifest_path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Manifest %s is unreadable, starting empty: %s", self.manifest_path, e)
            return set()
        return {line.strip() for line in lines if line.strip()}

    def reload(self) -> None:
        """Drop cached state so the next access re-reads both files."""
        self._entries = None
        self._manifest = None

    # Persistence

    def save(self) -> None:
        """Write the ledger file."""
        lines = [LEDGER_HEADER, f"# Saved {datetime.now().strftime(IMPORTED_AT_FORMAT)}"]
        lines.extend(entry.to_line() for entry in self.entries())
        atomic_write(self.ledger_path, "\n".join(lines) + "\n")

    def save_manifest(self) -> None:
        """Write the manifest file, one path per line, sorted."""
        paths = sorted(self.manifest)
        atomic_write(self.manifest_path, "\n".join(paths) + ("\n" if paths else ""))

    # Queries

    def entries(self) -> list[LedgerEntry]:
        """All entries ordered by category, then name."""
        return sorted(self._data.values(), key=lambda e: (e.category, e.name))

    def get(self, identity: EntryIdentity) -> Optional[LedgerEntry]:
        return self._data.get(identity)

    def has_entry(self, identity: EntryIdentity) -> bool:
        return identity in self._data

    def __len__(self) -> int:
        return len(self._data)

    def last_import_date(self) -> Optional[datetime]:
        """Most recent import wall-clock time, falling back to file timestamps."""
        stamps = [e.imported_at or e.last_modified for e in self._data.values()]
        return max(stamps) if stamps else None

    # Mutation

    def commit(self, identity: EntryIdentity, last_modified: datetime, source_path: str | Path) -> LedgerEntry:
        """
        Record a successful import. Overwrites any existing entry for identity.

        The stored timestamp is truncated to minute resolution and so never
        exceeds the file's own timestamp. Call save() to persist.
        """
        entry = LedgerEntry(
            name=identity.name,
            category=identity.category,
            last_modified=truncate_timestamp(last_modified),
            source_path=str(source_path),
            imported_at=datetime.now().replace(microsecond=0),
        )
        self._data[identity] = entry
        return entry

    def remove(self, identity: EntryIdentity) -> bool:
        """Remove an entry on explicit request and save."""
        entry = self._data.pop(identity, None)
        if entry is None:
            return False
        self.manifest.discard(entry.source_path)
        self.save()
        self.save_manifest()
        return True

    def purge(self) -> int:
        """Clear ledger and manifest. Returns the number of entries removed."""
        count = len(self._data)
        self._data.clear()
        self.manifest.clear()
        self.save()
        self.save_manifest()
        return count

    def cleanup_orphans(self) -> list[LedgerEntry]:
        """Drop entries whose source file no longer exists on disk."""
        orphaned = [e for e in self._data.values() if e.source_path and not Path(e.source_path).exists()]
        for entry in orphaned:
            del self._data[entry.identity]
            self.manifest.discard(entry.source_path)
        if orphaned:
            self.save()
            self.save_manifest()
        return orphaned

    def update_manifest(self, descriptors: Iterable[FileDescriptor]) -> None:
        """Replace the manifest with the valid paths of a completed scan and save it."""
        self._manifest = {str(d.full_path) for d in descriptors if d.is_valid}
        self.save_manifest()

    # Reconciliation

    def is_modified(self, descriptor: FileDescriptor) -> bool:
        """True if the file is newer than its ledger entry, at minute resolution."""
        entry = self.get(descriptor.identity) if descriptor.identity else None
        if entry is None:
            return True
        return truncate_timestamp(descriptor.last_modified) > entry.last_modified

    def diff(
        self,
        descriptors: Iterable[FileDescriptor],
        *,
        root_path: Optional[Path] = None,
        rules: Optional[NamingRules] = None,
    ) -> ChangeAnalysis:
        """
        Classify current descriptors and previously known entries.

        Args:
            descriptors: Descriptors from the current scan; invalid ones are ignored.
            root_path: Scan root, used with rules to derive identities of
                manifest paths that have no ledger entry.
            rules: Naming convention for identity derivation.

        Returns:
            ChangeAnalysis with new, modified, up_to_date, missing and removed.
        """
        analysis = ChangeAnalysis()
        valid = sorted((d for d in descriptors if d.is_valid and d.identity), key=lambda d: str(d.full_path))
        current_paths = {str(d.full_path) for d in valid}
        current_ids = {d.identity for d in valid}

        for descriptor in valid:
            entry = self.get(descriptor.identity)
            if entry is None:
                analysis.new.append(descriptor)
            elif truncate_timestamp(descriptor.last_modified) > entry.last_modified:
                analysis.modified.append(descriptor)
            else:
                analysis.up_to_date.append(descriptor)

        by_source = {e.source_path: e for e in self._data.values() if e.source_path}
        reported: set[EntryIdentity] = set()

        for path in sorted(self.manifest - current_paths):
            entry = by_source.get(path)
            identity = entry.identity if entry else None
            if identity is None and root_path is not None and rules is not None:
                identity = derive_identity(Path(path), root_path, rules)
                entry = self.get(identity)

            if identity is not None and identity in current_ids:
                # Same identity found at another path: the file moved
                continue

            if entry is not None:
                analysis.missing.append(AbsentEntry(path=path, identity=entry.identity, ledger_entry=entry))
                reported.add(entry.identity)
            else:
                analysis.removed.append(AbsentEntry(path=path, identity=identity))

        for entry in self.entries():
            if entry.identity in current_ids or entry.identity in reported:
                continue
            analysis.removed.append(
                AbsentEntry(path=entry.source_path or None, identity=entry.identity, ledger_entry=entry)
            )

        return analysis
