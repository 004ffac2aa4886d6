# BlockSync Document Store
# Store protocol consumed by the orchestrator, plus a zip-container adapter

import hashlib
import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import yaml

from blocksync.errors import FatalStoreError, StoreError
from blocksync.utils.paths import atomic_write, ensure_dir

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class StoreEntry:
    """A named, categorized block held by the store."""

    name: str
    category: str


@dataclass
class StoreResult:
    """Outcome of a single store mutation or export."""

    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "StoreResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "StoreResult":
        return cls(success=False, error=error)


@runtime_checkable
class DocumentStore(Protocol):
    """
    Narrow interface to an opaque document store.

    Adapters raise FatalStoreError from open() and save() when the store can
    not continue. Per-entry methods report failures through StoreResult or
    raise StoreError.
    """

    def open(self, path: Path) -> None: ...

    def add(self, name: str, category: str, content_source: Path) -> StoreResult: ...

    def find(self, name: str, category: str) -> bool: ...

    def remove(self, name: str, category: str) -> StoreResult: ...

    def export(self, name: str, category: str, output_path: Path) -> StoreResult: ...

    def list_entries(self, category_prefix: str = "") -> list[StoreEntry]: ...

    def save(self) -> None: ...

    def close(self) -> None: ...


INDEX_MEMBER = "index.yaml"
BLOCKS_DIR = "blocks"


def _member_name(name: str, category: str) -> str:
    digest = hashlib.sha1(f"{category}\x00{name}".encode("utf-8")).hexdigest()
    return f"{BLOCKS_DIR}/{digest}"


class ArchiveStore:
    """
    Document store kept in a single zip container.

    The container holds one member per block and an index.yaml describing
    name, category and member of each block. Changes are kept in memory
    until save(), which rewrites the container atomically.
    """

    def __init__(self) -> None:
        self.path: Optional[Path] = None
        self._index: dict[tuple[str, str], dict[str, Any]] = {}
        self._content: dict[str, bytes] = {}
        self._dirty = False

    @classmethod
    def create(cls, path: Path) -> Path:
        """
        Create an empty store container.

        Raises:
            FileExistsError: If path already exists.
        """
        if path.exists():
            raise FileExistsError(f"Store already exists: {path}")
        ensure_dir(path.parent)
        atomic_write(path, cls._serialize({}, {}))
        return path

    @property
    def is_open(self) -> bool:
        return self.path is not None

    def _require_open(self) -> Path:
        if self.path is None:
            raise StoreError("Store is not open")
        return self.path

    def open(self, path: Path) -> None:
        """
        Load the container into memory.

        Raises:
            FatalStoreError: If the file is missing or is not a valid container.
        """
        self.close()
        if not path.is_file():
            raise FatalStoreError(f"Store file not found: {path}")

        try:
            with zipfile.ZipFile(path) as archive:
                raw_index = yaml.safe_load(archive.read(INDEX_MEMBER)) or {}
                index: dict[tuple[str, str], dict[str, Any]] = {}
                content: dict[str, bytes] = {}
                for item in raw_index.get("entries", []):
                    key = (item["name"], item.get("category", ""))
                    index[key] = item
                    content[item["member"]] = archive.read(item["member"])
        except (zipfile.BadZipFile, KeyError, yaml.YAMLError, OSError) as e:
            raise FatalStoreError(f"Failed to open store {path}: {e}") from e

        self.path = path
        self._index = index
        self._content = content
        self._dirty = False
        logger.debug("Opened store %s with %d entries", path, len(index))

    def add(self, name: str, category: str, content_source: Path) -> StoreResult:
        """Add or replace a block with the bytes of content_source."""
        self._require_open()
        try:
            data = content_source.read_bytes()
        except OSError as e:
            return StoreResult.failed(f"Cannot read {content_source}: {e}")

        member = _member_name(name, category)
        self._index[(name, category)] = {
            "name": name,
            "category": category,
            "member": member,
            "size": len(data),
            "updated": datetime.now().isoformat(timespec="seconds"),
        }
        self._content[member] = data
        self._dirty = True
        return StoreResult.ok()

    def find(self, name: str, category: str) -> bool:
        self._require_open()
        return (name, category) in self._index

    def remove(self, name: str, category: str) -> StoreResult:
        self._require_open()
        item = self._index.pop((name, category), None)
        if item is None:
            return StoreResult.failed(f"Entry not found: {name} ({category})")
        self._content.pop(item["member"], None)
        self._dirty = True
        return StoreResult.ok()

    def export(self, name: str, category: str, output_path: Path) -> StoreResult:
        """Write a block's bytes to output_path."""
        self._require_open()
        item = self._index.get((name, category))
        if item is None:
            return StoreResult.failed(f"Entry not found: {name} ({category})")
        try:
            ensure_dir(output_path.parent)
            output_path.write_bytes(self._content[item["member"]])
        except OSError as e:
            return StoreResult.failed(f"Cannot write {output_path}: {e}")
        return StoreResult.ok()

    def list_entries(self, category_prefix: str = "") -> list[StoreEntry]:
        """Entries whose category starts with category_prefix, sorted."""
        self._require_open()
        return sorted(
            StoreEntry(name=name, category=category)
            for name, category in self._index
            if category.startswith(category_prefix)
        )

    def save(self) -> None:
        """
        Rewrite the container.

        Raises:
            FatalStoreError: If the container cannot be written.
        """
        path = self._require_open()
        try:
            atomic_write(path, self._serialize(self._index, self._content))
        except OSError as e:
            raise FatalStoreError(f"Failed to save store {path}: {e}") from e
        self._dirty = False
        logger.debug("Saved store %s", self.path)

    def close(self) -> None:
        """Discard in-memory state without saving."""
        if self.path is not None and self._dirty:
            logger.debug("Closing store %s with unsaved changes", self.path)
        self.path = None
        self._index = {}
        self._content = {}
        self._dirty = False

    @staticmethod
    def _serialize(index: dict[tuple[str, str], dict[str, Any]], content: dict[str, bytes]) -> bytes:
        entries = [index[key] for key in sorted(index)]
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(
                INDEX_MEMBER,
                yaml.safe_dump({"version": 1, "entries": entries}, sort_keys=False, allow_unicode=True),
            )
            for item in entries:
                archive.writestr(item["member"], content[item["member"]])
        return buffer.getvalue()
