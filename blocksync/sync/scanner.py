# BlockSync Directory Scanner
# Depth-bounded discovery and classification of entry source files

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from blocksync.errors import ConfigurationError
from blocksync.sync.naming import (
    EntryIdentity,
    FileClass,
    NamingRules,
    classify_file_name,
    derive_identity,
    validate_folders,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


@dataclass
class FileDescriptor:
    """
    One candidate file found by a scan.

    Transient: rebuilt on every scan, never persisted.
    """

    full_path: Path
    relative_path: str
    last_modified: datetime
    identity: Optional[EntryIdentity] = None
    is_valid: bool = False
    validation_error: Optional[str] = None

    @property
    def file_name(self) -> str:
        return self.full_path.name

    @property
    def name(self) -> str:
        return self.identity.name if self.identity else ""

    @property
    def category(self) -> str:
        return self.identity.category if self.identity else ""


@dataclass
class ScanResult:
    """Buckets produced by a single scan pass."""

    root_path: Path
    valid: list[FileDescriptor] = field(default_factory=list)
    invalid: list[FileDescriptor] = field(default_factory=list)
    ignored: list[Path] = field(default_factory=list)
    skipped_directories: list[Path] = field(default_factory=list)
    total_files_scanned: int = 0
    scan_duration: float = 0.0

    @property
    def is_partial(self) -> bool:
        """True when some directories could not be read."""
        return bool(self.skipped_directories)


def _list_files(
    directory: Path,
    depth: int,
    max_depth: int,
    found: list[tuple[Path, float]],
    skipped: list[Path],
) -> None:
    """Collect (path, mtime) pairs below directory, best effort."""
    if depth >= max_depth:
        return

    try:
        children = sorted(directory.iterdir())
    except OSError as e:
        logger.warning("Skipping unreadable directory %s: %s", directory, e)
        skipped.append(directory)
        return

    subdirectories: list[Path] = []
    for child in children:
        try:
            if child.is_dir():
                subdirectories.append(child)
            elif child.is_file():
                found.append((child, child.stat().st_mtime))
        except OSError as e:
            # Vanished or unreadable between listing and stat
            logger.warning("Skipping unreadable path %s: %s", child, e)

    for subdirectory in subdirectories:
        _list_files(subdirectory, depth + 1, max_depth, found, skipped)


def scan_directory(
    root_path: Path,
    rules: Optional[NamingRules] = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ScanResult:
    """
    Scan a directory tree for entry source files.

    Directories at depth max_depth or deeper are not descended into.
    Unreadable directories yield zero files and are recorded in
    skipped_directories. When two valid files reduce to the same identity,
    the first one (by path) keeps it and the others are marked invalid.

    Args:
        root_path: Directory to scan.
        rules: Naming convention (defaults to NamingRules()).
        max_depth: Maximum directory depth, root counting as depth 0.

    Returns:
        ScanResult with valid, invalid and ignored buckets.

    Raises:
        ConfigurationError: If root_path does not exist or is not a directory.
    """
    rules = rules or NamingRules()
    start = time.monotonic()

    if not root_path.is_dir():
        raise ConfigurationError(f"Source directory not found: {root_path}")

    result = ScanResult(root_path=root_path)
    found: list[tuple[Path, float]] = []
    _list_files(root_path, 0, max_depth, found, result.skipped_directories)
    found.sort(key=lambda pair: str(pair[0]))
    result.total_files_scanned = len(found)

    claimed: dict[EntryIdentity, Path] = {}

    for path, mtime in found:
        file_class, reason = classify_file_name(path.name, rules)
        if file_class == FileClass.IGNORED:
            result.ignored.append(path)
            continue

        relative = path.relative_to(root_path)
        descriptor = FileDescriptor(
            full_path=path,
            relative_path=relative.as_posix(),
            last_modified=datetime.fromtimestamp(mtime),
        )
        if file_class == FileClass.VALID:
            folders_ok, folder_reason = validate_folders(relative)
            if not folders_ok:
                file_class, reason = FileClass.INVALID, folder_reason

        if file_class == FileClass.INVALID:
            descriptor.validation_error = reason
            result.invalid.append(descriptor)
            continue

        identity = derive_identity(path, root_path, rules)
        descriptor.identity = identity

        if identity in claimed:
            descriptor.validation_error = f"Duplicate identity {identity}: already used by {claimed[identity]}"
            result.invalid.append(descriptor)
            logger.warning("Identity collision: %s and %s both map to %s", claimed[identity], path, identity)
            continue

        claimed[identity] = path
        descriptor.is_valid = True
        result.valid.append(descriptor)

    result.scan_duration = time.monotonic() - start
    logger.debug(
        "Scanned %s: %d files, %d valid, %d invalid, %d ignored in %.3fs",
        root_path,
        result.total_files_scanned,
        len(result.valid),
        len(result.invalid),
        len(result.ignored),
        result.scan_duration,
    )
    return result


def describe_file(path: Path, root_path: Optional[Path], rules: Optional[NamingRules] = None) -> FileDescriptor:
    """
    Build a descriptor for a single file outside of a directory scan.

    Raises:
        ConfigurationError: If the file does not exist.
    """
    rules = rules or NamingRules()
    if not path.is_file():
        raise ConfigurationError(f"File not found: {path}")

    relative = Path(path.name)
    if root_path is not None:
        try:
            relative = path.relative_to(root_path)
        except ValueError:
            pass

    descriptor = FileDescriptor(
        full_path=path,
        relative_path=relative.as_posix(),
        last_modified=datetime.fromtimestamp(path.stat().st_mtime),
    )
    file_class, reason = classify_file_name(path.name, rules)
    if file_class == FileClass.VALID:
        folders_ok, folder_reason = validate_folders(relative)
        if not folders_ok:
            file_class, reason = FileClass.INVALID, folder_reason
    if file_class == FileClass.IGNORED:
        descriptor.validation_error = f"Not a '{rules.prefix}*{rules.extension}' file"
    elif file_class == FileClass.INVALID:
        descriptor.validation_error = reason
    else:
        descriptor.identity = derive_identity(path, root_path, rules)
        descriptor.is_valid = True
    return descriptor
