# BlockSync Path Utilities
# Safe file operations with atomic writes and collision-free naming

import os
import shutil
import tempfile
from pathlib import Path


def expand_path(path: str | Path) -> Path:
    """
    Expand ~ and environment variables in path.

    Args:
        path: Path string or Path object.

    Returns:
        Expanded, absolute Path object.
    """
    path_str = str(path)
    # Expand ~ first, then environment variables
    path_str = os.path.expanduser(path_str)
    path_str = os.path.expandvars(path_str)
    return Path(path_str).resolve()


def ensure_dir(path: Path) -> Path:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path.

    Returns:
        The path that was ensured.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: Path, content: str | bytes, *, encoding: str = "utf-8") -> None:
    """
    Atomically write content to file.

    Uses a temporary file in the target directory and an atomic rename.

    Args:
        path: Target file path.
        content: Content to write (str or bytes).
        encoding: Encoding for string content (default utf-8).
    """
    ensure_dir(path.parent)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if isinstance(content, str):
            with os.fdopen(fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        os.replace(temp_path, path)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def atomic_copy(source: Path, dest: Path) -> None:
    """
    Copy file bytes to dest through a temporary file and atomic rename.

    Metadata is not copied, so dest gets a fresh modification time.

    Raises:
        FileNotFoundError: If source doesn't exist.
    """
    if not source.is_file():
        raise FileNotFoundError(f"Source does not exist: {source}")

    ensure_dir(dest.parent)
    fd, temp_path = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
    os.close(fd)
    try:
        shutil.copyfile(source, temp_path)
        os.replace(temp_path, dest)
    except BaseException:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def unique_path(path: Path) -> Path:
    """
    Return path, or the first free "<stem>_<n><suffix>" sibling (n from 2).

    Existing files are never touched.
    """
    if not path.exists():
        return path

    counter = 2
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def get_relative_path(path: Path, base: Path) -> Path | None:
    """
    Get path relative to base, or None if not relative.

    Args:
        path: Path to make relative.
        base: Base path.

    Returns:
        Relative path or None if not relative.
    """
    try:
        return path.relative_to(base)
    except ValueError:
        return None
