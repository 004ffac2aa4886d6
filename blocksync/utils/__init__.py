# BlockSync Utilities Module
# Helper functions for path handling

from blocksync.utils.paths import (
    atomic_copy,
    atomic_write,
    ensure_dir,
    expand_path,
    get_relative_path,
    unique_path,
)

__all__ = [
    "expand_path",
    "ensure_dir",
    "atomic_write",
    "atomic_copy",
    "unique_path",
    "get_relative_path",
]
