# BlockSync Naming Rules
# File name validation and entry identity derivation

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Optional

RESERVED_CHARACTERS = ("/", "\\", ":", "*", "?", '"', "<", ">", "|")


@dataclass(frozen=True)
class NamingRules:
    """Naming convention for entry source files."""

    prefix: str = "AT_"
    extension: str = ".docx"
    root_category: str = "InternalAutotext"
    category_separator: str = "\\"
    space_replacement: str = "_"

    def has_prefix(self, file_name: str) -> bool:
        return file_name.lower().startswith(self.prefix.lower())

    def has_extension(self, file_name: str) -> bool:
        return file_name.lower().endswith(self.extension.lower())

    def normalize(self, text: str) -> str:
        """Replace spaces the way names and categories are stored."""
        return text.replace(" ", self.space_replacement)

    def denormalize(self, text: str) -> str:
        """Turn a stored name back into a file-system friendly one."""
        return text.replace(self.space_replacement, " ")

    def file_name_for(self, name: str, *, restore_spaces: bool = False) -> str:
        """Build the source file name for an entry name."""
        stem = self.denormalize(name) if restore_spaces else name
        return f"{self.prefix}{stem}{self.extension}"


@dataclass(frozen=True, order=True)
class EntryIdentity:
    """Unique key of an entry: (name, category)."""

    name: str
    category: str

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"


class FileClass(str, Enum):
    """Outcome of classifying a candidate file name."""

    VALID = "valid"
    INVALID = "invalid"
    IGNORED = "ignored"


def _strip_name(file_name: str, rules: NamingRules) -> str:
    return file_name[len(rules.prefix) : len(file_name) - len(rules.extension)]


def _reserved_in(text: str) -> list[str]:
    return sorted({c for c in text if c in RESERVED_CHARACTERS}, key=RESERVED_CHARACTERS.index)


def validate_folders(relative_path: PurePath) -> tuple[bool, Optional[str]]:
    """
    Check the directory segments that become the category.

    A reserved character in a folder name would end up in the category,
    which must stay free of them like the entry name.
    """
    for part in relative_path.parent.parts:
        reserved = _reserved_in(part)
        if reserved:
            return False, f"Contains reserved characters: {', '.join(reserved)} (folder '{part}')"
    return True, None


def validate_file_name(file_name: str, rules: NamingRules) -> tuple[bool, Optional[str]]:
    """
    Validate a file name against the naming rules.

    Args:
        file_name: Bare file name (no directory part is expected, but any
            separator present is reported as a reserved character).
        rules: Naming convention.

    Returns:
        Tuple of (is_valid, reason). Reason is None when valid.
    """
    reserved = _reserved_in(file_name)
    if reserved:
        return False, f"Contains reserved characters: {', '.join(reserved)}"

    if not rules.has_prefix(file_name):
        return False, f"File name must start with '{rules.prefix}'"

    if not rules.has_extension(file_name):
        return False, f"File must have '{rules.extension}' extension"

    if len(file_name) < len(rules.prefix) + len(rules.extension) or not _strip_name(file_name, rules).strip():
        return False, f"File name must contain a name after the '{rules.prefix}' prefix"

    return True, None


def classify_file_name(file_name: str, rules: NamingRules) -> tuple[FileClass, Optional[str]]:
    """
    Sort a file name into the valid, invalid, or ignored bucket.

    Files lacking the prefix or the extension are not candidates at all and
    are ignored rather than reported as invalid.
    """
    if not rules.has_prefix(file_name) or not rules.has_extension(file_name):
        return FileClass.IGNORED, None

    valid, reason = validate_file_name(file_name, rules)
    if not valid:
        return FileClass.INVALID, reason
    return FileClass.VALID, None


def derive_category(relative_path: PurePath, rules: NamingRules) -> str:
    """Build the category from the directory segments of a relative path."""
    segments = [rules.normalize(part) for part in relative_path.parent.parts if part not in ("", ".")]
    if not segments:
        return rules.root_category
    return rules.category_separator.join([rules.root_category, *segments])


def derive_name(file_name: str, rules: NamingRules) -> str:
    """Strip prefix and extension from a file name and normalize spaces."""
    return rules.normalize(_strip_name(file_name, rules))


def derive_identity(path: Path, root_path: Optional[Path], rules: NamingRules) -> EntryIdentity:
    """
    Derive the (name, category) identity of a source file.

    Args:
        path: Path to the source file.
        root_path: Scan root. When None or when path is outside the root,
            the file is treated as a root-level entry.
        rules: Naming convention.

    Returns:
        EntryIdentity for the file.
    """
    relative = PurePath(path.name)
    if root_path is not None:
        try:
            relative = path.relative_to(root_path)
        except ValueError:
            pass
    return EntryIdentity(name=derive_name(path.name, rules), category=derive_category(relative, rules))


def category_to_parts(category: str, rules: NamingRules) -> list[str]:
    """
    Split a category back into directory segments, dropping the root token.

    Used by hierarchical export to recreate the source tree.
    """
    parts = [p for p in category.split(rules.category_separator) if p]
    if parts and parts[0] == rules.root_category:
        parts = parts[1:]
    return parts
