"""PileCache Keys - Key to Path Resolution.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

SEPARATOR = "/"


class InvalidKeyError(ValueError):
    """Key cannot be mapped to a path below the cache root."""


def split_key(key: str) -> Tuple[str, str]:
    """Split key into directory suffix and leaf name.

    ``"sub/dir/leaf"`` becomes ``("sub/dir/", "leaf")`` and
    ``"leaf"`` becomes ``("", "leaf")``. Backslashes are treated as
    separators too.

    Args:
        key: Cache key

    Returns:
        (directory suffix, leaf) tuple

    Raises:
        InvalidKeyError: If key is empty, absolute, escapes the root
            or has no leaf
    """
    if not isinstance(key, str) or not key:
        raise InvalidKeyError(f"Cache key must be a non-empty string: {key!r}")

    normalized = key.replace("\\", SEPARATOR)
    if normalized.startswith(SEPARATOR):
        raise InvalidKeyError(f"Cache key must be relative: {key!r}")

    parts = normalized.split(SEPARATOR)
    if any(part in ("..", ".") for part in parts):
        raise InvalidKeyError(f"Cache key may not contain relative segments: {key!r}")

    leaf = parts[-1]
    if not leaf:
        raise InvalidKeyError(f"Cache key has no leaf name: {key!r}")

    directories = [p for p in parts[:-1] if p]
    subdir = SEPARATOR.join(directories) + SEPARATOR if directories else ""
    return subdir, leaf


@dataclass(frozen=True)
class KeyPaths:
    """Resolved on-disk locations for a cache key.

    Attributes:
        key: Original cache key
        directory: Directory holding the entry
        leaf: File stem of the entry
        entry: Entry file path
        marker: Dogpile marker path
    """

    key: str
    directory: Path
    leaf: str
    entry: Path
    marker: Path


class KeyResolver:
    """Maps cache keys onto paths below a root directory."""

    def __init__(
        self,
        root: Path,
        entry_suffix: str = ".cache",
        marker_suffix: str = ".dogpile",
    ):
        self.root = Path(root)
        self.entry_suffix = entry_suffix
        self.marker_suffix = marker_suffix

    def resolve(self, key: str) -> KeyPaths:
        """Resolve key to its entry and marker paths.

        Args:
            key: Cache key

        Returns:
            KeyPaths for the key
        """
        subdir, leaf = split_key(key)
        directory = self.root / subdir if subdir else self.root
        entry = directory / f"{leaf}{self.entry_suffix}"
        marker = directory / f"{leaf}{self.entry_suffix}{self.marker_suffix}"
        return KeyPaths(
            key=key,
            directory=directory,
            leaf=leaf,
            entry=entry,
            marker=marker,
        )

    def is_entry(self, path: Path) -> bool:
        """Check if path names an entry file."""
        return path.name.endswith(self.entry_suffix)

    def is_marker(self, path: Path) -> bool:
        """Check if path names a dogpile marker."""
        return path.name.endswith(f"{self.entry_suffix}{self.marker_suffix}")

    def __repr__(self) -> str:
        return f"KeyResolver(root={self.root})"


__all__ = ["InvalidKeyError", "KeyPaths", "KeyResolver", "split_key"]
