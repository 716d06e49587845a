"""Store module - Filesystem access for the cache."""

from pilecache_core.store.filesystem import (
    FileSystem,
    FileSystemError,
    DirectoryCreationError,
    SourceNotFoundError,
)

__all__ = [
    "FileSystem",
    "FileSystemError",
    "DirectoryCreationError",
    "SourceNotFoundError",
]
