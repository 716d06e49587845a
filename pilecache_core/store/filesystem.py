"""PileCache File System - Filesystem Access Capability.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class FileSystemError(OSError):
    """Base error for filesystem capability failures."""


class DirectoryCreationError(FileSystemError):
    """Directory could not be created for a reason other than existing."""


class SourceNotFoundError(FileSystemError):
    """Copy source does not exist."""


class FileSystem:
    """Filesystem access used by the cache manager.

    Wraps the handful of file operations the cache protocol needs so
    they can be swapped out in tests. All paths may be ``str`` or
    ``Path``.

    Example:
        fs = FileSystem()
        fs.makedirs("/var/cache/app/users")
        fs.write("/var/cache/app/users/1.cache", b"{}")
        data = fs.read("/var/cache/app/users/1.cache")
    """

    def exists(self, path: PathLike) -> bool:
        """Check whether a file exists.

        Args:
            path: File path

        Returns:
            True if a regular file exists at path
        """
        return Path(path).is_file()

    def read(self, path: PathLike) -> bytes:
        """Read a whole file.

        Args:
            path: File path

        Returns:
            File contents
        """
        with open(path, "rb") as f:
            return f.read()

    def write(self, path: PathLike, data: bytes) -> int:
        """Write data, truncating any previous content.

        Args:
            path: File path
            data: Bytes to write

        Returns:
            Number of bytes written
        """
        with open(path, "wb") as f:
            written = f.write(data)
        return written

    def copy(self, source: PathLike, destination: PathLike) -> None:
        """Copy file contents from source onto destination.

        Args:
            source: Existing file
            destination: Target file, overwritten if present

        Raises:
            SourceNotFoundError: If source does not exist
        """
        try:
            shutil.copyfile(source, destination)
        except FileNotFoundError as e:
            if not self.exists(source):
                raise SourceNotFoundError(
                    errno.ENOENT, f"Copy source not found: {source}", str(source)
                ) from e
            raise

    def makedirs(self, path: PathLike) -> None:
        """Create a directory and any missing parents.

        An existing directory is not an error.

        Args:
            path: Directory path

        Raises:
            DirectoryCreationError: If creation fails for another reason
        """
        try:
            os.makedirs(path, exist_ok=True)
        except FileExistsError as e:
            # exist_ok does not cover a regular file in the way
            raise DirectoryCreationError(
                errno.EEXIST, f"Not a directory: {path}", str(path)
            ) from e
        except OSError as e:
            raise DirectoryCreationError(
                e.errno, f"Unable to create directory {path}: {e.strerror}", str(path)
            ) from e

    def delete(self, path: PathLike) -> bool:
        """Delete a file if present.

        Directories are never removed; a path that is one, or that
        runs through a regular file, counts as absent.

        Args:
            path: File path

        Returns:
            True if a file was removed
        """
        try:
            os.unlink(path)
            return True
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return False
        except PermissionError:
            # unlink on a directory reports EPERM on some platforms
            if os.path.isdir(path):
                return False
            raise

    def mtime(self, path: PathLike) -> Optional[float]:
        """Get modification time of a regular file.

        Args:
            path: File path

        Returns:
            Modification time as a Unix timestamp, or None if no regular
            file exists at path

        Raises:
            OSError: If the path cannot be inspected, e.g. a name that
                is too long
        """
        try:
            st = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        if not stat.S_ISREG(st.st_mode):
            return None
        return st.st_mtime

    def create_exclusive(self, path: PathLike) -> bool:
        """Atomically create an empty file if it does not exist.

        Args:
            path: File path

        Returns:
            True if this call created the file, False if it already existed
        """
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        os.close(fd)
        return True

    def walk_files(self, root: PathLike) -> Iterator[Path]:
        """Iterate over every regular file below root.

        Args:
            root: Directory to scan

        Yields:
            File paths
        """
        base = Path(root)
        if not base.is_dir():
            return
        for file_path in base.rglob("*"):
            if file_path.is_file():
                yield file_path

    def __repr__(self) -> str:
        return "FileSystem()"


__all__ = [
    "FileSystem",
    "FileSystemError",
    "DirectoryCreationError",
    "SourceNotFoundError",
]
