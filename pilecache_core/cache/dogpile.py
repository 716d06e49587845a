"""PileCache Dogpile - Stampede Avoidance via Marker Files.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A marker file next to an entry says "a write is in progress". Writers
acquire it with an exclusive create, so only one of them regenerates an
entry per expiry window. Everyone else skips the write and keeps
serving whatever is on disk. A marker older than the write timeout is
assumed to belong to a dead writer and is broken.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum, auto
from typing import Iterator, Optional

from pilecache_core.cache.key import KeyPaths
from pilecache_core.cache.staleness import StalenessPolicy
from pilecache_core.store.filesystem import FileSystem, SourceNotFoundError

logger = logging.getLogger(__name__)


class MarkerState(Enum):
    """Dogpile marker states."""

    ABSENT = auto()   # No write in progress
    ACTIVE = auto()   # Write in progress
    STALE = auto()    # Writer presumed dead


class DogpileCoordinator:
    """Grants exclusive regeneration rights for a key.

    Example:
        coordinator = DogpileCoordinator(FileSystem(), StalenessPolicy(), 60)
        with coordinator.hold(paths) as acquired:
            if acquired:
                write_entry(paths.entry)
    """

    def __init__(
        self,
        fs: FileSystem,
        policy: StalenessPolicy,
        write_timeout: float,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize coordinator.

        Args:
            fs: Filesystem access
            policy: Staleness policy used to age markers
            write_timeout: Seconds before a marker is considered stale
            log: Logger override
        """
        self.fs = fs
        self.policy = policy
        self.write_timeout = write_timeout
        self.logger = log or logger
        self.broken_markers = 0

    def state(self, paths: KeyPaths) -> MarkerState:
        """Get marker state for a key.

        Args:
            paths: Resolved key paths

        Returns:
            MarkerState
        """
        try:
            marker_time = self.fs.mtime(paths.marker)
        except OSError as e:
            self.logger.warning(f"Cannot inspect dogpile marker for {paths.key}: {e}")
            return MarkerState.ABSENT

        if marker_time is None:
            return MarkerState.ABSENT
        if self.policy.is_fresh(marker_time, self.write_timeout):
            return MarkerState.ACTIVE
        return MarkerState.STALE

    def is_active(self, paths: KeyPaths) -> bool:
        """Check if another writer currently holds the key."""
        return self.state(paths) == MarkerState.ACTIVE

    def acquire(self, paths: KeyPaths) -> bool:
        """Try to take the marker for a key.

        On success the marker holds a snapshot of the current entry, or
        is empty when no entry exists yet.

        Args:
            paths: Resolved key paths

        Returns:
            True if acquired, False if another writer holds it
        """
        if not self._create(paths):
            # None when released between the create attempt and the stat
            marker_time = self.fs.mtime(paths.marker)

            if marker_time is not None:
                if self.policy.is_fresh(marker_time, self.write_timeout):
                    self.logger.debug(f"Dogpile active for {paths.key}, skipping write")
                    return False

                # Only break the marker that was judged stale
                if self.fs.mtime(paths.marker) == marker_time:
                    self.logger.debug(
                        f"Breaking stale dogpile marker for {paths.key} "
                        f"(age {self.policy.age(marker_time):.1f}s)"
                    )
                    self.fs.delete(paths.marker)
                    self.broken_markers += 1

            # One retry; losing it means another writer broke the marker first
            if not self._create(paths):
                self.logger.debug(f"Lost dogpile race for {paths.key}, skipping write")
                return False

        try:
            self._snapshot(paths)
        except OSError:
            self.release(paths)
            raise
        return True

    def release(self, paths: KeyPaths) -> None:
        """Remove the marker for a key."""
        self.fs.delete(paths.marker)

    @contextmanager
    def hold(self, paths: KeyPaths) -> Iterator[bool]:
        """Hold the marker for the duration of a block.

        Yields whether the marker was acquired. An acquired marker is
        released when the block exits, including on error.

        Args:
            paths: Resolved key paths
        """
        acquired = self.acquire(paths)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(paths)

    def _create(self, paths: KeyPaths) -> bool:
        return self.fs.create_exclusive(paths.marker)

    def _snapshot(self, paths: KeyPaths) -> None:
        """Copy the current entry into the marker as a fallback."""
        if not self.fs.exists(paths.entry):
            return
        try:
            self.fs.copy(paths.entry, paths.marker)
        except SourceNotFoundError:
            # Entry invalidated between the check and the copy
            pass

    def __repr__(self) -> str:
        return f"DogpileCoordinator(write_timeout={self.write_timeout})"


__all__ = ["DogpileCoordinator", "MarkerState"]
