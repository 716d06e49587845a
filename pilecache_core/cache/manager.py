"""PileCache Manager - Filesystem Cache with Dogpile Avoidance.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from pilecache_core.cache.dogpile import DogpileCoordinator, MarkerState
from pilecache_core.cache.interface import CachingInterface
from pilecache_core.cache.key import KeyPaths, KeyResolver
from pilecache_core.cache.result import MISS, Hit, Lookup, SaveResult
from pilecache_core.cache.staleness import Clock, StalenessPolicy
from pilecache_core.protocol.serializer import (
    RawSerializer,
    SerializationError,
    Serializer,
    get_serializer,
)
from pilecache_core.store.filesystem import FileSystem

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_LIFESPAN = 1200
DEFAULT_MAX_WRITE_TIME_ELAPSED = 60


@dataclass
class CacheConfig:
    """Cache manager configuration.

    Attributes:
        cache_dir: Root directory for entries and markers
        max_file_lifespan: Seconds an entry stays fresh
        max_write_time_elapsed: Seconds before a dogpile marker is stale
        serializer: Structured-mode format name; any format added with
            register_serializer can be named
        entry_suffix: Entry file suffix
        marker_suffix: Suffix appended to the entry name for markers
    """

    cache_dir: Union[str, Path]
    max_file_lifespan: float = DEFAULT_MAX_FILE_LIFESPAN
    max_write_time_elapsed: float = DEFAULT_MAX_WRITE_TIME_ELAPSED
    serializer: str = "json"
    entry_suffix: str = ".cache"
    marker_suffix: str = ".dogpile"

    def __post_init__(self):
        self.cache_dir = Path(self.cache_dir)
        if self.max_file_lifespan <= 0:
            raise ValueError(f"max_file_lifespan must be positive: {self.max_file_lifespan}")
        if self.max_write_time_elapsed <= 0:
            raise ValueError(
                f"max_write_time_elapsed must be positive: {self.max_write_time_elapsed}"
            )
        if not self.entry_suffix or not self.marker_suffix:
            raise ValueError("entry_suffix and marker_suffix must be non-empty")

    @classmethod
    def from_params(
        cls,
        cache_dir: Union[str, Path],
        params: Optional[Mapping[str, Any]] = None,
    ) -> "CacheConfig":
        """Build config from an uppercase parameter mapping.

        Recognizes ``MAX_FILE_LIFESPAN`` and ``MAX_WRITE_TIME_ELAPSED``;
        other keys are ignored.

        Args:
            cache_dir: Root directory
            params: Parameter mapping

        Returns:
            CacheConfig instance
        """
        params = params or {}
        return cls(
            cache_dir=cache_dir,
            max_file_lifespan=params.get("MAX_FILE_LIFESPAN", DEFAULT_MAX_FILE_LIFESPAN),
            max_write_time_elapsed=params.get(
                "MAX_WRITE_TIME_ELAPSED", DEFAULT_MAX_WRITE_TIME_ELAPSED
            ),
        )


@dataclass
class CacheStats:
    """Cache manager statistics.

    Attributes:
        hits: Fresh entries returned
        misses: Absent, stale or unreadable entries
        saves: Entries written
        skips: Saves skipped because of an active dogpile marker
        failures: Saves that failed
        invalidations: Entries removed by invalidate
        errors: Filesystem or encoding errors seen
        last_error: Last error message
        last_error_at: When the last error happened
    """

    hits: int = 0
    misses: int = 0
    saves: int = 0
    skips: int = 0
    failures: int = 0
    invalidations: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()

    def reset(self) -> None:
        """Reset statistics."""
        self.hits = 0
        self.misses = 0
        self.saves = 0
        self.skips = 0
        self.failures = 0
        self.invalidations = 0
        self.errors = 0
        self.last_error = None
        self.last_error_at = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "saves": self.saves,
            "skips": self.skips,
            "failures": self.failures,
            "invalidations": self.invalidations,
            "errors": self.errors,
            "hit_rate": self.hit_rate,
        }


class CacheManager(CachingInterface):
    """Filesystem-backed key/value cache.

    Each key maps to ``<cache_dir>/<subdir>/<leaf>.cache``; a key may
    contain ``/`` to address sub-directories. An entry is fresh while
    its modification time is younger than ``max_file_lifespan``.

    Writes are coordinated with a sibling ``.cache.dogpile`` marker. The
    first writer to create it regenerates the entry; concurrent writers
    skip while the marker is younger than ``max_write_time_elapsed``.
    Reads take no lock and may observe a partially written file, which
    surfaces as a miss in structured mode.

    Example:
        cache = CacheManager(CacheConfig(cache_dir="/var/cache/app"))

        cache.save_to_cache("users/1", {"name": "alice"})
        user = cache.retrieve_from_cache("users/1")
        if user is MISS:
            ...

        @cache.cached()
        def report(day):
            return build_report(day)
    """

    def __init__(
        self,
        config: CacheConfig,
        fs: Optional[FileSystem] = None,
        serializer: Optional[Serializer] = None,
        clock: Optional[Clock] = None,
        log: Optional[logging.Logger] = None,
    ):
        """Initialize cache manager.

        Args:
            config: Cache configuration
            fs: Filesystem access
            serializer: Structured-mode serializer, overrides config.serializer
            clock: Callable returning the current Unix time
            log: Logger override
        """
        self.config = config
        self.fs = fs or FileSystem()
        self.serializer = serializer or get_serializer(config.serializer)
        self.logger = log or logger

        self._raw = RawSerializer()
        self._policy = StalenessPolicy(clock)
        self._resolver = KeyResolver(
            Path(config.cache_dir),
            entry_suffix=config.entry_suffix,
            marker_suffix=config.marker_suffix,
        )
        self._dogpile = DogpileCoordinator(
            self.fs,
            self._policy,
            config.max_write_time_elapsed,
            log=self.logger,
        )
        self._stats = CacheStats()

    @property
    def cache_dir(self) -> Path:
        return self._resolver.root

    def paths_for(self, key: str) -> KeyPaths:
        """Resolve key to its entry and marker paths."""
        return self._resolver.resolve(key)

    def retrieve(self, key: str, static: bool = False) -> Lookup:
        """Load a fresh entry.

        Args:
            key: Cache key
            static: Return the stored bytes verbatim instead of a decoded value

        Returns:
            Hit with the value, or MISS
        """
        paths = self._resolver.resolve(key)

        try:
            modified = self.fs.mtime(paths.entry)
        except OSError as e:
            self.logger.error(f"Error inspecting {key}: {e}")
            self._stats.record_error(str(e))
            return self._miss(key, "unreadable")

        if modified is None:
            return self._miss(key, "absent")

        if not self._policy.is_fresh(modified, self.config.max_file_lifespan):
            return self._miss(key, f"stale ({self._policy.age(modified):.1f}s old)")

        try:
            data = self.fs.read(paths.entry)
        except FileNotFoundError:
            return self._miss(key, "removed during read")
        except OSError as e:
            self.logger.error(f"Error reading {key}: {e}")
            self._stats.record_error(str(e))
            return self._miss(key, "unreadable")

        codec = self._raw if static else self.serializer
        try:
            value = codec.deserialize(data)
        except SerializationError as e:
            # Likely a torn read of an entry being rewritten
            self.logger.warning(f"Undecodable entry for {key}: {e}")
            self._stats.record_error(str(e))
            return self._miss(key, "undecodable")

        self._stats.hits += 1
        self.logger.debug(f"Cache hit for {key}")
        return Hit(value)

    def retrieve_from_cache(self, key: str, static: bool = False) -> Any:
        """Load a fresh entry's value.

        Args:
            key: Cache key
            static: Return the stored bytes verbatim instead of a decoded value

        Returns:
            Stored value, or MISS
        """
        lookup = self.retrieve(key, static=static)
        if isinstance(lookup, Hit):
            return lookup.value
        return MISS

    def save(self, key: str, value: Any, static: bool = False) -> SaveResult:
        """Write an entry unless another writer is regenerating it.

        Args:
            key: Cache key
            value: Value to store; static mode accepts bytes only, so a
                static retrieve returns exactly what was saved
            static: Store raw bytes instead of a structured value

        Returns:
            SaveResult describing the outcome
        """
        paths = self._resolver.resolve(key)
        codec = self._raw if static else self.serializer

        try:
            self.fs.makedirs(paths.directory)

            with self._dogpile.hold(paths) as acquired:
                if not acquired:
                    self._stats.skips += 1
                    return SaveResult.skipped(key)

                data = codec.serialize(value)
                self.fs.write(paths.entry, data)

        except (OSError, SerializationError) as e:
            self.logger.error(f"Error writing {key}: {e}")
            self._stats.record_error(str(e))
            self._stats.failures += 1
            return SaveResult.failed(key, e)

        self._stats.saves += 1
        self.logger.debug(f"Saved {key} ({len(data)} bytes)")
        return SaveResult.saved(key)

    def save_to_cache(self, key: str, value: Any, static: bool = False) -> bool:
        """Write an entry.

        Returns:
            True if written; False if skipped or failed
        """
        return bool(self.save(key, value, static=static))

    def invalidate_cache(self, key: str) -> bool:
        """Delete the entry for key.

        Args:
            key: Cache key

        Returns:
            True if an entry was removed
        """
        paths = self._resolver.resolve(key)
        try:
            removed = self.fs.delete(paths.entry)
        except OSError as e:
            self.logger.error(f"Error invalidating {key}: {e}")
            self._stats.record_error(str(e))
            return False

        if removed:
            self._stats.invalidations += 1
            self.logger.debug(f"Invalidated {key}")
        return removed

    def exists(self, key: str) -> bool:
        """Check if a fresh entry exists for key."""
        paths = self._resolver.resolve(key)
        try:
            modified = self.fs.mtime(paths.entry)
        except OSError as e:
            self.logger.error(f"Error inspecting {key}: {e}")
            self._stats.record_error(str(e))
            return False

        if modified is None:
            return False
        return self._policy.is_fresh(modified, self.config.max_file_lifespan)

    def is_dogpiled(self, key: str) -> bool:
        """Check if another writer is regenerating key."""
        return self._dogpile.is_active(self._resolver.resolve(key))

    def marker_state(self, key: str) -> MarkerState:
        """Get dogpile marker state for key."""
        return self._dogpile.state(self._resolver.resolve(key))

    def get_or_regenerate(
        self,
        key: str,
        factory: Callable[[], Any],
        static: bool = False,
    ) -> Any:
        """Get a fresh value or regenerate it.

        The regenerated value is returned even when the save is skipped
        because another writer holds the key.

        Args:
            key: Cache key
            factory: Callable producing the value
            static: Use static mode

        Returns:
            Cached or regenerated value
        """
        lookup = self.retrieve(key, static=static)
        if isinstance(lookup, Hit):
            return lookup.value

        value = factory()
        result = self.save(key, value, static=static)
        if result.is_skipped:
            self.logger.debug(f"Regenerated {key} without saving; another writer active")
        return value

    def cached(
        self,
        key_builder: Optional[Callable[..., str]] = None,
        namespace: Optional[str] = None,
        static: bool = False,
    ):
        """Decorator to cache function results.

        Args:
            key_builder: Function to build cache key from call arguments
            namespace: Sub-directory for the function's entries
            static: Use static mode

        Returns:
            Decorator function
        """
        def decorator(func: Callable) -> Callable:
            prefix = namespace or func.__name__

            def make_key(*args, **kwargs) -> str:
                if key_builder:
                    return key_builder(*args, **kwargs)

                parts = [str(a) for a in args]
                parts.extend(f"{k}={v}" for k, v in sorted(kwargs.items()))
                leaf = ":".join(parts) or "_"
                # Arguments may not be filesystem-safe
                if len(leaf) > 200 or "/" in leaf or "\\" in leaf or leaf in (".", ".."):
                    leaf = hashlib.sha256(leaf.encode()).hexdigest()
                return f"{prefix}/{leaf}"

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                cache_key = make_key(*args, **kwargs)
                return self.get_or_regenerate(
                    cache_key,
                    lambda: func(*args, **kwargs),
                    static=static,
                )

            def cache_clear(*args, **kwargs) -> bool:
                """Invalidate the cached result for these arguments."""
                return self.invalidate_cache(make_key(*args, **kwargs))

            wrapper.cache_clear = cache_clear
            wrapper.cache = self
            return wrapper

        return decorator

    def purge_stale(self) -> int:
        """Remove expired entries and stale markers from disk.

        Returns:
            Number of files removed
        """
        removed = 0

        for file_path in self.fs.walk_files(self.cache_dir):
            if self._resolver.is_marker(file_path):
                lifespan = self.config.max_write_time_elapsed
            elif self._resolver.is_entry(file_path):
                lifespan = self.config.max_file_lifespan
            else:
                continue

            modified = self.fs.mtime(file_path)
            if modified is None:
                continue

            if self._policy.is_stale(modified, lifespan) and self.fs.delete(file_path):
                removed += 1

        if removed:
            self.logger.info(f"Purged {removed} stale files from {self.cache_dir}")
        return removed

    def clear(self) -> int:
        """Remove every entry and marker from disk.

        Returns:
            Number of files removed
        """
        removed = 0
        for file_path in self.fs.walk_files(self.cache_dir):
            if self._resolver.is_marker(file_path) or self._resolver.is_entry(file_path):
                if self.fs.delete(file_path):
                    removed += 1
        return removed

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats.reset()

    @property
    def broken_markers(self) -> int:
        """Number of stale markers broken by this manager."""
        return self._dogpile.broken_markers

    def _miss(self, key: str, reason: str) -> Lookup:
        self._stats.misses += 1
        self.logger.debug(f"Cache miss for {key}: {reason}")
        return MISS

    def __repr__(self) -> str:
        return (
            f"CacheManager(cache_dir={self.cache_dir}, "
            f"lifespan={self.config.max_file_lifespan}s)"
        )


__all__ = [
    "CacheManager",
    "CacheConfig",
    "CacheStats",
    "DEFAULT_MAX_FILE_LIFESPAN",
    "DEFAULT_MAX_WRITE_TIME_ELAPSED",
]
