"""Tests for CacheManager.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import os
import time

import pytest

from pilecache_core.cache.dogpile import MarkerState
from pilecache_core.cache.key import InvalidKeyError
from pilecache_core.cache.manager import CacheConfig, CacheManager
from pilecache_core.cache.result import MISS, Hit, SaveStatus
from pilecache_core.protocol.serializer import SerializationError
from pilecache_core.store.filesystem import DirectoryCreationError, FileSystem


class FakeClock:
    """Adjustable clock for simulating elapsed time."""

    def __init__(self):
        self.now = time.time()

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def age_file(path, seconds):
    """Set a file's mtime into the past."""
    past = time.time() - seconds
    os.utime(path, (past, past))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock):
    config = CacheConfig(
        cache_dir=tmp_path / "cache",
        max_file_lifespan=10,
        max_write_time_elapsed=5,
    )
    return CacheManager(config, clock=clock)


class TestRetrieve:
    """Tests for retrieve operations."""

    def test_never_saved_is_miss(self, cache):
        """Test unknown keys report a miss."""
        assert cache.retrieve_from_cache("missing") is MISS
        assert cache.retrieve_from_cache("sub/missing") is MISS
        assert cache.retrieve("missing") is MISS

    def test_save_then_retrieve(self, cache):
        """Test the save/retrieve scenario with a simulated clock."""
        assert cache.save_to_cache("testing", {"marco": "polo"}) is True
        assert cache.retrieve_from_cache("testing") == {"marco": "polo"}

    def test_expires_after_lifespan(self, cache, clock):
        """Test entries expire once the lifespan elapses."""
        cache.save_to_cache("testing", {"marco": "polo"})
        clock.advance(11)
        assert cache.retrieve_from_cache("testing") is MISS

    def test_aged_file_is_miss(self, cache):
        """Test an old mtime makes an existing file stale."""
        cache.save_to_cache("old", {"a": 1})
        paths = cache.paths_for("old")
        age_file(paths.entry, 60)

        assert paths.entry.exists()
        assert cache.retrieve_from_cache("old") is MISS

    def test_nested_structures(self, cache):
        """Test nested mappings and delimiter characters round-trip."""
        value = {
            "outer": {"inner": {"deep": "x"}},
            "quote": "it's => ')",
            "list": [1, 2, {"k": None}],
            "number": 3.5,
        }
        cache.save_to_cache("nested", value)
        assert cache.retrieve_from_cache("nested") == value

    def test_scalar_value(self, cache):
        """Test scalar values round-trip."""
        cache.save_to_cache("scalar", "plain text")
        assert cache.retrieve_from_cache("scalar") == "plain text"

    def test_typed_lookup(self, cache):
        """Test retrieve returns a Hit."""
        cache.save_to_cache("key", [1, 2])
        lookup = cache.retrieve("key")
        assert isinstance(lookup, Hit)
        assert lookup.value == [1, 2]

    def test_undecodable_entry_is_miss(self, cache):
        """Test a torn or corrupt entry reports a miss."""
        paths = cache.paths_for("torn")
        paths.directory.mkdir(parents=True, exist_ok=True)
        paths.entry.write_bytes(b'{"half": ')

        assert cache.retrieve_from_cache("torn") is MISS
        assert cache.get_stats().errors == 1

    def test_exists(self, cache, clock):
        """Test exists tracks freshness."""
        assert not cache.exists("key")
        cache.save_to_cache("key", 1)
        assert cache.exists("key")

        clock.advance(11)
        assert not cache.exists("key")

    def test_falsy_values_are_hits(self, cache):
        """Test stored falsy values are distinguishable from a miss."""
        cache.save_to_cache("empty", {})
        assert cache.retrieve_from_cache("empty") == {}
        assert cache.retrieve_from_cache("empty") is not MISS


class TestStaticMode:
    """Tests for raw static storage."""

    def test_bytes_round_trip(self, cache):
        """Test raw bytes are stored verbatim."""
        payload = b"\x00\x01<html>raw</html>"
        assert cache.save_to_cache("page", payload, static=True)
        assert cache.retrieve_from_cache("page", static=True) == payload

    def test_str_is_rejected(self, cache):
        """Test text must be encoded by the caller in static mode."""
        result = cache.save("text", "héllo", static=True)

        assert result.is_failed
        assert isinstance(result.cause, SerializationError)
        assert not cache.paths_for("text").entry.exists()

    def test_bytearray_round_trip(self, cache):
        """Test bytes-like values read back equal to what was saved."""
        payload = bytearray(b"\xffdata")
        assert cache.save_to_cache("buf", payload, static=True)
        assert cache.retrieve_from_cache("buf", static=True) == payload

    def test_static_rejects_structures(self, cache):
        """Test structured values fail in static mode."""
        result = cache.save("bad", {"a": 1}, static=True)
        assert result.status == SaveStatus.FAILED
        assert isinstance(result.cause, SerializationError)


class TestDogpile:
    """Tests for stampede avoidance."""

    def test_no_marker_after_save(self, cache):
        """Test the marker is removed after a successful save."""
        cache.save_to_cache("key", {"a": 1})
        cache.save_to_cache("key", {"a": 2})
        assert not cache.paths_for("key").marker.exists()

    def test_fresh_marker_skips_save(self, cache):
        """Test an active marker leaves the entry untouched."""
        cache.save_to_cache("key", {"v": "original"})
        paths = cache.paths_for("key")
        paths.marker.write_bytes(b"")

        assert cache.save_to_cache("key", {"v": "updated"}) is False
        assert cache.retrieve_from_cache("key") == {"v": "original"}
        assert paths.marker.exists()

    def test_skip_is_typed(self, cache):
        """Test skips are distinguishable from failures."""
        cache.save_to_cache("key", 1)
        cache.paths_for("key").marker.write_bytes(b"")

        result = cache.save("key", 2)
        assert result.is_skipped
        assert not result
        assert cache.get_stats().skips == 1
        assert cache.get_stats().failures == 0

    def test_stale_marker_is_broken(self, cache):
        """Test a marker older than the write timeout is overridden."""
        cache.save_to_cache("key", {"v": "original"})
        paths = cache.paths_for("key")
        paths.marker.write_bytes(b"")
        age_file(paths.marker, 30)

        assert cache.marker_state("key") == MarkerState.STALE
        assert cache.save_to_cache("key", {"v": "updated"}) is True
        assert cache.retrieve_from_cache("key") == {"v": "updated"}
        assert not paths.marker.exists()
        assert cache.broken_markers == 1

    def test_is_dogpiled(self, cache):
        """Test marker detection."""
        cache.save_to_cache("key", 1)
        assert not cache.is_dogpiled("key")
        assert cache.marker_state("key") == MarkerState.ABSENT

        cache.paths_for("key").marker.write_bytes(b"")
        assert cache.is_dogpiled("key")

    def test_first_save_writes_entry(self, cache):
        """Test a brand-new key is written on its first save."""
        assert cache.save_to_cache("fresh/key", {"first": True})
        paths = cache.paths_for("fresh/key")
        assert paths.entry.exists()
        assert not paths.marker.exists()

    def test_marker_snapshots_previous_entry(self, tmp_path):
        """Test the marker holds the previous value while writing."""
        seen = {}

        class RecordingFileSystem(FileSystem):
            def write(self, path, data):
                marker = str(path) + ".dogpile"
                if os.path.exists(marker):
                    with open(marker, "rb") as f:
                        seen["marker"] = f.read()
                return super().write(path, data)

        cache = CacheManager(
            CacheConfig(cache_dir=tmp_path),
            fs=RecordingFileSystem(),
        )
        cache.save_to_cache("key", {"v": 1})
        assert seen["marker"] == b""

        cache.save_to_cache("key", {"v": 2})
        assert seen["marker"] == b'{"v": 1}'


class TestSaveFailures:
    """Tests for failed saves."""

    def test_write_failure_releases_marker(self, tmp_path):
        """Test a failed write reports the cause and drops the marker."""

        class BrokenFileSystem(FileSystem):
            def write(self, path, data):
                raise PermissionError(13, "Permission denied", str(path))

        cache = CacheManager(CacheConfig(cache_dir=tmp_path), fs=BrokenFileSystem())
        result = cache.save("key", {"a": 1})

        assert result.is_failed
        assert isinstance(result.cause, PermissionError)
        assert cache.save_to_cache("key", {"a": 1}) is False
        assert not cache.paths_for("key").marker.exists()
        assert cache.get_stats().failures == 2

    def test_directory_creation_failure(self, tmp_path):
        """Test a blocked directory is reported as a failure."""
        (tmp_path / "blocked").write_text("not a directory")
        cache = CacheManager(CacheConfig(cache_dir=tmp_path))

        result = cache.save("blocked/key", 1)
        assert result.is_failed
        assert isinstance(result.cause, DirectoryCreationError)

    def test_unencodable_value(self, cache):
        """Test values the serializer rejects leave no files behind."""
        result = cache.save("key", {"a": object()})
        paths = cache.paths_for("key")

        assert result.is_failed
        assert not paths.entry.exists()
        assert not paths.marker.exists()
        assert cache.get_stats().last_error is not None


class TestUnusablePaths:
    """Tests for keys whose paths cannot hold an entry."""

    def test_key_under_entry_file(self, cache):
        """Test a key nested below an existing entry file is absent."""
        cache.save_to_cache("a", 1)

        assert cache.retrieve_from_cache("a.cache/x") is MISS
        assert not cache.exists("a.cache/x")
        assert not cache.is_dogpiled("a.cache/x")
        assert cache.marker_state("a.cache/x") == MarkerState.ABSENT
        assert cache.invalidate_cache("a.cache/x") is False
        assert cache.retrieve_from_cache("a") == 1
        assert cache.get_stats().errors == 0

    def test_overlong_key(self, cache):
        """Test a name the filesystem rejects is a miss, not an error."""
        key = "k" * 300

        assert cache.retrieve_from_cache(key) is MISS
        assert not cache.exists(key)
        assert not cache.is_dogpiled(key)
        assert cache.invalidate_cache(key) is False
        assert cache.get_stats().errors >= 1

    def test_overlong_key_save_fails(self, cache):
        """Test saving under a name the filesystem rejects reports failure."""
        result = cache.save("k" * 300, 1)
        assert result.is_failed
        assert isinstance(result.cause, OSError)

    def test_directory_at_entry_path(self, cache):
        """Test a directory named like an entry is not an entry."""
        cache.save_to_cache("x.cache/y", 1)
        entry_dir = cache.paths_for("x").entry
        assert entry_dir.is_dir()

        assert not cache.exists("x")
        assert cache.retrieve_from_cache("x") is MISS
        assert not cache.is_dogpiled("x")
        assert cache.invalidate_cache("x") is False
        assert entry_dir.is_dir()
        assert cache.get_stats().errors == 0

    def test_directory_at_marker_path(self, cache):
        """Test a directory named like a marker is not a marker."""
        cache.save_to_cache("x.cache.dogpile/y", 1)

        assert cache.marker_state("x") == MarkerState.ABSENT
        assert not cache.is_dogpiled("x")


class TestInvalidate:
    """Tests for invalidation."""

    def test_invalidate_existing(self, cache):
        """Test invalidating removes the entry."""
        cache.save_to_cache("key", {"a": 1})
        assert cache.invalidate_cache("key") is True
        assert not cache.paths_for("key").entry.exists()
        assert cache.retrieve_from_cache("key") is MISS

    def test_invalidate_missing(self, cache):
        """Test invalidating a missing key is a no-op."""
        assert cache.invalidate_cache("never/saved") is False


class TestKeys:
    """Tests for key layout."""

    def test_subdirectories_created(self, cache):
        """Test sub-directory keys create intermediate directories."""
        cache.save_to_cache("sub/dir/leaf", {"x": 1})
        paths = cache.paths_for("sub/dir/leaf")

        assert paths.directory == cache.cache_dir / "sub" / "dir"
        assert paths.entry == cache.cache_dir / "sub" / "dir" / "leaf.cache"
        assert paths.entry.exists()
        assert cache.retrieve_from_cache("sub/dir/leaf") == {"x": 1}

    def test_invalid_key_raises(self, cache):
        """Test keys escaping the root are rejected."""
        with pytest.raises(InvalidKeyError):
            cache.save_to_cache("../escape", 1)
        with pytest.raises(InvalidKeyError):
            cache.retrieve_from_cache("")


class TestRegeneration:
    """Tests for get_or_regenerate and the cached decorator."""

    def test_factory_called_once(self, cache):
        """Test the factory only runs on a miss."""
        calls = [0]

        def factory():
            calls[0] += 1
            return {"computed": True}

        assert cache.get_or_regenerate("key", factory) == {"computed": True}
        assert cache.get_or_regenerate("key", factory) == {"computed": True}
        assert calls[0] == 1

    def test_factory_reruns_after_expiry(self, cache, clock):
        """Test expired entries are regenerated."""
        calls = [0]

        def factory():
            calls[0] += 1
            return calls[0]

        cache.get_or_regenerate("key", factory)
        clock.advance(11)
        assert cache.get_or_regenerate("key", factory) == 2

    def test_value_returned_when_dogpiled(self, cache):
        """Test regenerated values are returned even if the save is skipped."""
        paths = cache.paths_for("key")
        paths.directory.mkdir(parents=True, exist_ok=True)
        paths.marker.write_bytes(b"")

        assert cache.get_or_regenerate("key", lambda: "computed") == "computed"
        assert not paths.entry.exists()

    def test_cached_decorator(self, cache):
        """Test cached decorator."""
        calls = [0]

        @cache.cached()
        def expensive(n, scale=1):
            calls[0] += 1
            return {"result": n * scale}

        assert expensive(2, scale=3) == {"result": 6}
        assert expensive(2, scale=3) == {"result": 6}
        assert calls[0] == 1

        assert expensive.cache_clear(2, scale=3) is True
        expensive(2, scale=3)
        assert calls[0] == 2

    def test_cached_unsafe_arguments(self, cache):
        """Test arguments with separators are hashed into a safe leaf."""

        @cache.cached(namespace="paths")
        def lookup(path):
            return path.upper()

        assert lookup("../etc/passwd") == "../ETC/PASSWD"
        assert lookup("../etc/passwd") == "../ETC/PASSWD"
        assert (cache.cache_dir / "paths").is_dir()


class TestMaintenance:
    """Tests for purge_stale and clear."""

    def test_purge_stale(self, cache):
        """Test only expired entries and stale markers are purged."""
        cache.save_to_cache("fresh", 1)
        cache.save_to_cache("old", 2)
        cache.save_to_cache("sub/old", 3)
        age_file(cache.paths_for("old").entry, 60)
        age_file(cache.paths_for("sub/old").entry, 60)

        marker = cache.paths_for("fresh").marker
        marker.write_bytes(b"")
        age_file(marker, 30)

        assert cache.purge_stale() == 3
        assert cache.retrieve_from_cache("fresh") == 1
        assert not marker.exists()

    def test_clear(self, cache):
        """Test clear removes entries and markers."""
        cache.save_to_cache("a", 1)
        cache.save_to_cache("b/c", 2)
        cache.paths_for("a").marker.write_bytes(b"")

        assert cache.clear() == 3
        assert cache.retrieve_from_cache("a") is MISS

    def test_purge_missing_root(self, tmp_path):
        """Test maintenance on a root that was never created."""
        cache = CacheManager(CacheConfig(cache_dir=tmp_path / "nothing"))
        assert cache.purge_stale() == 0
        assert cache.clear() == 0


class TestCacheConfig:
    """Tests for configuration."""

    def test_defaults(self, tmp_path):
        """Test default lifespans."""
        config = CacheConfig(cache_dir=str(tmp_path))
        assert config.max_file_lifespan == 1200
        assert config.max_write_time_elapsed == 60
        assert config.cache_dir == tmp_path

    def test_from_params(self, tmp_path):
        """Test the uppercase parameter mapping."""
        config = CacheConfig.from_params(
            tmp_path, {"MAX_FILE_LIFESPAN": 10, "MAX_WRITE_TIME_ELAPSED": 2}
        )
        assert config.max_file_lifespan == 10
        assert config.max_write_time_elapsed == 2

        assert CacheConfig.from_params(tmp_path).max_file_lifespan == 1200

    def test_rejects_non_positive(self, tmp_path):
        """Test invalid lifespans are rejected."""
        with pytest.raises(ValueError):
            CacheConfig(cache_dir=tmp_path, max_file_lifespan=0)
        with pytest.raises(ValueError):
            CacheConfig(cache_dir=tmp_path, max_write_time_elapsed=-1)

    def test_unknown_serializer(self, tmp_path):
        """Test an unknown serializer name fails at construction."""
        with pytest.raises(KeyError):
            CacheManager(CacheConfig(cache_dir=tmp_path, serializer="yaml"))


class TestCacheStats:
    """Tests for cache statistics."""

    def test_counters(self, cache):
        """Test hit, miss and save counters."""
        cache.save_to_cache("key", 1)
        cache.retrieve_from_cache("key")
        cache.retrieve_from_cache("key")
        cache.retrieve_from_cache("missing")

        stats = cache.get_stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.saves == 1
        assert stats.hit_rate == pytest.approx(2 / 3, rel=0.01)

    def test_reset_stats(self, cache):
        """Test stats reset."""
        cache.save_to_cache("key", 1)
        cache.invalidate_cache("key")
        cache.reset_stats()

        assert cache.get_stats().to_dict()["saves"] == 0
        assert cache.get_stats().invalidations == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
