"""Cache module - Core caching components."""

from pilecache_core.cache.staleness import StalenessPolicy
from pilecache_core.cache.key import (
    InvalidKeyError,
    KeyPaths,
    KeyResolver,
    split_key,
)
from pilecache_core.cache.result import (
    MISS,
    Hit,
    Lookup,
    SaveResult,
    SaveStatus,
)
from pilecache_core.cache.dogpile import DogpileCoordinator, MarkerState
from pilecache_core.cache.interface import CachingInterface
from pilecache_core.cache.manager import (
    CacheManager,
    CacheConfig,
    CacheStats,
)

__all__ = [
    "StalenessPolicy",
    "InvalidKeyError",
    "KeyPaths",
    "KeyResolver",
    "split_key",
    "MISS",
    "Hit",
    "Lookup",
    "SaveResult",
    "SaveStatus",
    "DogpileCoordinator",
    "MarkerState",
    "CachingInterface",
    "CacheManager",
    "CacheConfig",
    "CacheStats",
]
