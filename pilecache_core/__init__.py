"""PileCache - Filesystem Cache with Dogpile Avoidance.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A key/value cache stored as plain files, with:
- Age-based expiry from file modification times
- Sub-directory keys ("reports/2024/q1")
- Stampede (dogpile) avoidance through marker files
- JSON or MessagePack structured values, or raw static bytes
- Typed save and lookup results

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        PileCache System                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │  Manager    │  │  Dogpile    │  │ Staleness   │   CACHE     │
    │  │ save/load   │  │  markers    │  │  policy     │   LAYER     │
    │  └──────┬──────┘  └──────┬──────┘  └─────────────┘             │
    │         │                │                                      │
    │  ┌──────┴────────┐  ┌────┴──────────────────────┐              │
    │  │  Serializers  │  │        FileSystem         │   STORAGE    │
    │  │ json/msgpack  │  │ exists/read/write/copy    │   LAYER      │
    │  └───────────────┘  └───────────────────────────┘              │
    └─────────────────────────────────────────────────────────────────┘

On-disk layout:
    <cache_dir>/<subdir>/<leaf>.cache           entry
    <cache_dir>/<subdir>/<leaf>.cache.dogpile   write-in-progress marker

Example Usage:
    from pilecache_core import CacheManager, CacheConfig, MISS

    cache = CacheManager(CacheConfig(cache_dir="/var/cache/app"))

    cache.save_to_cache("users/1", {"name": "John"})
    user = cache.retrieve_from_cache("users/1")
    if user is MISS:
        user = load_user(1)

    # Regenerate once per expiry window
    report = cache.get_or_regenerate("reports/daily", build_report)
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from pilecache_core.cache.staleness import StalenessPolicy
from pilecache_core.cache.key import InvalidKeyError, KeyPaths, KeyResolver
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
from pilecache_core.store.filesystem import (
    FileSystem,
    FileSystemError,
    DirectoryCreationError,
    SourceNotFoundError,
)
from pilecache_core.protocol.serializer import (
    Serializer,
    SerializationError,
    JSONSerializer,
    MsgPackSerializer,
    RawSerializer,
    register_serializer,
)

__all__ = [
    # Cache
    "CacheManager",
    "CacheConfig",
    "CacheStats",
    "CachingInterface",
    "StalenessPolicy",
    "DogpileCoordinator",
    "MarkerState",
    "InvalidKeyError",
    "KeyPaths",
    "KeyResolver",
    # Results
    "MISS",
    "Hit",
    "Lookup",
    "SaveResult",
    "SaveStatus",
    # Storage
    "FileSystem",
    "FileSystemError",
    "DirectoryCreationError",
    "SourceNotFoundError",
    # Protocol
    "Serializer",
    "SerializationError",
    "JSONSerializer",
    "MsgPackSerializer",
    "RawSerializer",
    "register_serializer",
]
