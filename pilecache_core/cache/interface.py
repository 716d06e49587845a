"""PileCache Interface - Abstract Caching Contract.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class CachingInterface(ABC):
    """Contract shared by cache managers.

    ``retrieve_from_cache`` reports a miss with the ``MISS`` sentinel
    and ``save_to_cache`` reports any unwritten entry as False; neither
    raises for expected conditions.
    """

    @abstractmethod
    def save_to_cache(self, key: str, value: Any, static: bool = False) -> bool:
        """Store value under key.

        Args:
            key: Cache key
            value: Value to store
            static: Store raw bytes instead of a structured value

        Returns:
            True if the entry was written
        """
        pass

    @abstractmethod
    def retrieve_from_cache(self, key: str, static: bool = False) -> Any:
        """Load value for key.

        Args:
            key: Cache key
            static: Return raw stored bytes

        Returns:
            Stored value or MISS
        """
        pass

    @abstractmethod
    def invalidate_cache(self, key: str) -> bool:
        """Delete entry for key if present.

        Args:
            key: Cache key

        Returns:
            True if an entry was removed
        """
        pass


__all__ = ["CachingInterface"]
