"""PileCache Results - Typed Outcomes for Cache Operations.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Optional, Union


class _MissType:
    """Sentinel type for a cache miss."""

    _instance: Optional["_MissType"] = None

    def __new__(cls) -> "_MissType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_MissType, ())

    def __repr__(self) -> str:
        return "MISS"


MISS = _MissType()


@dataclass(frozen=True)
class Hit:
    """A fresh entry was found.

    Attributes:
        value: Loaded value
    """

    value: Any

    def __bool__(self) -> bool:
        return True


Lookup = Union[Hit, _MissType]


class SaveStatus(Enum):
    """Save outcomes."""

    SAVED = auto()     # Entry written
    SKIPPED = auto()   # Another writer holds the marker
    FAILED = auto()    # I/O or encoding failure


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a save.

    Truthy only when the entry was written, so it can be used wherever
    a plain success flag is expected.

    Attributes:
        key: Cache key
        status: Save outcome
        cause: Exception behind a failure
    """

    key: str
    status: SaveStatus
    cause: Optional[BaseException] = None

    @classmethod
    def saved(cls, key: str) -> "SaveResult":
        return cls(key=key, status=SaveStatus.SAVED)

    @classmethod
    def skipped(cls, key: str) -> "SaveResult":
        return cls(key=key, status=SaveStatus.SKIPPED)

    @classmethod
    def failed(cls, key: str, cause: BaseException) -> "SaveResult":
        return cls(key=key, status=SaveStatus.FAILED, cause=cause)

    @property
    def is_saved(self) -> bool:
        return self.status == SaveStatus.SAVED

    @property
    def is_skipped(self) -> bool:
        return self.status == SaveStatus.SKIPPED

    @property
    def is_failed(self) -> bool:
        return self.status == SaveStatus.FAILED

    def __bool__(self) -> bool:
        return self.is_saved


__all__ = ["MISS", "Hit", "Lookup", "SaveStatus", "SaveResult"]
