"""PileCache Staleness - Age-Based Expiry Policy.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

Clock = Callable[[], float]


class StalenessPolicy:
    """Decides whether a timestamped artifact is still fresh.

    An artifact is fresh while ``now - timestamp < lifespan``. The same
    policy evaluates both cache entries (long lifespan) and dogpile
    markers (short write timeout). Timestamps are supplied by the
    caller; the policy itself performs no I/O.

    Example:
        policy = StalenessPolicy()
        policy.is_fresh(os.stat(path).st_mtime, 1200)
    """

    def __init__(self, clock: Optional[Clock] = None):
        """Initialize policy.

        Args:
            clock: Callable returning the current Unix time
        """
        self._clock = clock or time.time

    def now(self) -> float:
        """Get current time from the policy clock."""
        return self._clock()

    def age(self, timestamp: float) -> float:
        """Get seconds elapsed since timestamp."""
        return self._clock() - timestamp

    def is_fresh(self, timestamp: float, lifespan: float) -> bool:
        """Check if timestamp is within lifespan.

        Args:
            timestamp: Last-write Unix time
            lifespan: Freshness window in seconds

        Returns:
            True if fresh
        """
        return self.age(timestamp) < lifespan

    def is_stale(self, timestamp: float, lifespan: float) -> bool:
        """Check if timestamp is outside lifespan."""
        return not self.is_fresh(timestamp, lifespan)

    def remaining(self, timestamp: float, lifespan: float) -> float:
        """Get seconds left before timestamp goes stale."""
        return max(0.0, lifespan - self.age(timestamp))

    def __repr__(self) -> str:
        return f"StalenessPolicy(clock={self._clock!r})"


__all__ = ["StalenessPolicy", "Clock"]
