"""Over/under threshold locks.

A line such as "Over 48.5" is pinned per (match, market) the first time it is
established and reused until the match settles, so an open position is never
settled against a different number than the one it was bought at.
"""

import math


class ThresholdLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[tuple[int, int], float] = {}

    def lock(self, match_id: int, market_id: int, incoming: float | None, default: float) -> float:
        """Return the pinned line, pinning ``incoming`` (or ``default``) if none exists."""
        key = (match_id, market_id)
        existing = self._locks.get(key)
        if existing is not None:
            return existing

        if incoming is not None and math.isfinite(incoming):
            threshold = incoming
        else:
            threshold = default
        self._locks[key] = threshold
        return threshold

    def get(self, match_id: int, market_id: int) -> float | None:
        return self._locks.get((match_id, market_id))

    def release_match(self, match_id: int) -> int:
        """Drop every lock for a match. Returns how many were released."""
        keys = [key for key in self._locks if key[0] == match_id]
        for key in keys:
            del self._locks[key]
        return len(keys)

    def __len__(self) -> int:
        return len(self._locks)
