"""In-memory sliding-window tracker.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a fixed pool of striped locks serializes work per identifier,
  and a short registry lock guards membership of the entry map.
"""

from __future__ import annotations

import threading
import zlib
from collections import deque

from ipgate.adapters.rate_limit.base import AbstractWindowTracker


class InMemorySlidingWindowTracker(AbstractWindowTracker):
    """Track request timestamps per identifier within a trailing window.

    A timestamp ``t`` counts at instant ``now`` while ``now - t <= window_ms``.
    Entries for identifiers that stop sending traffic linger until ``prune``
    runs, which is the reaper's job.
    """

    def __init__(self, *, window_ms: int, lock_stripes: int = 64) -> None:
        """Initialize the tracker.

        Args:
            window_ms: Default window length in milliseconds.
            lock_stripes: Size of the lock pool shared by all identifiers.

        Raises:
            ValueError: If window_ms or lock_stripes are invalid.
        """
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be >= 1")

        self._window_ms = window_ms
        self._stripes = [threading.RLock() for _ in range(lock_stripes)]
        self._registry_lock = threading.Lock()
        self._entries: dict[str, deque[int]] = {}

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def lock_for(self, identifier: str) -> threading.RLock:
        # crc32 rather than hash(): stable across processes, no PYTHONHASHSEED surprises
        index = zlib.crc32(identifier.encode()) % len(self._stripes)
        return self._stripes[index]

    @staticmethod
    def _expire(timestamps: deque[int], now_ms: int, window_ms: int) -> None:
        # Arrivals may be out of order, so every entry is checked.
        live = [t for t in timestamps if now_ms - t <= window_ms]
        if len(live) != len(timestamps):
            timestamps.clear()
            timestamps.extend(live)

    def record(self, identifier: str, now_ms: int, window_ms: int | None = None) -> int:
        """Append ``now_ms`` for ``identifier`` and return the live count.

        Raises:
            ValueError: If identifier is empty or window_ms is invalid.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")
        window = self._window_ms if window_ms is None else window_ms
        if window < 1:
            raise ValueError("window_ms must be >= 1")

        with self.lock_for(identifier):
            with self._registry_lock:
                timestamps = self._entries.get(identifier)
                if timestamps is None:
                    timestamps = deque()
                    self._entries[identifier] = timestamps
            timestamps.append(now_ms)
            self._expire(timestamps, now_ms, window)
            return len(timestamps)

    def prune(self, now_ms: int, window_ms: int | None = None) -> int:
        window = self._window_ms if window_ms is None else window_ms
        with self._registry_lock:
            identifiers = list(self._entries)

        removed = 0
        for identifier in identifiers:
            with self.lock_for(identifier):
                timestamps = self._entries.get(identifier)
                if timestamps is None:
                    continue
                self._expire(timestamps, now_ms, window)
                if not timestamps:
                    with self._registry_lock:
                        del self._entries[identifier]
                    removed += 1
        return removed

    def forget(self, identifier: str) -> None:
        """Drop any window state for ``identifier``."""
        with self.lock_for(identifier):
            with self._registry_lock:
                self._entries.pop(identifier, None)

    def active_count(self) -> int:
        with self._registry_lock:
            return len(self._entries)
