"""Window tracker interface.

The gate should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ContextManager


class AbstractWindowTracker(ABC):
    """Per-identifier sliding-window request counter."""

    @abstractmethod
    def lock_for(self, identifier: str) -> ContextManager[object]:
        """Return the exclusion guarding ``identifier``'s window.

        Callers that need record-then-act to be atomic for one identifier
        hold this while they act. ``record`` and ``prune`` acquire it
        themselves, so it must be reentrant.
        """
        raise NotImplementedError

    @abstractmethod
    def record(self, identifier: str, now_ms: int, window_ms: int | None = None) -> int:
        """Register a request and count the requests in the trailing window.

        Args:
            identifier: Client identifier (e.g., source address).
            now_ms: Arrival instant in epoch milliseconds.
            window_ms: Window length override; defaults to the tracker's window.

        Returns:
            Number of requests within ``window_ms`` of ``now_ms``, this one included.
        """
        raise NotImplementedError

    @abstractmethod
    def prune(self, now_ms: int, window_ms: int | None = None) -> int:
        """Drop expired timestamps everywhere and forget idle identifiers.

        Returns:
            Number of identifiers removed.
        """
        raise NotImplementedError

    @abstractmethod
    def forget(self, identifier: str) -> None:
        """Drop all window state for ``identifier``."""
        raise NotImplementedError

    @abstractmethod
    def active_count(self) -> int:
        """Number of identifiers currently tracked."""
        raise NotImplementedError
