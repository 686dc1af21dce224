"""Background pruning of idle window tracker entries.

Identifiers that stop sending traffic keep their (expired) timestamps in the
tracker until something looks at them again. The reaper sweeps the whole
tracker on a fixed interval so memory stays proportional to the number of
recently active clients.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Callable

from ipgate.adapters.rate_limit.base import AbstractWindowTracker

logger = logging.getLogger(__name__)


class Reaper:
    """Periodically calls ``tracker.prune`` from an asyncio task."""

    def __init__(
        self,
        tracker: AbstractWindowTracker,
        *,
        interval_ms: int = 60_000,
        window_ms: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the reaper.

        Args:
            tracker: Tracker to prune.
            interval_ms: Delay between sweeps in milliseconds.
            window_ms: Expiry window; defaults to the tracker's own.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If interval_ms is invalid.
        """
        if interval_ms < 1:
            raise ValueError("interval_ms must be >= 1")
        self._tracker = tracker
        self._interval_ms = interval_ms
        self._window_ms = window_ms
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Sweep the tracker once and return how many identifiers were dropped."""
        now_ms = int(self._clock() * 1000)
        removed = self._tracker.prune(now_ms, self._window_ms)
        logger.debug(
            "reaper.sweep",
            extra={"removed": removed, "active": self._tracker.active_count()},
        )
        return removed

    async def _run(self) -> None:
        interval_s = self._interval_ms / 1000
        while True:
            await asyncio.sleep(interval_s)
            try:
                self.run_once()
            except Exception:
                logger.exception("reaper.sweep_failed")

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="ipgate-reaper")
        logger.info("reaper.started", extra={"interval_ms": self._interval_ms})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("reaper.stopped")
