"""Line-oriented audit log backed by a local file."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from ipgate.adapters.audit.base import AbstractAuditLog, AuditEvent

logger = logging.getLogger(__name__)


class FileAuditLog(AbstractAuditLog):
    """Append one line per event to ``path``.

    The file is opened in append mode for each event, so external rotation
    (logrotate, manual moves) is picked up without a restart.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._failures = 0

    @property
    def path(self) -> Path:
        return self._path

    @property
    def failures(self) -> int:
        """Number of events that could not be written."""
        return self._failures

    def append(self, event: AuditEvent) -> None:
        line = event.to_line() + "\n"
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
            except OSError as exc:
                self._failures += 1
                logger.warning(
                    "audit.write_failed",
                    extra={
                        "path": str(self._path),
                        "event_kind": event.kind.value,
                        "error_type": type(exc).__name__,
                        "error_msg": str(exc),
                    },
                )


class InMemoryAuditLog(AbstractAuditLog):
    """Keeps events in a list; for tests and embedding without a file."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[AuditEvent] = []

    def append(self, event: AuditEvent) -> None:
        with self._lock:
            self.events.append(event)

    def lines(self) -> list[str]:
        with self._lock:
            return [event.to_line() for event in self.events]
