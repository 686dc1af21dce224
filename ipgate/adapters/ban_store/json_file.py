"""JSON-file ban store.

The whole ban map is the unit of durability: every successful ``ban`` or
``unban`` rewrites the file (temp file, fsync, atomic rename) before
returning. Writers are serialized; readers see the last published map
without locking.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from ipgate.adapters.ban_store.base import AbstractBanStore, BanRecord
from ipgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class JsonFileBanStore(AbstractBanStore):
    """Ban store persisted as a human-readable JSON document.

    File layout::

        {
          "1.2.3.4": {
            "bannedAt": "2026-10-19T10:00:00.123Z",
            "reason": "exceeded_25_per_10000ms",
            "by": "admission_gate"
          }
        }

    A missing or unreadable file starts the store empty. Write failures are
    logged and otherwise ignored: the in-memory map stays authoritative for
    the rest of the process lifetime.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store and load any persisted bans.

        Args:
            path: Location of the JSON document.
            clock: Time source returning UNIX time in seconds.
        """
        self._path = Path(path)
        self._clock = clock
        self._write_lock = threading.Lock()
        self._bans: dict[str, BanRecord] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, BanRecord]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning(
                "ban_store.missing",
                extra={"path": str(self._path), "action": "starting_empty"},
            )
            return {}
        except OSError as exc:
            logger.warning(
                "ban_store.load_failed",
                extra={"path": str(self._path), "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return {}

        if not raw.strip():
            return {}

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(
                "ban_store.load_failed",
                extra={"path": str(self._path), "error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return {}

        if not isinstance(document, dict):
            logger.warning(
                "ban_store.load_failed",
                extra={"path": str(self._path), "error_type": "invalid_document", "error_msg": "top level is not an object"},
            )
            return {}

        bans: dict[str, BanRecord] = {}
        for identifier, entry in document.items():
            try:
                bans[identifier] = BanRecord.from_document(identifier, entry)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning(
                    "ban_store.entry_skipped",
                    extra={"identifier_hash": hash_identifier(identifier), "error_type": type(exc).__name__},
                )

        logger.info("ban_store.loaded", extra={"path": str(self._path), "banned_count": len(bans)})
        return bans

    def _flush(self, bans: dict[str, BanRecord]) -> None:
        """Write ``bans`` to disk atomically.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        document = {identifier: record.to_document() for identifier, record in bans.items()}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _publish(self, bans: dict[str, BanRecord], *, operation: str, identifier: str) -> None:
        # Publish before flushing: a failed write must not undo the decision.
        self._bans = bans
        try:
            self._flush(bans)
        except OSError as exc:
            logger.error(
                "ban_store.persist_failed",
                extra={
                    "operation": operation,
                    "identifier_hash": hash_identifier(identifier),
                    "path": str(self._path),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )

    def is_banned(self, identifier: str) -> BanRecord | None:
        return self._bans.get(identifier)

    def ban(self, identifier: str, reason: str, actor: str) -> BanRecord:
        with self._write_lock:
            existing = self._bans.get(identifier)
            if existing is not None:
                return existing

            record = BanRecord(
                identifier=identifier,
                banned_at=datetime.fromtimestamp(self._clock(), timezone.utc),
                reason=reason,
                banned_by=actor,
            )
            updated = dict(self._bans)
            updated[identifier] = record
            self._publish(updated, operation="ban", identifier=identifier)
            return record

    def unban(self, identifier: str) -> bool:
        with self._write_lock:
            if identifier not in self._bans:
                return False
            updated = dict(self._bans)
            del updated[identifier]
            self._publish(updated, operation="unban", identifier=identifier)
            return True

    def list_bans(self) -> dict[str, BanRecord]:
        return dict(self._bans)

    def count(self) -> int:
        return len(self._bans)
