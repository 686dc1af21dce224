"""Admission gate: the per-request allow/deny decision.

The gate owns the window tracker, the ban store and the audit log for the
process and composes them into ``decide``. Every request is checked against
the ban list first, so a banned client is rejected without touching its
sliding window; otherwise the request is recorded and the identifier is
banned as soon as its count goes past ``max_requests`` within ``window_ms``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ipgate.adapters.audit.base import AbstractAuditLog, AuditEvent, AuditEventKind
from ipgate.adapters.ban_store.base import AbstractBanStore, BanRecord
from ipgate.adapters.rate_limit.base import AbstractWindowTracker
from ipgate.core.logging import hash_identifier
from ipgate.utils.timestamps import from_epoch_ms

logger = logging.getLogger(__name__)

GATE_ACTOR = "admission_gate"
MANUAL_ACTOR = "manual"

REASON_ALREADY_BANNED = "already_banned"
REASON_RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


def ban_reason(max_requests: int, window_ms: int) -> str:
    """Reason string recorded on automatic bans.

    >>> ban_reason(3, 1000)
    'exceeded_3_per_1000ms'
    """
    return f"exceeded_{max_requests}_per_{window_ms}ms"


@dataclass(frozen=True)
class Decision:
    """Outcome of one admission check.

    Attributes:
        allowed: Whether the request may proceed to its handler.
        reason: ``already_banned`` or ``rate_limit_exceeded`` when denied.
        count: Requests in the window including this one (None when the
            window was not consulted).
        ban: The ban responsible for a denial.
        max_requests: Threshold the request was judged against.
        window_ms: Window the request was judged against.
    """

    allowed: bool
    reason: str | None = None
    count: int | None = None
    ban: BanRecord | None = None
    max_requests: int | None = None
    window_ms: int | None = None

    @classmethod
    def allow(cls, count: int, *, max_requests: int, window_ms: int) -> "Decision":
        return cls(allowed=True, count=count, max_requests=max_requests, window_ms=window_ms)

    @classmethod
    def deny(
        cls,
        reason: str,
        ban: BanRecord,
        *,
        count: int | None = None,
        max_requests: int | None = None,
        window_ms: int | None = None,
    ) -> "Decision":
        return cls(
            allowed=False,
            reason=reason,
            count=count,
            ban=ban,
            max_requests=max_requests,
            window_ms=window_ms,
        )


@dataclass(frozen=True)
class GateStats:
    active_identifiers: int
    banned_count: int


class AdmissionGate:
    """Single decision function in front of every inbound request."""

    def __init__(
        self,
        *,
        tracker: AbstractWindowTracker,
        ban_store: AbstractBanStore,
        audit_log: AbstractAuditLog,
        max_requests: int = 25,
        window_ms: int = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Wire the gate to its collaborators.

        Args:
            tracker: Sliding-window counter.
            ban_store: Durable ban list.
            audit_log: Sink for admission events.
            max_requests: Requests allowed per window; one more triggers a ban.
            window_ms: Sliding window length in milliseconds.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If max_requests or window_ms are invalid.
        """
        _validate_limits(max_requests, window_ms)
        self._tracker = tracker
        self._ban_store = ban_store
        self._audit_log = audit_log
        self._max_requests = max_requests
        self._window_ms = window_ms
        self._clock = clock

    @property
    def tracker(self) -> AbstractWindowTracker:
        return self._tracker

    @property
    def ban_store(self) -> AbstractBanStore:
        return self._ban_store

    @property
    def audit_log(self) -> AbstractAuditLog:
        return self._audit_log

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _audit(
        self,
        kind: AuditEventKind,
        identifier: str,
        now_ms: int,
        **fields: str | int | None,
    ) -> None:
        try:
            self._audit_log.append(
                AuditEvent(
                    kind=kind,
                    timestamp=from_epoch_ms(now_ms),
                    identifier=identifier,
                    fields={key: value for key, value in fields.items() if value is not None},
                )
            )
        except Exception:
            # Sinks are expected not to raise; a broken one still must not fail admission.
            logger.exception("audit.append_raised", extra={"event_kind": kind.value})

    def decide(
        self,
        identifier: str,
        *,
        now_ms: int | None = None,
        max_requests: int | None = None,
        window_ms: int | None = None,
        method: str | None = None,
        path: str | None = None,
    ) -> Decision:
        """Decide whether a request from ``identifier`` may proceed.

        Exactly ``max_requests`` requests within ``window_ms`` are allowed;
        the next one bans the identifier permanently. Banned identifiers are
        denied until an admin lifts the ban.

        Args:
            identifier: Client identifier (e.g., source address).
            now_ms: Arrival instant in epoch milliseconds (defaults to the clock).
            max_requests: Threshold override for this call.
            window_ms: Window override for this call.
            method: HTTP method, recorded in the audit trail when given.
            path: Request path, recorded in the audit trail when given.

        Returns:
            Decision describing the outcome.

        Raises:
            ValueError: If identifier is empty or a limit override is invalid.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        limit = self._max_requests if max_requests is None else max_requests
        window = self._window_ms if window_ms is None else window_ms
        _validate_limits(limit, window)

        with self._tracker.lock_for(identifier):
            now = self.now_ms() if now_ms is None else now_ms
            existing = self._ban_store.is_banned(identifier)
            if existing is not None:
                self._audit(
                    AuditEventKind.BLOCKED_REQUEST,
                    identifier,
                    now,
                    method=method,
                    path=path,
                )
                return Decision.deny(
                    REASON_ALREADY_BANNED,
                    existing,
                    max_requests=limit,
                    window_ms=window,
                )

            count = self._tracker.record(identifier, now, window)
            self._audit(
                AuditEventKind.REQUEST,
                identifier,
                now,
                count=count,
                method=method,
                path=path,
            )

            if count <= limit:
                return Decision.allow(count, max_requests=limit, window_ms=window)

            reason = ban_reason(limit, window)
            record = self._ban_store.ban(identifier, reason, GATE_ACTOR)
            self._audit(AuditEventKind.BAN, identifier, now, reason=record.reason)

        logger.warning(
            "admission.banned",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "count": count,
                "limit": limit,
                "window_ms": window,
                "reason": record.reason,
            },
        )
        return Decision.deny(
            REASON_RATE_LIMIT_EXCEEDED,
            record,
            count=count,
            max_requests=limit,
            window_ms=window,
        )

    def ban(self, identifier: str, reason: str, actor: str = MANUAL_ACTOR) -> BanRecord:
        """Ban ``identifier`` outside the request path.

        The first ban wins: banning an identifier that is already banned
        returns the existing record and writes no audit event.

        Args:
            identifier: Client identifier to ban.
            reason: Free-text reason stored with the ban.
            actor: Tag recorded as the ban's author.

        Returns:
            The ban record in effect for ``identifier``.

        Raises:
            ValueError: If identifier or reason is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")
        if not reason:
            raise ValueError("reason must be a non-empty string")

        with self._tracker.lock_for(identifier):
            existing = self._ban_store.is_banned(identifier)
            if existing is not None:
                return existing
            record = self._ban_store.ban(identifier, reason, actor)
            self._audit(
                AuditEventKind.BAN,
                identifier,
                self.now_ms(),
                reason=record.reason,
                by=record.banned_by,
            )

        logger.warning(
            "admission.banned_manually",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "reason": record.reason,
                "actor": actor,
            },
        )
        return record

    def reset_window(self, identifier: str) -> None:
        """Forget the window state of ``identifier`` so its next request starts fresh."""
        self._tracker.forget(identifier)

    def record_event(self, kind: AuditEventKind, identifier: str, **fields: str | int | None) -> None:
        """Append an audit event stamped with the gate clock."""
        self._audit(kind, identifier, self.now_ms(), **fields)

    def stats(self) -> GateStats:
        return GateStats(
            active_identifiers=self._tracker.active_count(),
            banned_count=self._ban_store.count(),
        )


def _validate_limits(max_requests: int, window_ms: int) -> None:
    if max_requests < 1:
        raise ValueError("max_requests must be >= 1")
    if window_ms < 1:
        raise ValueError("window_ms must be >= 1")
