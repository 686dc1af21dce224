"""Privileged ban management.

Admin Control is the only path that removes bans. Every operation checks the
shared admin secret first and reports its outcome as an ``AdminOutcome``
value; translating outcomes into HTTP responses is the route's job.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from enum import Enum

from ipgate.adapters.audit.base import AuditEventKind
from ipgate.adapters.ban_store.base import BanRecord
from ipgate.core.logging import hash_identifier
from ipgate.services.admission_gate import AdmissionGate, GateStats

logger = logging.getLogger(__name__)

ADMIN_ACTOR = "admin"


class AdminOutcome(str, Enum):
    UNBANNED = "unbanned"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    MISCONFIGURED = "misconfigured"


class AdminControl:
    """Secret-protected operations on the ban list."""

    def __init__(self, gate: AdmissionGate, admin_key: str | None) -> None:
        self._gate = gate
        # An empty key is treated as no key at all.
        self._admin_key = admin_key or None

    @property
    def configured(self) -> bool:
        return self._admin_key is not None

    def check_secret(self, provided: str | None) -> AdminOutcome | None:
        """Validate ``provided`` against the configured admin key.

        Returns:
            ``MISCONFIGURED`` when no key is configured, ``UNAUTHORIZED`` when
            the secret is missing or wrong, ``None`` when authorized.
        """
        if self._admin_key is None:
            logger.error(
                "admin.auth_failed",
                extra={"reason": "admin_key_not_configured"},
            )
            return AdminOutcome.MISCONFIGURED

        if not provided or not hmac.compare_digest(
            provided.encode(), self._admin_key.encode()
        ):
            logger.warning(
                "admin.auth_failed",
                extra={
                    "reason": "invalid_admin_key" if provided else "missing_admin_key",
                    "provided_key_hash": hashlib.sha256(provided.encode()).hexdigest()[:16]
                    if provided
                    else None,
                },
            )
            return AdminOutcome.UNAUTHORIZED

        return None

    def unban_request(self, provided: str | None, identifier: str) -> AdminOutcome:
        """Lift the ban on ``identifier`` if the caller holds the admin secret.

        On success the identifier's window is reset, so its next request is
        judged from scratch, and an UNBAN event is audited.
        """
        denied = self.check_secret(provided)
        if denied is not None:
            return denied

        with self._gate.tracker.lock_for(identifier):
            removed = self._gate.ban_store.unban(identifier)
            if removed:
                self._gate.reset_window(identifier)
                self._gate.record_event(AuditEventKind.UNBAN, identifier, by=ADMIN_ACTOR)

        logger.info(
            "admin.unban",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "outcome": "unbanned" if removed else "not_found",
            },
        )
        return AdminOutcome.UNBANNED if removed else AdminOutcome.NOT_FOUND

    def list_bans(self, provided: str | None) -> AdminOutcome | dict[str, BanRecord]:
        denied = self.check_secret(provided)
        if denied is not None:
            return denied
        return self._gate.ban_store.list_bans()

    def stats(self, provided: str | None) -> AdminOutcome | GateStats:
        denied = self.check_secret(provided)
        if denied is not None:
            return denied
        return self._gate.stats()
