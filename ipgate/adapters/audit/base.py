"""Audit event type and audit log interface."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping

from ipgate.utils.timestamps import format_timestamp

_WHITESPACE = re.compile(r"\s+")


class AuditEventKind(str, Enum):
    REQUEST = "REQUEST"
    BAN = "BAN"
    UNBAN = "UNBAN"
    BLOCKED_REQUEST = "BLOCKED_REQUEST"


def _token(value: object) -> str:
    text = _WHITESPACE.sub("_", str(value).strip())
    return text or "-"


@dataclass(frozen=True)
class AuditEvent:
    """One admission event.

    Attributes:
        kind: What happened.
        timestamp: When it happened (UTC).
        identifier: Client identifier the event is about.
        fields: Kind-specific values, e.g. ``count`` for REQUEST or
            ``reason`` for BAN. Rendered as ``key=value`` in insertion order.
    """

    kind: AuditEventKind
    timestamp: datetime
    identifier: str
    fields: Mapping[str, str | int] = field(default_factory=dict)

    def to_line(self) -> str:
        """Render as ``[KIND] <iso-8601> <identifier> key=value ...``.

        Whitespace inside values is collapsed to ``_`` so every line splits
        cleanly on spaces.
        """
        parts = [
            f"[{self.kind.value}]",
            format_timestamp(self.timestamp),
            _token(self.identifier),
        ]
        parts.extend(f"{key}={_token(value)}" for key, value in self.fields.items())
        return " ".join(parts)


class AbstractAuditLog(ABC):
    """Interface for audit sinks.

    ``append`` must never raise: the audit trail is observability, and a
    failing sink must not take the admission decision down with it.
    """

    @abstractmethod
    def append(self, event: AuditEvent) -> None:
        raise NotImplementedError
