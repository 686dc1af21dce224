"""Ban store interface and record type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ipgate.utils.timestamps import format_timestamp, parse_timestamp


@dataclass(frozen=True)
class BanRecord:
    """A permanent ban on one identifier.

    Attributes:
        identifier: Banned client identifier.
        banned_at: UTC instant the ban was imposed.
        reason: Free-text classification, e.g. ``exceeded_25_per_10000ms``.
        banned_by: Actor that imposed the ban.
    """

    identifier: str
    banned_at: datetime
    reason: str
    banned_by: str

    def to_document(self) -> dict[str, str]:
        """Serialize to the persisted ``{bannedAt, reason, by}`` shape."""
        return {
            "bannedAt": format_timestamp(self.banned_at),
            "reason": self.reason,
            "by": self.banned_by,
        }

    @classmethod
    def from_document(cls, identifier: str, document: dict[str, Any]) -> "BanRecord":
        """Rebuild a record from its persisted shape.

        Raises:
            KeyError, TypeError, ValueError: If the document is malformed.
        """
        return cls(
            identifier=identifier,
            banned_at=parse_timestamp(document["bannedAt"]),
            reason=str(document.get("reason", "")),
            banned_by=str(document.get("by", "")),
        )


class AbstractBanStore(ABC):
    """Interface for ban stores."""

    @abstractmethod
    def is_banned(self, identifier: str) -> BanRecord | None:
        """Return the ban on ``identifier`` if there is one. No side effects."""
        raise NotImplementedError

    @abstractmethod
    def ban(self, identifier: str, reason: str, actor: str) -> BanRecord:
        """Ban ``identifier``; an existing ban is returned unchanged."""
        raise NotImplementedError

    @abstractmethod
    def unban(self, identifier: str) -> bool:
        """Lift the ban on ``identifier``; False if it was not banned."""
        raise NotImplementedError

    @abstractmethod
    def list_bans(self) -> dict[str, BanRecord]:
        """Snapshot of every current ban keyed by identifier."""
        raise NotImplementedError

    def count(self) -> int:
        return len(self.list_bans())
