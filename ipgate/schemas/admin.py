"""Pydantic schemas for the admin endpoints."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

from ipgate.adapters.ban_store.base import BanRecord
from ipgate.services.admission_gate import GateStats


class UnbanRequest(BaseModel):
    """Body of ``POST /admin/unban``.

    Both fields are optional at the schema level so that a bad secret is
    reported as unauthorized before a missing ``ip`` is reported as a bad
    request.
    """

    model_config = ConfigDict(populate_by_name=True)

    ip: str | None = Field(
        default=None,
        description="Identifier (client IP) to remove from the ban list.",
    )
    admin_key: str | None = Field(
        default=None,
        alias="adminKey",
        description="Admin secret; alternative to the X-Admin-Key header.",
    )


class UnbanResponse(BaseModel):
    success: bool = Field(True, description="Always true on a 200 response.")
    message: str = Field(..., description="Human-readable confirmation.")


class BanEntry(BaseModel):
    """A ban as persisted in the ban store."""

    model_config = ConfigDict(populate_by_name=True)

    banned_at: str = Field(..., alias="bannedAt", description="ISO-8601 UTC ban time.")
    reason: str = Field(..., description="Why the identifier was banned.")
    by: str = Field(..., description="Actor that imposed the ban.")

    @classmethod
    def from_record(cls, record: BanRecord) -> "BanEntry":
        return cls.model_validate(record.to_document())


class BanListResponse(BaseModel):
    bans: Dict[str, BanEntry] = Field(
        default_factory=dict,
        description="Current bans keyed by identifier.",
    )


class StatsResponse(BaseModel):
    active_identifiers: int = Field(
        ..., description="Identifiers with window state in memory."
    )
    banned_count: int = Field(..., description="Identifiers currently banned.")

    @classmethod
    def from_stats(cls, stats: GateStats) -> "StatsResponse":
        return cls(active_identifiers=stats.active_identifiers, banned_count=stats.banned_count)
