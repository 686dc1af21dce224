"""Append-only audit trail of admission events."""

from ipgate.adapters.audit.base import AbstractAuditLog, AuditEvent, AuditEventKind
from ipgate.adapters.audit.file_log import FileAuditLog, InMemoryAuditLog

__all__ = [
    "AbstractAuditLog",
    "AuditEvent",
    "AuditEventKind",
    "FileAuditLog",
    "InMemoryAuditLog",
]
