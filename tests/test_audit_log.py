"""Unit tests for audit events and the file-backed audit log."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from ipgate.adapters.audit.base import AuditEvent, AuditEventKind
from ipgate.adapters.audit.file_log import FileAuditLog

WHEN = datetime(2026, 10, 19, 10, 0, 0, 123000, tzinfo=timezone.utc)


def test_request_event_line_format() -> None:
    event = AuditEvent(
        kind=AuditEventKind.REQUEST,
        timestamp=WHEN,
        identifier="1.2.3.4",
        fields={"count": 3, "method": "GET", "path": "/health"},
    )

    assert event.to_line() == (
        "[REQUEST] 2026-10-19T10:00:00.123Z 1.2.3.4 count=3 method=GET path=/health"
    )


def test_whitespace_in_values_is_collapsed() -> None:
    event = AuditEvent(
        kind=AuditEventKind.BAN,
        timestamp=WHEN,
        identifier="odd id",
        fields={"reason": "too many\trequests"},
    )

    tokens = event.to_line().split(" ")

    assert tokens[0] == "[BAN]"
    assert tokens[2] == "odd_id"
    assert tokens[3] == "reason=too_many_requests"


def test_event_without_fields() -> None:
    event = AuditEvent(kind=AuditEventKind.BLOCKED_REQUEST, timestamp=WHEN, identifier="a")

    assert event.to_line() == "[BLOCKED_REQUEST] 2026-10-19T10:00:00.123Z a"


def test_file_log_appends_one_line_per_event(audit_log_path: Path) -> None:
    log = FileAuditLog(audit_log_path)

    log.append(AuditEvent(AuditEventKind.REQUEST, WHEN, "a", {"count": 1}))
    log.append(AuditEvent(AuditEventKind.BAN, WHEN, "a", {"reason": "r"}))

    lines = audit_log_path.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "[REQUEST] 2026-10-19T10:00:00.123Z a count=1",
        "[BAN] 2026-10-19T10:00:00.123Z a reason=r",
    ]


def test_file_log_never_rewrites_existing_lines(audit_log_path: Path) -> None:
    audit_log_path.parent.mkdir(parents=True)
    audit_log_path.write_text("previous line\n", encoding="utf-8")

    FileAuditLog(audit_log_path).append(AuditEvent(AuditEventKind.UNBAN, WHEN, "a", {"by": "admin"}))

    assert audit_log_path.read_text(encoding="utf-8").splitlines()[0] == "previous line"


def test_write_failure_is_swallowed_and_reported(tmp_path: Path, caplog) -> None:
    # A directory cannot be opened for appending
    log = FileAuditLog(tmp_path)

    with caplog.at_level(logging.WARNING):
        log.append(AuditEvent(AuditEventKind.REQUEST, WHEN, "a", {"count": 1}))

    assert log.failures == 1
    assert "audit.write_failed" in caplog.messages
