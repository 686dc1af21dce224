"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports the settings module.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.pop("ADMIN_KEY", None)

from pathlib import Path
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from ipgate.adapters.audit.file_log import InMemoryAuditLog
from ipgate.adapters.ban_store.json_file import JsonFileBanStore
from ipgate.adapters.rate_limit.in_memory import InMemorySlidingWindowTracker
from ipgate.core.app_factory import create_app
from ipgate.core.config import AdminSettings, AdmissionSettings, LogSettings, Settings
from ipgate.services.admission_gate import AdmissionGate

ADMIN_KEY = "test-admin-key"


class FakeTime:
    """Deterministic clock returning UNIX seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def ban_store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "banned-ips.json"


@pytest.fixture
def audit_log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "request-logs.log"


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def make_gate(ban_store_path: Path, audit_log: InMemoryAuditLog, fake_time: FakeTime) -> Callable[..., AdmissionGate]:
    """Build a gate over a temp ban file and an in-memory audit log."""

    def _make(*, max_requests: int = 3, window_ms: int = 1000) -> AdmissionGate:
        return AdmissionGate(
            tracker=InMemorySlidingWindowTracker(window_ms=window_ms),
            ban_store=JsonFileBanStore(ban_store_path, clock=fake_time.time),
            audit_log=audit_log,
            max_requests=max_requests,
            window_ms=window_ms,
            clock=fake_time.time,
        )

    return _make


@pytest.fixture
def make_settings(ban_store_path: Path, audit_log_path: Path) -> Callable[..., Settings]:
    """Build settings pointing every file at the test's tmp_path."""

    def _make(*, admin_key: str | None = ADMIN_KEY, **admission_overrides) -> Settings:
        admission = {
            "max_requests": 3,
            "window_ms": 1000,
            "ban_store_path": str(ban_store_path),
            "audit_log_path": str(audit_log_path),
        }
        admission.update(admission_overrides)
        return Settings(
            admission=AdmissionSettings(**admission),
            admin=AdminSettings(key=admin_key),
            log=LogSettings(level="WARNING"),
        )

    return _make


@pytest.fixture
def make_client(make_settings, fake_time: FakeTime) -> Callable[..., TestClient]:
    def _make(**settings_overrides) -> TestClient:
        app = create_app(make_settings(**settings_overrides), clock=fake_time.time)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()
