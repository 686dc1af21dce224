"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ipgate.core.errors import (
    AppError,
    AuthenticationAppError,
    BannedAppError,
    ConfigurationAppError,
    NotFoundAppError,
    RateLimitAppError,
    ValidationAppError,
)
from ipgate.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


@pytest.mark.parametrize(
    ("error_type", "expected_status"),
    [
        (ValidationAppError, 400),
        (AuthenticationAppError, 401),
        (BannedAppError, 403),
        (NotFoundAppError, 404),
        (RateLimitAppError, 429),
        (ConfigurationAppError, 500),
    ],
)
def test_domain_error_status_codes(
    client: TestClient,
    app_with_handlers: FastAPI,
    error_type: type[AppError],
    expected_status: int,
) -> None:
    @app_with_handlers.get("/boom")
    async def boom():
        raise error_type(code="some_code", message="Some message")

    response = client.get("/boom")

    assert response.status_code == expected_status
    data = response.json()
    assert data["success"] is False
    assert data["error"]["code"] == "some_code"
    assert data["error"]["message"] == "Some message"
    assert "request_id" in data["error"]
    assert "details" not in data["error"]


def test_details_are_included_when_present(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/banned")
    async def banned():
        raise BannedAppError(
            code="ip_banned",
            message="blocked",
            details={"banned_at": "2026-01-01T00:00:00.000Z", "reason": "exceeded_3_per_1000ms"},
        )

    data = client.get("/banned").json()

    assert data["error"]["details"] == {
        "banned_at": "2026-01-01T00:00:00.000Z",
        "reason": "exceeded_3_per_1000ms",
    }


def test_app_error_str_is_message() -> None:
    assert str(NotFoundAppError(code="x", message="not here")) == "not here"


def test_general_exception_handler_never_leaks_details() -> None:
    request = AsyncMock()
    request.url.path = "/test"
    request.method = "GET"

    exc = RuntimeError("disk /var/lib/ipgate exploded")
    response = asyncio.run(general_exception_handler(request, exc))

    data = json.loads(bytes(response.body).decode())
    assert response.status_code == 500
    assert data["error"]["code"] == "internal_server_error"
    assert "exploded" not in data["error"]["message"]
    assert "RuntimeError" not in bytes(response.body).decode()


def test_setup_registers_handlers(app_with_handlers: FastAPI) -> None:
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
