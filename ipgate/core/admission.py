"""Admission gate middleware for FastAPI applications.

This module wires the admission gate into the HTTP layer as middleware, so
every inbound request is judged, including ones that match no route. It
resolves the client identifier, asks the gate for a decision, and renders a
denial with the same error envelope as the global exception handler.

- Already banned → 403 with the original ban time and reason.
- Just exceeded the limit (and now banned) → 429.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response
from fastapi.concurrency import run_in_threadpool

from ipgate.core.config import Settings, settings
from ipgate.core.errors import AppError, BannedAppError, RateLimitAppError
from ipgate.core.exception_handlers import app_error_handler
from ipgate.core.logging import hash_identifier
from ipgate.services.admission_gate import REASON_ALREADY_BANNED, AdmissionGate, Decision
from ipgate.utils.timestamps import format_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_IDENTIFIER = "unknown"
UNBLOCK_NOTE = "Contact the owner to request unblocking."


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", settings)


def get_admission_gate(request: Request) -> AdmissionGate:
    """Return the gate built for this application by ``create_app``."""
    return request.app.state.admission_gate


def resolve_client_identifier(request: Request, *, trust_forwarded_for: bool) -> str:
    """Pick the identifier a request is rate limited and banned under.

    Args:
        request: FastAPI request.
        trust_forwarded_for: Use the first ``X-Forwarded-For`` hop when present
            (the service runs behind a proxy).

    Returns:
        str: Client address, or ``"unknown"`` when none can be determined.
    """

    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTIFIER


def _denial_error(decision: Decision) -> BannedAppError | RateLimitAppError:
    ban = decision.ban
    if decision.reason == REASON_ALREADY_BANNED and ban is not None:
        return BannedAppError(
            code="ip_banned",
            message="Your IP has been blocked due to abuse or rate limit violations.",
            details={
                "banned_at": format_timestamp(ban.banned_at),
                "reason": ban.reason,
                "note": UNBLOCK_NOTE,
            },
        )

    window_ms = decision.window_ms or 0
    return RateLimitAppError(
        code="rate_limit_exceeded",
        message=(
            "Rate limit exceeded - your IP has been blocked. "
            f"Max {decision.max_requests} requests per {window_ms / 1000:g}s."
        ),
        details={
            "limit": decision.max_requests or 0,
            "window_ms": window_ms,
            "note": UNBLOCK_NOTE,
        },
    )


def enforce_admission(request: Request) -> None:
    """Run the admission gate for one request.

    Blocking: the gate serializes work per identifier and the ban store
    flush is a local file write. ``admission_middleware`` calls it from the
    threadpool.

    Args:
        request: FastAPI request.

    Raises:
        BannedAppError: The identifier is on the ban list (403).
        RateLimitAppError: This request pushed the identifier over the limit (429).
    """

    app_settings = get_settings(request)
    if not app_settings.admission.enabled:
        return

    gate = get_admission_gate(request)
    identifier = resolve_client_identifier(
        request, trust_forwarded_for=app_settings.admission.trust_forwarded_for
    )

    decision = gate.decide(
        identifier,
        method=request.method,
        path=request.url.path,
    )
    if decision.allowed:
        logger.debug(
            "admission.allowed",
            extra={
                "identifier_hash": hash_identifier(identifier),
                "count": decision.count,
                "limit": decision.max_requests,
            },
        )
        return

    logger.warning(
        "admission.denied",
        extra={
            "identifier_hash": hash_identifier(identifier),
            "reason": decision.reason,
            "path": request.url.path,
            "method": request.method,
        },
    )
    raise _denial_error(decision)


async def admission_middleware(request: Request, call_next) -> Response:
    """Gate every request before routing.

    Denials are rendered here rather than raised, since exceptions escaping
    HTTP middleware bypass the application's exception handlers.

    Usage:
        app.middleware("http")(admission_middleware)
    """

    try:
        await run_in_threadpool(enforce_admission, request)
    except AppError as exc:
        return await app_error_handler(request, exc)
    return await call_next(request)
