from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from ipgate.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationAppError,
    NotFoundAppError,
    ValidationAppError,
)
from ipgate.schemas.admin import (
    BanEntry,
    BanListResponse,
    StatsResponse,
    UnbanRequest,
    UnbanResponse,
)
from ipgate.services.admin_service import AdminControl, AdminOutcome

router = APIRouter(prefix="/admin", tags=["Admin"])

AdminKeyHeader = Annotated[str | None, Header(alias="X-Admin-Key")]


def get_admin_control(request: Request) -> AdminControl:
    return request.app.state.admin_control


def _denied_error(outcome: AdminOutcome) -> AppError:
    """Translate a failed authorization outcome into the matching domain error."""
    if outcome is AdminOutcome.MISCONFIGURED:
        return ConfigurationAppError(
            code="admin_key_not_configured",
            message="ADMIN_KEY not configured on server.",
            details={"hint": "Set the ADMIN_KEY environment variable to enable admin endpoints"},
        )
    return AuthenticationAppError(
        code="unauthorized",
        message="Unauthorized. Provide valid admin key in X-Admin-Key header.",
    )


@router.post("/unban", response_model=UnbanResponse)
def unban(
    admin: Annotated[AdminControl, Depends(get_admin_control)],
    payload: UnbanRequest | None = None,
    x_admin_key: AdminKeyHeader = None,
) -> UnbanResponse:
    """Remove an identifier from the ban list.

    The admin secret is taken from the ``X-Admin-Key`` header, falling back
    to ``adminKey`` in the JSON body.

    Raises:
        ConfigurationAppError: 500 when no admin key is configured.
        AuthenticationAppError: 401 when the secret is missing or wrong.
        ValidationAppError: 400 when ``ip`` is missing.
        NotFoundAppError: 404 when the identifier is not banned.
    """
    body = payload or UnbanRequest()
    provided = x_admin_key or body.admin_key

    denied = admin.check_secret(provided)
    if denied is not None:
        raise _denied_error(denied)

    ip = (body.ip or "").strip()
    if not ip:
        raise ValidationAppError(
            code="missing_identifier",
            message="Provide ip in request body to unban.",
        )

    outcome = admin.unban_request(provided, ip)
    if outcome is AdminOutcome.NOT_FOUND:
        raise NotFoundAppError(
            code="ip_not_banned",
            message=f"IP {ip} not found in ban list.",
            details={"identifier": ip},
        )
    if outcome is not AdminOutcome.UNBANNED:
        raise _denied_error(outcome)
    return UnbanResponse(success=True, message=f"IP {ip} unbanned.")


@router.get("/bans", response_model=BanListResponse)
def list_bans(
    admin: Annotated[AdminControl, Depends(get_admin_control)],
    x_admin_key: AdminKeyHeader = None,
) -> BanListResponse:
    """List every current ban with its persisted metadata."""
    result = admin.list_bans(x_admin_key)
    if isinstance(result, AdminOutcome):
        raise _denied_error(result)
    return BanListResponse(
        bans={identifier: BanEntry.from_record(record) for identifier, record in result.items()}
    )


@router.get("/stats", response_model=StatsResponse)
def stats(
    admin: Annotated[AdminControl, Depends(get_admin_control)],
    x_admin_key: AdminKeyHeader = None,
) -> StatsResponse:
    """Counts of tracked and banned identifiers."""
    result = admin.stats(x_admin_key)
    if isinstance(result, AdminOutcome):
        raise _denied_error(result)
    return StatsResponse.from_stats(result)
