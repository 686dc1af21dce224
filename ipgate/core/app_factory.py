"""Application factory for the FastAPI app.

Builds the admission components once per application (window tracker, ban
store, audit log, gate, admin control, reaper), stores them on ``app.state``
and puts every inbound request behind the admission gate.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from ipgate.adapters.audit.file_log import FileAuditLog
from ipgate.adapters.ban_store.json_file import JsonFileBanStore
from ipgate.adapters.rate_limit.in_memory import InMemorySlidingWindowTracker
from ipgate.api.routes import admin_router, health_router
from ipgate.core.admission import admission_middleware
from ipgate.core.config import AdmissionSettings, Settings, settings
from ipgate.core.exception_handlers import setup_exception_handlers
from ipgate.core.logging import configure_logging
from ipgate.core.middleware import request_id_middleware
from ipgate.core.openapi import apply_openapi_customizations
from ipgate.services.admin_service import AdminControl
from ipgate.services.admission_gate import AdmissionGate
from ipgate.services.reaper import Reaper

logger = logging.getLogger(__name__)


def build_admission_gate(
    admission: AdmissionSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> AdmissionGate:
    """Assemble the gate and its collaborators from settings.

    The ban store is loaded from disk here, so bans survive restarts.
    """
    tracker = InMemorySlidingWindowTracker(
        window_ms=admission.window_ms,
        lock_stripes=admission.lock_stripes,
    )
    ban_store = JsonFileBanStore(admission.ban_store_path, clock=clock)
    audit_log = FileAuditLog(admission.audit_log_path)
    return AdmissionGate(
        tracker=tracker,
        ban_store=ban_store,
        audit_log=audit_log,
        max_requests=admission.max_requests,
        window_ms=admission.window_ms,
        clock=clock,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    reaper: Reaper = app.state.reaper
    reaper.start()
    try:
        yield
    finally:
        await reaper.stop()


def create_app(
    config: Settings | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Settings to use; defaults to the environment-derived settings.
        clock: Time source shared by the gate, ban store and reaper.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = config or settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    gate = build_admission_gate(cfg.admission, clock=clock)

    app = FastAPI(
        title=cfg.app.title,
        description=(
            "Admission control for HTTP APIs: sliding-window rate limiting with "
            "permanent, persisted IP bans, an append-only audit log and an "
            "admin unban endpoint."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=_lifespan,
    )

    app.state.settings = cfg
    app.state.admission_gate = gate
    app.state.admin_control = AdminControl(gate, cfg.admin.key)
    app.state.reaper = Reaper(
        gate.tracker,
        interval_ms=cfg.admission.cleanup_interval_ms,
        window_ms=cfg.admission.window_ms,
        clock=clock,
    )

    # Middleware (last registered runs first, so request ids wrap the gate)
    app.middleware("http")(admission_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(admin_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={
            "admission_enabled": cfg.admission.enabled,
            "max_requests": cfg.admission.max_requests,
            "window_ms": cfg.admission.window_ms,
            "banned_count": gate.ban_store.count(),
            "admin_configured": app.state.admin_control.configured,
        },
    )
    return app
