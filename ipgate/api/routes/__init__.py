from __future__ import annotations

from ipgate.api.routes.admin import router as admin_router
from ipgate.api.routes.health import router as health_router

__all__ = ["admin_router", "health_router"]
