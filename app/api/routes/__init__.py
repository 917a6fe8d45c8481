from __future__ import annotations

from app.api.routes.claim import router as claim_router
from app.api.routes.health import router as health_router

__all__ = ["claim_router", "health_router"]
