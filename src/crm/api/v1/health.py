"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready). Readiness
reports each record service with its current collection size.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.crm.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 once the record services are wired, 503 before."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "checks": {"services": "missing"}},
        )

    checks = {
        "contacts": len(services.contacts),
        "deals": len(services.deals),
        "activities": len(services.activities),
    }
    return {"status": "ready", "checks": checks}
