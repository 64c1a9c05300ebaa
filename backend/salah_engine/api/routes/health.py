"""Health & Readiness Checks — liveness and readiness endpoints for container orchestration.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 until the lifespan has built the schedule service

Design Decisions:
    - Readiness never calls the remote provider: a provider outage degrades schedules,
      it does not make this instance unready
"""

import logging
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from salah_engine import __version__

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness check. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "salah-engine-api",
        "version": __version__,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness check — schedule service wired and cache reachable."""
    service = getattr(request.app.state, "schedule_service", None)
    if service is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "schedule_service_unavailable",
            },
        )
    return {
        "status": "ready",
        "checks": {
            "schedule_service": "healthy",
            "cached_schedules": service.cache_size,
        },
    }
