"""
Health check endpoint for monitoring.

Endpoint:
- GET /api/health: database, cache and parameter-source status

Not rate limited. Answers 503 when any dependency is unhealthy.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.database import get_db
from ..schemas.common import HealthResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"
SLOW_DATABASE_MS = 100


def _check_database(db: Session) -> str:
    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        elapsed_ms = int((time.time() - start) * 1000)
        if elapsed_ms > SLOW_DATABASE_MS:
            logger.warning(f"Slow database response: {elapsed_ms}ms")
        return HEALTHY
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return UNHEALTHY


def _check_parameters(request: Request) -> str:
    try:
        request.app.state.parameters.get()
        return HEALTHY
    except Exception as e:
        logger.error(f"Parameter source health check failed: {e}")
        return UNHEALTHY


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
    summary="Health Check",
)
async def health_check(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> HealthResponse:
    """
    Health check endpoint for load balancers and uptime monitors.

    A disabled cache is reported as such and does not degrade the service;
    the rate limiter and token blacklist fall back to process memory.
    """
    checks = {
        "database": _check_database(db),
        "cache": await run_in_threadpool(request.app.state.cache.health_check),
        "parameters": _check_parameters(request),
    }

    overall = HEALTHY if UNHEALTHY not in checks.values() else "degraded"
    if overall != HEALTHY:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        checks=checks,
        version=request.app.version,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
