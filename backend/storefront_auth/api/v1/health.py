"""
Health check endpoints for monitoring and readiness checks.

- Liveness check: /health (is the server running)
- Readiness check: /health/ready (can the account database be reached)
"""

import time

from fastapi import APIRouter, status, Response

from storefront_auth.core.health_checks import check_database
from storefront_auth.models.base import utc_now
from storefront_auth.schemas.health import (
    HealthResponse,
    ReadinessResponse,
    HealthCheckDetail,
)


router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check() -> HealthResponse:
    """Always 200 while the application is running."""
    return HealthResponse(status="ok", timestamp=utc_now())


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """
    Readiness check with dependency checks.

    Returns 200 if the database answers, 503 otherwise.

    Example response (unhealthy):
        {
            "status": "not_ready",
            "checks": {"db": {"healthy": false, "latency_ms": 2000.0,
                              "error": "Database connection failed or timed out"}},
            "timestamp": "2025-11-24T10:30:00.123456"
        }
    """
    db_start = time.time()
    db_healthy = await check_database()
    db_latency = (time.time() - db_start) * 1000

    checks = {
        "db": HealthCheckDetail(
            healthy=db_healthy,
            latency_ms=round(db_latency, 2),
            error=None if db_healthy else "Database connection failed or timed out"
        ),
    }

    all_healthy = all(check.healthy for check in checks.values())
    if not all_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if all_healthy else "not_ready",
        checks=checks,
        timestamp=utc_now()
    )
