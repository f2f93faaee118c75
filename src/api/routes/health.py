"""
Health check endpoints.

Health checks are essential for:
- Load balancers to know if the service is alive
- Monitoring systems to track availability
- Deployment systems to verify rollouts

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (can we serve traffic?)

Readiness also reports table sizes. Stored objects are never evicted,
so watching stored_objects against live_bindings is how to spot memory
growing from content nobody can reach any more.
"""

import logging
from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from ..dependencies import ExpirationSchedulerDep, MediaManagerDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """
    Health check response.

    Standardized format makes it easy for monitoring tools to parse.
    """
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]
    live_bindings: int
    stored_objects: int
    pending_expirations: int


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not inspect state.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Liveness check - is the process alive?

    This endpoint should be very fast. If it fails, the service is not
    running at all.
    """
    return HealthResponse(
        status="ok",
        version=settings.api_version,
        details={
            "debug": settings.debug,
            "media_ttl_seconds": settings.media_ttl_seconds,
        }
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can accept uploads, 503 otherwise.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    manager: MediaManagerDep,
    scheduler: ExpirationSchedulerDep,
) -> ReadinessResponse:
    """
    Readiness check - can we serve traffic?

    Uploads need valid configuration and a scheduler that still accepts
    new expirations (it stops doing so once shutdown has begun).

    Returns 503 if any check fails, which tells load balancers not
    to route traffic here.
    """
    checks: list[ReadinessCheck] = []
    all_ok = True

    # Check configuration
    problems = settings.validate_required_fields()
    if problems:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error="; ".join(problems)
        ))
        all_ok = False
    else:
        checks.append(ReadinessCheck(
            name="configuration",
            status="ok"
        ))

    # Check scheduler
    if scheduler.closed:
        checks.append(ReadinessCheck(
            name="expiration_scheduler",
            status="error",
            error="shut down"
        ))
        all_ok = False
    else:
        checks.append(ReadinessCheck(
            name="expiration_scheduler",
            status="ok"
        ))

    if not all_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )

    return ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=settings.api_version,
        checks=checks,
        live_bindings=len(manager),
        stored_objects=len(manager.storage),
        pending_expirations=scheduler.pending,
    )
