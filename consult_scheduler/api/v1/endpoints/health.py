"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from consult_scheduler.config import settings
from consult_scheduler.core.firebase import is_firebase_initialized
from consult_scheduler.core.redis_client import check_redis_connection
from consult_scheduler.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health including the backing services."""

    database: str
    cache: str
    push_notifications: str
    email: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Health of the appointment store and the optional services around it.

    Only the database decides the overall status: the cache and both
    notification channels are best-effort.
    """
    db_healthy = await check_database_connection()
    if settings.cache_enabled:
        cache = "healthy" if await check_redis_connection() else "unhealthy"
    else:
        cache = "disabled"

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        cache=cache,
        push_notifications="enabled" if is_firebase_initialized() else "disabled",
        email="enabled" if settings.smtp_configured else "disabled",
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """Pong."""
    return {"message": "pong"}
