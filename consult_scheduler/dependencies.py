"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from consult_scheduler.config import settings
from consult_scheduler.core.clock import Clock, clinic_now
from consult_scheduler.core.redis_client import CacheManager, get_redis_client
from consult_scheduler.core.security import decode_access_token
from consult_scheduler.database import get_db
from consult_scheduler.schemas.auth import Actor, Role
from consult_scheduler.services.directory_service import DirectoryService
from consult_scheduler.services.notification_service import NotificationDispatcher

# Security
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Actor:
    """
    Extract the acting patient or specialist from the JWT.

    Args:
        credentials: Bearer token credentials

    Returns:
        Actor with id and role

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    subject = payload.get("sub")
    if subject is None or not isinstance(subject, str):
        raise _unauthorized("Could not validate credentials")

    try:
        return Actor(id=UUID(subject), role=Role(payload["role"]))
    except ValueError:
        raise _unauthorized("Invalid user ID format") from None


async def get_current_patient(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """Require a patient actor."""
    if not actor.is_patient:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only patients can perform this action",
        )
    return actor


async def get_current_specialist(
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> Actor:
    """Require a specialist actor."""
    if not actor.is_specialist:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only specialists can perform this action",
        )
    return actor


def get_clock() -> Clock:
    """Clinic-local clock used by time-gated rules."""
    return clinic_now


def get_notifier(request: Request) -> NotificationDispatcher | None:
    """Notification dispatcher owned by the application lifespan."""
    return getattr(request.app.state, "notifier", None)


def get_directory_service() -> DirectoryService:
    """Directory service, cached through Redis when enabled."""
    if not settings.cache_enabled:
        return DirectoryService()
    return DirectoryService(cache_manager=CacheManager(get_redis_client()))


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
CurrentPatient = Annotated[Actor, Depends(get_current_patient)]
CurrentSpecialist = Annotated[Actor, Depends(get_current_specialist)]
ClinicClock = Annotated[Clock, Depends(get_clock)]
Notifier = Annotated[NotificationDispatcher | None, Depends(get_notifier)]
Directory = Annotated[DirectoryService, Depends(get_directory_service)]
