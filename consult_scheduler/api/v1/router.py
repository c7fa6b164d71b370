"""API v1 router configuration."""

from fastapi import APIRouter

from consult_scheduler.api.v1.endpoints import appointments, health, specialists

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(specialists.router, prefix="/specialists", tags=["Specialists"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
