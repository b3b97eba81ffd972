"""API route registration for Hearth."""

from fastapi import APIRouter

from . import automation, schedule, scheduler

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(schedule.router, prefix="/schedules", tags=["schedules"])
api_router.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
api_router.include_router(automation.router, prefix="/automation", tags=["automation"])


__all__ = ["api_router", "automation", "schedule", "scheduler"]
