"""Weekly schedule API routes for Hearth."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from hearth.api.dependencies import OperatorDep, TimeSlotsDep
from hearth.models.schemas import ScheduleSummary, TimeSlot, WeeklySchedule

router = APIRouter()


# ============================================================================
# Pydantic Models
# ============================================================================


class ScheduleCreate(BaseModel):
    """Schedule creation request."""

    model_config = {"extra": "forbid"}

    name: str = Field(..., min_length=1, max_length=100)
    copy_from: str | None = None


class ActiveScheduleUpdate(BaseModel):
    schedule_id: str = Field(..., min_length=1)


# ============================================================================
# Endpoints
# ============================================================================


@router.get("", response_model=list[ScheduleSummary])
async def list_schedules(timeslots: TimeSlotsDep) -> list[ScheduleSummary]:
    """List stored schedules, flagging the active one."""
    return await timeslots.list_schedules()


@router.post("", response_model=WeeklySchedule, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate, timeslots: TimeSlotsDep, operator: OperatorDep
) -> WeeklySchedule:
    """Create an empty schedule, or a copy of an existing one."""
    return await timeslots.create_schedule(
        payload.name, copy_from=payload.copy_from, operator=operator
    )


@router.get("/active", response_model=WeeklySchedule)
async def get_active_schedule(timeslots: TimeSlotsDep) -> WeeklySchedule:
    return await timeslots.get_active_schedule()


@router.put("/active", response_model=WeeklySchedule)
async def set_active_schedule(
    payload: ActiveScheduleUpdate, timeslots: TimeSlotsDep, operator: OperatorDep
) -> WeeklySchedule:
    """Switch the active schedule; unknown ids leave the current one in place."""
    return await timeslots.set_active_schedule(payload.schedule_id, operator=operator)


@router.get("/active/days/{day}", response_model=list[TimeSlot])
async def get_day_slots(day: str, timeslots: TimeSlotsDep) -> list[TimeSlot]:
    return await timeslots.get_day_slots(day)


@router.put("/active/days/{day}", response_model=list[TimeSlot])
async def save_day_slots(
    day: str,
    slots: list[dict[str, Any]],
    timeslots: TimeSlotsDep,
    operator: OperatorDep,
) -> list[TimeSlot]:
    """Replace one day of the active schedule; the whole day is validated first."""
    await timeslots.save_day_slots(day, slots, operator=operator)
    return await timeslots.get_day_slots(day)


@router.get("/{schedule_id}", response_model=WeeklySchedule)
async def get_schedule(schedule_id: str, timeslots: TimeSlotsDep) -> WeeklySchedule:
    return await timeslots.get_schedule(schedule_id)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(schedule_id: str, timeslots: TimeSlotsDep) -> None:
    await timeslots.delete_schedule(schedule_id)
