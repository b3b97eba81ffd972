"""Scheduler mode API routes for Hearth."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from hearth.api.dependencies import ModeStoreDep, OperatorDep, SettingsDep, TimeSlotsDep
from hearth.core.scheduler import next_scheduled_action
from hearth.models.enums import ScheduledActionType
from hearth.models.schemas import ModeView, SchedulerMode

router = APIRouter()


class EnabledUpdate(BaseModel):
    enabled: bool


class SemiManualRequest(BaseModel):
    return_to_auto_at: datetime | None = None


class NextActionResponse(BaseModel):
    timestamp: datetime | None = None
    action: ScheduledActionType | None = None
    power: int | None = None
    fan: int | None = None


@router.get("/mode", response_model=ModeView)
async def get_mode(modes: ModeStoreDep) -> ModeView:
    """Effective mode; an elapsed semi-manual hold already reads as automatic."""
    return await modes.current_mode()


@router.put("/mode", response_model=SchedulerMode)
async def set_enabled(
    payload: EnabledUpdate, modes: ModeStoreDep, operator: OperatorDep
) -> SchedulerMode:
    return await modes.set_enabled(payload.enabled, operator=operator)


@router.post("/semi-manual", response_model=SchedulerMode)
async def enter_semi_manual(
    payload: SemiManualRequest,
    modes: ModeStoreDep,
    timeslots: TimeSlotsDep,
    settings: SettingsDep,
    operator: OperatorDep,
) -> SchedulerMode:
    """Hold the current stove state until the next scheduled change.

    Without an explicit ``return_to_auto_at`` the hold ends at the next
    ignition or shutdown of the active schedule.
    """
    until = payload.return_to_auto_at
    if until is None:
        action = next_scheduled_action(
            await timeslots.get_active_schedule(), timezone=settings.timezone
        )
        if action is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="No scheduled change to return to; pass return_to_auto_at",
            )
        until = action.timestamp
    elif until.tzinfo is None:
        until = until.replace(tzinfo=UTC)
    if until <= datetime.now(UTC):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="return_to_auto_at must be in the future",
        )
    return await modes.enter_semi_manual(until, operator=operator)


@router.delete("/semi-manual", response_model=SchedulerMode)
async def exit_semi_manual(modes: ModeStoreDep, operator: OperatorDep) -> SchedulerMode:
    return await modes.exit_semi_manual(operator=operator)


@router.get("/next-action", response_model=NextActionResponse)
async def next_action(timeslots: TimeSlotsDep, settings: SettingsDep) -> NextActionResponse:
    action = next_scheduled_action(
        await timeslots.get_active_schedule(), timezone=settings.timezone
    )
    if action is None:
        return NextActionResponse()
    return NextActionResponse(
        timestamp=action.timestamp, action=action.action, power=action.power, fan=action.fan
    )
