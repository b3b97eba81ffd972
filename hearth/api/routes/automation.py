"""Automation API routes: cycle triggers, PID settings and coordination."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from hearth.api.dependencies import (
    DecisionEngineDep,
    EventLogDep,
    OperatorDep,
    OrchestratorDep,
    PowerDep,
    StoreDep,
    require_cron_secret,
)
from hearth.core.orchestrator import load_coordination_state, load_preferences, save_preferences
from hearth.models.enums import CoordinationEventType
from hearth.models.schemas import (
    CoordinationPreferences,
    CoordinationState,
    PIDConfig,
    PIDPreviewRequest,
)

router = APIRouter()

CronGuard = Annotated[None, Depends(require_cron_secret)]


class PIDPreviewResponse(BaseModel):
    power_level: int


# ============================================================================
# Cycle triggers
# ============================================================================


@router.post("/check")
async def run_scheduler_check(engine: DecisionEngineDep, _: CronGuard) -> dict[str, Any]:
    """Run one scheduler check (one external tick)."""
    result = await engine.check()
    return result.to_dict()


@router.post("/coordinate")
async def run_coordination_cycle(
    orchestrator: OrchestratorDep, _: CronGuard
) -> dict[str, Any]:
    """Run one stove/thermostat coordination cycle."""
    result = await orchestrator.run_cycle()
    return result.to_dict()


# ============================================================================
# PID
# ============================================================================


@router.get("/pid", response_model=PIDConfig)
async def get_pid_config(power: PowerDep) -> PIDConfig:
    return await power.load_config()


@router.put("/pid", response_model=PIDConfig)
async def update_pid_config(payload: PIDConfig, power: PowerDep) -> PIDConfig:
    return await power.save_config(payload)


@router.post("/pid/preview", response_model=PIDPreviewResponse)
async def preview_pid(payload: PIDPreviewRequest, power: PowerDep) -> PIDPreviewResponse:
    """Output of a fresh controller for one hypothetical step; nothing is stored."""
    try:
        level = power.preview(
            payload.setpoint, payload.measured, payload.dt_minutes, gains=payload
        )
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return PIDPreviewResponse(power_level=level)


# ============================================================================
# Coordination
# ============================================================================


@router.get("/coordination/preferences", response_model=CoordinationPreferences)
async def get_coordination_preferences(store: StoreDep) -> CoordinationPreferences:
    return await load_preferences(store)


@router.put("/coordination/preferences", response_model=CoordinationPreferences)
async def update_coordination_preferences(
    payload: CoordinationPreferences, store: StoreDep, operator: OperatorDep
) -> CoordinationPreferences:
    return await save_preferences(store, payload.model_copy(update={"updated_by": operator}))


@router.get("/coordination/state", response_model=CoordinationState)
async def get_coordination_state(store: StoreDep) -> CoordinationState:
    return await load_coordination_state(store)


@router.get("/coordination/events")
async def list_coordination_events(
    events: EventLogDep,
    limit: int = Query(default=50, ge=1, le=500),
    event_type: CoordinationEventType | None = None,
) -> list[dict[str, Any]]:
    return await events.recent(limit=limit, event_type=event_type)
