"""FastAPI dependency injection helpers."""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Query, status

from hearth.config import SETTINGS, Settings
from hearth.core.decision_engine import DecisionEngine
from hearth.core.orchestrator import CoordinationOrchestrator
from hearth.core.pid_controller import PowerController
from hearth.core.scheduler_mode import SchedulerModeStore
from hearth.core.timeslots import TimeSlotStore
from hearth.integrations import StoveClient, ThermostatClient
from hearth.models.database import get_session_maker
from hearth.services import (
    CoordinationEventLog,
    InMemoryStateStore,
    NotificationService,
    SQLStateStore,
    StateStore,
)

# ---------------------------------------------------------------------------
# Settings dependency
# ---------------------------------------------------------------------------


def get_settings_dependency() -> Settings:
    return SETTINGS


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# ---------------------------------------------------------------------------
# State store dependency
# ---------------------------------------------------------------------------


_state_store: StateStore | None = None


def set_state_store(store: StateStore | None) -> None:
    """Set the shared state store (called during app startup)."""
    global _state_store
    _state_store = store


def build_state_store(settings: Settings) -> StateStore:
    if settings.state_backend == "memory":
        return InMemoryStateStore()
    return SQLStateStore(get_session_maker())


def get_state_store() -> StateStore:
    """Return the shared store, creating it from settings on first use."""
    global _state_store
    if _state_store is None:
        _state_store = build_state_store(SETTINGS)
    return _state_store


StoreDep = Annotated[StateStore, Depends(get_state_store)]


def get_timeslot_store(store: StoreDep) -> TimeSlotStore:
    return TimeSlotStore(store)


def get_mode_store(store: StoreDep) -> SchedulerModeStore:
    return SchedulerModeStore(store)


def get_power_controller(store: StoreDep, settings: SettingsDep) -> PowerController:
    return PowerController(store, settings=settings)


def get_event_log(store: StoreDep) -> CoordinationEventLog:
    return CoordinationEventLog(store)


TimeSlotsDep = Annotated[TimeSlotStore, Depends(get_timeslot_store)]
ModeStoreDep = Annotated[SchedulerModeStore, Depends(get_mode_store)]
PowerDep = Annotated[PowerController, Depends(get_power_controller)]
EventLogDep = Annotated[CoordinationEventLog, Depends(get_event_log)]


# ---------------------------------------------------------------------------
# Collaborator clients
# ---------------------------------------------------------------------------


def build_stove_client(settings: Settings) -> StoveClient:
    return StoveClient(
        str(settings.stove_api_url), settings.stove_api_key, timeout=settings.stove_timeout
    )


def build_thermostat_client(settings: Settings) -> ThermostatClient:
    return ThermostatClient(
        str(settings.thermostat_api_url),
        settings.thermostat_token,
        timeout=settings.thermostat_timeout,
    )


async def get_stove_client(settings: SettingsDep) -> AsyncGenerator[StoveClient]:
    """Yield a per-request stove client; every invocation starts from scratch."""
    async with build_stove_client(settings) as client:
        yield client


async def get_thermostat_client(settings: SettingsDep) -> AsyncGenerator[ThermostatClient]:
    async with build_thermostat_client(settings) as client:
        yield client


StoveDep = Annotated[StoveClient, Depends(get_stove_client)]
ThermostatDep = Annotated[ThermostatClient, Depends(get_thermostat_client)]


# ---------------------------------------------------------------------------
# Cycle runners
# ---------------------------------------------------------------------------


def build_orchestrator(
    store: StateStore,
    stove: StoveClient,
    thermostat: ThermostatClient,
    settings: Settings,
) -> CoordinationOrchestrator:
    event_log = CoordinationEventLog(store)
    notifications = NotificationService(
        store,
        webhook_url=settings.notification_webhook_url,
        throttle_minutes=settings.notification_throttle_minutes,
        event_log=event_log,
    )
    return CoordinationOrchestrator(
        store,
        stove,
        thermostat,
        event_log=event_log,
        notifications=notifications,
        settings=settings,
    )


def get_orchestrator(
    store: StoreDep,
    stove: StoveDep,
    thermostat: ThermostatDep,
    settings: SettingsDep,
) -> CoordinationOrchestrator:
    return build_orchestrator(store, stove, thermostat, settings)


def get_decision_engine(
    store: StoreDep,
    stove: StoveDep,
    thermostat: ThermostatDep,
    settings: SettingsDep,
) -> DecisionEngine:
    return DecisionEngine(store, stove, thermostat, settings=settings)


OrchestratorDep = Annotated[CoordinationOrchestrator, Depends(get_orchestrator)]
DecisionEngineDep = Annotated[DecisionEngine, Depends(get_decision_engine)]


# ---------------------------------------------------------------------------
# Identity and trigger protection
# ---------------------------------------------------------------------------


def get_operator(
    settings: SettingsDep,
    x_operator: Annotated[str | None, Header()] = None,
) -> str | None:
    """Identity recorded on user-facing writes (audit only)."""
    return x_operator or settings.admin_user_id or None


OperatorDep = Annotated[str | None, Depends(get_operator)]


def require_cron_secret(
    settings: SettingsDep,
    x_cron_secret: Annotated[str | None, Header()] = None,
    secret: Annotated[str | None, Query()] = None,
) -> None:
    """Guard the cycle triggers when a cron secret is configured."""
    if not settings.cron_secret:
        return
    provided = x_cron_secret or secret or ""
    if not secrets.compare_digest(provided, settings.cron_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing cron secret",
        )


__all__ = [
    "DecisionEngineDep",
    "EventLogDep",
    "ModeStoreDep",
    "OperatorDep",
    "OrchestratorDep",
    "PowerDep",
    "SettingsDep",
    "StoreDep",
    "StoveDep",
    "ThermostatDep",
    "TimeSlotsDep",
    "build_orchestrator",
    "build_state_store",
    "build_stove_client",
    "build_thermostat_client",
    "get_state_store",
    "require_cron_secret",
    "set_state_store",
]
