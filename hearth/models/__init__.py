"""Hearth data models."""

from .enums import (
    CoordinationEventType,
    CycleAction,
    DecisionStatus,
    ErrorSource,
    IntentChangeType,
    ScheduledActionType,
    Weekday,
    ZoneMode,
)
from .schemas import (
    ApplianceStatus,
    CoordinationEvent,
    CoordinationPreferences,
    CoordinationState,
    CoordinationZone,
    ModeView,
    PIDConfig,
    PIDGains,
    PIDPreviewRequest,
    PIDState,
    ScheduleSummary,
    SchedulerMode,
    TimeSlot,
    ThermostatSchedule,
    ThermostatScheduleZone,
    TimetableEntry,
    WeeklySchedule,
    ZoneStatus,
)

__all__ = [
    "ApplianceStatus",
    "CoordinationEvent",
    "CoordinationEventType",
    "CoordinationPreferences",
    "CoordinationState",
    "CoordinationZone",
    "CycleAction",
    "DecisionStatus",
    "ErrorSource",
    "IntentChangeType",
    "ModeView",
    "PIDConfig",
    "PIDGains",
    "PIDPreviewRequest",
    "PIDState",
    "ScheduleSummary",
    "ScheduledActionType",
    "SchedulerMode",
    "TimeSlot",
    "ThermostatSchedule",
    "ThermostatScheduleZone",
    "TimetableEntry",
    "Weekday",
    "WeeklySchedule",
    "ZoneMode",
    "ZoneStatus",
]
