"""Domain enums for Hearth."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum


class Weekday(StrEnum):
    monday = "monday"
    tuesday = "tuesday"
    wednesday = "wednesday"
    thursday = "thursday"
    friday = "friday"
    saturday = "saturday"
    sunday = "sunday"

    @classmethod
    def from_datetime(cls, value: datetime) -> Weekday:
        return list(cls)[value.weekday()]

    @property
    def day_index(self) -> int:
        """Monday-based day index (0-6)."""
        return list(Weekday).index(self)


class ZoneMode(StrEnum):
    """Setpoint modes accepted by the zone setpoint gateway."""

    manual = "manual"
    home = "home"
    max = "max"
    off = "off"


class CycleAction(StrEnum):
    applied = "applied"
    restored = "restored"
    paused = "paused"
    debouncing = "debouncing"
    noop = "noop"
    error = "error"


class ErrorSource(StrEnum):
    stove_api = "stove_api"
    thermostat_api = "thermostat_api"
    state_store = "state_store"
    orchestrator = "orchestrator"


class CoordinationEventType(StrEnum):
    boost_applied = "boost_applied"
    setpoints_restored = "setpoints_restored"
    automation_paused = "automation_paused"
    max_setpoint_capped = "max_setpoint_capped"
    notification_throttled = "notification_throttled"
    coordination_error = "coordination_error"
    coordination_debouncing = "coordination_debouncing"


class ScheduledActionType(StrEnum):
    ignite = "ignite"
    shutdown = "shutdown"


class DecisionStatus(StrEnum):
    manual = "manual"
    semi_manual = "semi_manual"
    no_schedule = "no_schedule"
    status_unavailable = "status_unavailable"
    already_on = "already_on"
    ignited = "ignited"
    shutdown = "shutdown"
    levels_adjusted = "levels_adjusted"
    on = "on"
    off = "off"
    error = "error"


class IntentChangeType(StrEnum):
    setpoint_changed = "setpoint_changed"
    mode_changed = "mode_changed"
