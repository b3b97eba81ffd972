"""Pydantic schemas for the records Hearth persists and exchanges."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hearth.config import SETTINGS

from .enums import CoordinationEventType, Weekday

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Substrings of the stove status description that mean "actively heating".
HEATING_STATUS_TOKENS = ("WORK", "MODULATION", "START")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def minutes_of(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


# ---------------------------------------------------------------------------
# Weekly schedule
# ---------------------------------------------------------------------------


class TimeSlot(BaseModel):
    """One heating interval of a day."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: str
    end: str
    power: int = Field(..., ge=0, le=5)
    fan: int = Field(..., ge=1, le=6)

    @field_validator("start", "end")
    @classmethod
    def _validate_clock(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError(f"'{v}' is not a valid HH:MM time")
        return v

    @model_validator(mode="after")
    def _start_before_end(self) -> TimeSlot:
        if minutes_of(self.start) >= minutes_of(self.end):
            raise ValueError(f"slot start {self.start} must be before end {self.end}")
        return self

    @property
    def start_minute(self) -> int:
        return minutes_of(self.start)

    @property
    def end_minute(self) -> int:
        return minutes_of(self.end)

    def contains(self, minute_of_day: int) -> bool:
        return self.start_minute <= minute_of_day < self.end_minute


class WeeklySchedule(BaseModel):
    id: str
    name: str
    slots: dict[Weekday, list[TimeSlot]] = Field(default_factory=dict)
    updated_at: datetime | None = None
    updated_by: str | None = None

    def slots_for(self, day: Weekday) -> list[TimeSlot]:
        return list(self.slots.get(day, []))


class ScheduleSummary(BaseModel):
    id: str
    name: str
    updated_at: datetime | None = None
    is_active: bool = False


# ---------------------------------------------------------------------------
# Scheduler mode
# ---------------------------------------------------------------------------


class SchedulerMode(BaseModel):
    """Stored automation mode.

    ``semi_manual`` is a temporary hold on top of an enabled automation
    session, so a stored semi-manual record always reads back as enabled.
    """

    enabled: bool = False
    semi_manual: bool = False
    semi_manual_activated_at: datetime | None = None
    return_to_auto_at: datetime | None = None
    last_updated: datetime = Field(default_factory=_utc_now)
    updated_by: str | None = None

    @model_validator(mode="after")
    def _semi_manual_implies_enabled(self) -> SchedulerMode:
        if self.semi_manual and not self.enabled:
            self.enabled = True
        return self


class ModeView(BaseModel):
    """Effective mode as seen by readers at a given instant."""

    enabled: bool
    semi_manual: bool
    effective_until: datetime | None = None


# ---------------------------------------------------------------------------
# PID
# ---------------------------------------------------------------------------


class PIDGains(BaseModel):
    kp: float = 0.5
    ki: float = 0.1
    kd: float = 0.05


class PIDConfig(PIDGains):
    """User-facing PID automation settings."""

    enabled: bool = False
    target_zone_id: str | None = None
    setpoint: float = Field(default=20.0, ge=15.0, le=25.0)


class PIDState(PIDGains):
    """Persisted per-zone controller state."""

    integral: float = 0.0
    previous_error: float | None = None
    previous_timestamp: datetime | None = None


class PIDPreviewRequest(PIDGains):
    setpoint: float
    measured: float
    dt_minutes: float = Field(default=5.0, gt=0)


# ---------------------------------------------------------------------------
# Coordination
# ---------------------------------------------------------------------------


class CoordinationZone(BaseModel):
    zone_id: str
    zone_name: str
    enabled: bool = True
    boost: float | None = Field(default=None, ge=0.5, le=5.0)


class CoordinationPreferences(BaseModel):
    enabled: bool = False
    default_boost: float = Field(
        default_factory=lambda: SETTINGS.default_boost_c, ge=0.5, le=5.0
    )
    zones: list[CoordinationZone] = Field(default_factory=list)
    updated_by: str | None = None

    @property
    def enabled_zones(self) -> list[CoordinationZone]:
        return [zone for zone in self.zones if zone.enabled]


class CoordinationState(BaseModel):
    """Orchestrator-owned coordination record.

    ``boosted_rooms`` maps room id to its pre-boost setpoint. A room whose
    setpoint could not be read is never boosted, so it never appears here.
    ``applied_setpoints`` holds what the engine last pushed to each boosted
    room, used to tell engine writes apart from manual changes.
    """

    paused_until: datetime | None = None
    pause_reason: str | None = None
    last_action_at: datetime | None = None
    boosted_rooms: dict[str, float] = Field(default_factory=dict)
    applied_setpoints: dict[str, float] = Field(default_factory=dict)

    @property
    def boost_active(self) -> bool:
        return bool(self.boosted_rooms)


class CoordinationEvent(BaseModel):
    """Immutable audit record of an orchestrator decision."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    event_type: CoordinationEventType
    stove_status: str
    action: str
    details: dict[str, Any] = Field(default_factory=dict)
    notification_sent: bool = False
    cycle_id: str | None = None
    timestamp: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------


class ApplianceStatus(BaseModel):
    status_code: int | None = None
    description: str = "unknown"

    @property
    def is_heating(self) -> bool:
        upper = self.description.upper()
        return any(token in upper for token in HEATING_STATUS_TOKENS)


class ZoneStatus(BaseModel):
    zone_id: str
    name: str = ""
    setpoint: float | None = None
    mode: str | None = None
    temperature: float | None = None


class TimetableEntry(BaseModel):
    """Thermostat schedule entry; ``m_offset`` is minutes since Monday 00:00."""

    m_offset: int = Field(..., ge=0)
    zone_id: int | str


class ThermostatScheduleZone(BaseModel):
    id: int | str
    name: str | None = None
    temp: float | None = None


class ThermostatSchedule(BaseModel):
    """Active thermostat timetable, used to size automation pauses."""

    timetable: list[TimetableEntry] = Field(default_factory=list)
    zones: list[ThermostatScheduleZone] = Field(default_factory=list)
