"""Schedule-aware pause duration.

Thermostat timetables address the week in ``m_offset`` minutes counted from
Monday 00:00 UTC. A pause triggered by a manual change lasts until the next
timetable entry, so automation resumes when the thermostat's own schedule
would have changed the room anyway.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from hearth.config import SETTINGS
from hearth.models.schemas import ThermostatSchedule, TimetableEntry

logger = logging.getLogger(__name__)

MINUTES_IN_WEEK = 7 * 24 * 60


@dataclass(slots=True)
class PauseWindow:
    pause_until: datetime
    wait_minutes: int
    next_entry: TimetableEntry | None = None
    zone_name: str | None = None
    zone_temp: float | None = None


def week_offset(now: datetime) -> int:
    """Minutes elapsed since Monday 00:00 UTC."""
    utc = now.astimezone(UTC)
    return utc.weekday() * 24 * 60 + utc.hour * 60 + utc.minute


def get_next_schedule_slot(
    current_offset: int, timetable: Sequence[TimetableEntry]
) -> TimetableEntry | None:
    """First entry strictly after *current_offset*, wrapping to the start of the week."""
    ordered = sorted(timetable, key=lambda entry: entry.m_offset)
    for entry in ordered:
        if entry.m_offset > current_offset:
            return entry
    return ordered[0] if ordered else None


def calculate_pause_until(
    now: datetime,
    schedule: ThermostatSchedule | None,
    *,
    default_minutes: int | None = None,
) -> PauseWindow:
    default_minutes = default_minutes or SETTINGS.default_pause_minutes
    next_entry = (
        get_next_schedule_slot(week_offset(now), schedule.timetable) if schedule else None
    )
    if next_entry is None:
        logger.warning("No thermostat timetable available; pausing %d minutes", default_minutes)
        return PauseWindow(
            pause_until=now + timedelta(minutes=default_minutes), wait_minutes=default_minutes
        )

    wait = next_entry.m_offset - week_offset(now)
    if wait <= 0:
        wait += MINUTES_IN_WEEK

    zone = next(
        (z for z in schedule.zones if str(z.id) == str(next_entry.zone_id)), None
    )
    return PauseWindow(
        pause_until=now + timedelta(minutes=wait),
        wait_minutes=wait,
        next_entry=next_entry,
        zone_name=(zone.name if zone and zone.name else f"Zone {next_entry.zone_id}"),
        zone_temp=zone.temp if zone else None,
    )


__all__ = [
    "MINUTES_IN_WEEK",
    "PauseWindow",
    "calculate_pause_until",
    "get_next_schedule_slot",
    "week_offset",
]
