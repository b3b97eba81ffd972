"""Weekly schedule lookup utilities for Hearth."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from hearth.config import SETTINGS
from hearth.models.enums import ScheduledActionType, Weekday
from hearth.models.schemas import TimeSlot, WeeklySchedule


@dataclass(slots=True)
class ScheduledAction:
    timestamp: datetime  # UTC
    action: ScheduledActionType
    power: int | None = None
    fan: int | None = None


def find_active_slot(slots: list[TimeSlot], minute_of_day: int) -> TimeSlot | None:
    for slot in slots:
        if slot.contains(minute_of_day):
            return slot
    return None


class Scheduler:
    """Resolve a weekly schedule against local wall-clock time."""

    def __init__(self, schedule: WeeklySchedule, *, timezone: str | None = None) -> None:
        self._schedule = schedule
        self._tz = ZoneInfo(timezone or SETTINGS.timezone)

    @property
    def schedule(self) -> WeeklySchedule:
        return self._schedule

    def to_local(self, now: datetime | None = None) -> datetime:
        now = now or datetime.now(UTC)
        return now.astimezone(self._tz)

    def day_and_minute(self, now: datetime | None = None) -> tuple[Weekday, int]:
        local = self.to_local(now)
        return Weekday.from_datetime(local), local.hour * 60 + local.minute

    def slots_for(self, day: Weekday) -> list[TimeSlot]:
        return sorted(self._schedule.slots_for(day), key=lambda s: s.start_minute)

    def get_current_slot(self, *, now: datetime | None = None) -> TimeSlot | None:
        day, minute = self.day_and_minute(now)
        return find_active_slot(self.slots_for(day), minute)

    def next_action(self, *, now: datetime | None = None) -> ScheduledAction | None:
        """Return the next ignition or shutdown, looking at most a week ahead."""
        local = self.to_local(now)
        day, minute = self.day_and_minute(now)

        for slot in self.slots_for(day):
            if slot.start_minute > minute:
                return ScheduledAction(
                    timestamp=self._at(local, 0, slot.start),
                    action=ScheduledActionType.ignite,
                    power=slot.power,
                    fan=slot.fan,
                )
            if slot.contains(minute):
                return ScheduledAction(
                    timestamp=self._at(local, 0, slot.end),
                    action=ScheduledActionType.shutdown,
                )

        days = list(Weekday)
        for offset in range(1, 8):
            next_day = days[(day.day_index + offset) % 7]
            slots = self.slots_for(next_day)
            if slots:
                first = slots[0]
                return ScheduledAction(
                    timestamp=self._at(local, offset, first.start),
                    action=ScheduledActionType.ignite,
                    power=first.power,
                    fan=first.fan,
                )
        return None

    def _at(self, local: datetime, day_offset: int, clock: str) -> datetime:
        hours, minutes = (int(part) for part in clock.split(":"))
        target_date = local.date() + timedelta(days=day_offset)
        combined = datetime.combine(target_date, time(hours, minutes), tzinfo=self._tz)
        return combined.astimezone(UTC)


def next_scheduled_action(
    schedule: WeeklySchedule, now: datetime | None = None, *, timezone: str | None = None
) -> ScheduledAction | None:
    return Scheduler(schedule, timezone=timezone).next_action(now=now)


__all__ = ["ScheduledAction", "Scheduler", "find_active_slot", "next_scheduled_action"]
