"""Weekly schedule storage.

Layout in the state store::

    scheduler/active_schedule_id              {"schedule_id", "updated_at", "updated_by"}
    scheduler/schedules/{id}                  schedule metadata
    scheduler/schedules/{id}/slots/{weekday}  ordered list of time slots

Switching the active schedule rewrites only the pointer document, so readers
see either the old or the new schedule and never a mix of both.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from hearth.core.errors import NotFoundError, ScheduleValidationError
from hearth.models.enums import Weekday
from hearth.models.schemas import ScheduleSummary, TimeSlot, WeeklySchedule
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_SCHEDULE_ID = "default"
ACTIVE_ID_PATH = "scheduler/active_schedule_id"
SCHEDULES_PATH = "scheduler/schedules"

_SLOT_LIST = TypeAdapter(list[TimeSlot])


def _schedule_path(schedule_id: str) -> str:
    return f"{SCHEDULES_PATH}/{schedule_id}"


def _day_path(schedule_id: str, day: Weekday) -> str:
    return f"{SCHEDULES_PATH}/{schedule_id}/slots/{day.value}"


def parse_weekday(day: str | Weekday) -> Weekday:
    try:
        return Weekday(str(day).lower())
    except ValueError as exc:
        raise ScheduleValidationError(f"Unknown weekday '{day}'") from exc


def validate_slots(slots: Sequence[TimeSlot | Mapping[str, Any]]) -> list[TimeSlot]:
    """Validate a full day of slots; nothing is written if any slot is invalid."""
    try:
        return _SLOT_LIST.validate_python(list(slots))
    except ValidationError as exc:
        raise ScheduleValidationError(str(exc)) from exc


class TimeSlotStore:
    """Named weekly schedules plus the active-schedule pointer."""

    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def active_schedule_id(self) -> str:
        pointer = await self._store.get(ACTIVE_ID_PATH)
        if isinstance(pointer, dict) and pointer.get("schedule_id"):
            return str(pointer["schedule_id"])
        return DEFAULT_SCHEDULE_ID

    async def get_schedule(self, schedule_id: str) -> WeeklySchedule:
        meta = await self._store.get(_schedule_path(schedule_id))
        if meta is None and schedule_id != DEFAULT_SCHEDULE_ID:
            raise NotFoundError(f"Schedule '{schedule_id}' not found")
        meta = meta or {}

        days = list(Weekday)
        stored = await asyncio.gather(
            *(self._store.get(_day_path(schedule_id, day)) for day in days)
        )
        slots = {
            day: _SLOT_LIST.validate_python(value) for day, value in zip(days, stored) if value
        }
        return WeeklySchedule(
            id=schedule_id,
            name=meta.get("name") or schedule_id.title(),
            slots=slots,
            updated_at=meta.get("updated_at"),
            updated_by=meta.get("updated_by"),
        )

    async def get_active_schedule(self) -> WeeklySchedule:
        return await self.get_schedule(await self.active_schedule_id())

    async def set_active_schedule(
        self, schedule_id: str, *, operator: str | None = None
    ) -> WeeklySchedule:
        schedule = await self.get_schedule(schedule_id)
        await self._store.set(
            ACTIVE_ID_PATH,
            {
                "schedule_id": schedule_id,
                "updated_at": datetime.now(UTC).isoformat(),
                "updated_by": operator,
            },
        )
        logger.info("Active schedule switched to %s by %s", schedule_id, operator or "unknown")
        return schedule

    async def get_day_slots(self, day: str | Weekday) -> list[TimeSlot]:
        weekday = parse_weekday(day)
        schedule_id = await self.active_schedule_id()
        stored = await self._store.get(_day_path(schedule_id, weekday))
        return _SLOT_LIST.validate_python(stored or [])

    async def save_day_slots(
        self,
        day: str | Weekday,
        slots: Sequence[TimeSlot | Mapping[str, Any]],
        *,
        operator: str | None = None,
    ) -> None:
        """Replace one day of the active schedule and bump its ``updated_at``."""
        weekday = parse_weekday(day)
        validated = validate_slots(slots)
        schedule_id = await self.active_schedule_id()

        await self._store.set(
            _day_path(schedule_id, weekday),
            [slot.model_dump(mode="json") for slot in validated],
        )
        await self._store.update(
            _schedule_path(schedule_id),
            {
                "id": schedule_id,
                "updated_at": datetime.now(UTC).isoformat(),
                "updated_by": operator,
            },
        )
        logger.info(
            "Saved %d slot(s) for %s on schedule %s", len(validated), weekday.value, schedule_id
        )

    async def list_schedules(self) -> list[ScheduleSummary]:
        active_id = await self.active_schedule_id()
        stored = await self._store.children(SCHEDULES_PATH)
        summaries = [
            ScheduleSummary(
                id=schedule_id,
                name=(meta or {}).get("name") or schedule_id.title(),
                updated_at=(meta or {}).get("updated_at"),
                is_active=schedule_id == active_id,
            )
            for schedule_id, meta in stored.items()
        ]
        if not any(summary.id == active_id for summary in summaries):
            summaries.insert(
                0, ScheduleSummary(id=active_id, name=active_id.title(), is_active=True)
            )
        return summaries

    async def create_schedule(
        self,
        name: str,
        *,
        copy_from: str | None = None,
        operator: str | None = None,
    ) -> WeeklySchedule:
        name = name.strip()
        if not name:
            raise ScheduleValidationError("Schedule name must not be empty")

        source = await self.get_schedule(copy_from) if copy_from else None
        schedule_id = uuid.uuid4().hex[:12]
        now = datetime.now(UTC).isoformat()

        if source is not None:
            for day, slots in source.slots.items():
                await self._store.set(
                    _day_path(schedule_id, day), [slot.model_dump(mode="json") for slot in slots]
                )
        await self._store.set(
            _schedule_path(schedule_id),
            {
                "id": schedule_id,
                "name": name,
                "created_at": now,
                "updated_at": now,
                "updated_by": operator,
            },
        )
        logger.info("Created schedule %s (%s)", schedule_id, name)
        return await self.get_schedule(schedule_id)

    async def delete_schedule(self, schedule_id: str) -> None:
        if schedule_id == await self.active_schedule_id():
            raise ScheduleValidationError("The active schedule cannot be deleted")
        if await self._store.get(_schedule_path(schedule_id)) is None:
            raise NotFoundError(f"Schedule '{schedule_id}' not found")
        for day in Weekday:
            await self._store.delete(_day_path(schedule_id, day))
        await self._store.delete(_schedule_path(schedule_id))
        logger.info("Deleted schedule %s", schedule_id)


__all__ = [
    "ACTIVE_ID_PATH",
    "DEFAULT_SCHEDULE_ID",
    "SCHEDULES_PATH",
    "TimeSlotStore",
    "parse_weekday",
    "validate_slots",
]
