"""Tests for hearth.core.timeslots — named schedules and the active pointer."""

from __future__ import annotations

import pytest

from hearth.core.errors import NotFoundError, ScheduleValidationError
from hearth.core.timeslots import (
    ACTIVE_ID_PATH,
    DEFAULT_SCHEDULE_ID,
    TimeSlotStore,
    parse_weekday,
)
from hearth.models.enums import Weekday
from hearth.models.schemas import TimeSlot
from hearth.services.state_store import InMemoryStateStore

MORNING = {"start": "07:00", "end": "09:00", "power": 3, "fan": 2}
EVENING = {"start": "18:00", "end": "22:30", "power": 4, "fan": 3}


@pytest.fixture()
def timeslots(store: InMemoryStateStore) -> TimeSlotStore:
    return TimeSlotStore(store)


def test_parse_weekday() -> None:
    assert parse_weekday("Monday") == Weekday.monday
    assert parse_weekday(Weekday.friday) == Weekday.friday
    with pytest.raises(ScheduleValidationError):
        parse_weekday("funday")


class TestActiveSchedule:
    async def test_default_schedule_when_nothing_stored(self, timeslots: TimeSlotStore) -> None:
        schedule = await timeslots.get_active_schedule()
        assert schedule.id == DEFAULT_SCHEDULE_ID
        assert schedule.name == "Default"
        assert schedule.slots == {}

    async def test_unknown_id_leaves_pointer_unchanged(
        self, timeslots: TimeSlotStore, store: InMemoryStateStore
    ) -> None:
        with pytest.raises(NotFoundError):
            await timeslots.set_active_schedule("missing", operator="alice")
        assert await store.get(ACTIVE_ID_PATH) is None
        assert await timeslots.active_schedule_id() == DEFAULT_SCHEDULE_ID

    async def test_switch_is_single_pointer_write(
        self, timeslots: TimeSlotStore, store: InMemoryStateStore
    ) -> None:
        created = await timeslots.create_schedule("Holidays")
        before = {k: v for k, v in store.data.items() if k != ACTIVE_ID_PATH}

        await timeslots.set_active_schedule(created.id, operator="alice")

        after = store.data
        pointer = after.pop(ACTIVE_ID_PATH)
        assert after == before
        assert pointer["schedule_id"] == created.id
        assert pointer["updated_by"] == "alice"
        assert (await timeslots.get_active_schedule()).id == created.id


class TestDaySlots:
    async def test_save_and_read_back(self, timeslots: TimeSlotStore) -> None:
        await timeslots.save_day_slots("monday", [MORNING, EVENING], operator="alice")

        slots = await timeslots.get_day_slots(Weekday.monday)
        assert slots == [TimeSlot(**MORNING), TimeSlot(**EVENING)]
        schedule = await timeslots.get_active_schedule()
        assert schedule.slots_for(Weekday.monday) == slots
        assert schedule.updated_by == "alice"
        assert schedule.updated_at is not None

    async def test_invalid_day_is_rejected_whole(self, timeslots: TimeSlotStore) -> None:
        await timeslots.save_day_slots("monday", [MORNING])

        bad = {"start": "10:00", "end": "09:00", "power": 3, "fan": 2}
        with pytest.raises(ScheduleValidationError):
            await timeslots.save_day_slots("monday", [EVENING, bad])

        assert await timeslots.get_day_slots("monday") == [TimeSlot(**MORNING)]

    @pytest.mark.parametrize(
        "slot",
        [
            {"start": "07:00", "end": "07:00", "power": 3, "fan": 2},
            {"start": "7:00", "end": "09:00", "power": 3, "fan": 2},
            {"start": "07:00", "end": "24:00", "power": 3, "fan": 2},
            {"start": "07:00", "end": "09:00", "power": 6, "fan": 2},
            {"start": "07:00", "end": "09:00", "power": 3, "fan": 0},
            {"start": "07:00", "end": "09:00", "power": 3, "fan": 2, "extra": 1},
        ],
    )
    async def test_slot_validation(self, timeslots: TimeSlotStore, slot: dict) -> None:
        with pytest.raises(ScheduleValidationError):
            await timeslots.save_day_slots("tuesday", [slot])

    async def test_power_zero_is_valid(self, timeslots: TimeSlotStore) -> None:
        await timeslots.save_day_slots(
            "tuesday", [{"start": "07:00", "end": "09:00", "power": 0, "fan": 1}]
        )
        assert (await timeslots.get_day_slots("tuesday"))[0].power == 0

    async def test_empty_day(self, timeslots: TimeSlotStore) -> None:
        await timeslots.save_day_slots("sunday", [MORNING])
        await timeslots.save_day_slots("sunday", [])
        assert await timeslots.get_day_slots("sunday") == []


class TestNamedSchedules:
    async def test_list_includes_implicit_default(self, timeslots: TimeSlotStore) -> None:
        summaries = await timeslots.list_schedules()
        assert [(s.id, s.is_active) for s in summaries] == [(DEFAULT_SCHEDULE_ID, True)]

    async def test_create_copy_and_list(self, timeslots: TimeSlotStore) -> None:
        await timeslots.save_day_slots("monday", [MORNING])
        copy = await timeslots.create_schedule("Winter", copy_from=DEFAULT_SCHEDULE_ID)

        assert copy.name == "Winter"
        assert copy.slots_for(Weekday.monday) == [TimeSlot(**MORNING)]

        summaries = {s.id: s for s in await timeslots.list_schedules()}
        assert summaries[DEFAULT_SCHEDULE_ID].is_active is True
        assert summaries[copy.id].is_active is False
        assert summaries[copy.id].name == "Winter"

    async def test_create_empty(self, timeslots: TimeSlotStore) -> None:
        created = await timeslots.create_schedule("  Away  ")
        assert created.name == "Away"
        assert created.slots == {}

    async def test_create_rejects_blank_name(self, timeslots: TimeSlotStore) -> None:
        with pytest.raises(ScheduleValidationError):
            await timeslots.create_schedule("   ")

    async def test_create_from_unknown_source(self, timeslots: TimeSlotStore) -> None:
        with pytest.raises(NotFoundError):
            await timeslots.create_schedule("Copy", copy_from="missing")

    async def test_delete(self, timeslots: TimeSlotStore, store: InMemoryStateStore) -> None:
        created = await timeslots.create_schedule("Temp")
        await timeslots.set_active_schedule(created.id)
        await timeslots.save_day_slots("monday", [MORNING])
        await timeslots.set_active_schedule(DEFAULT_SCHEDULE_ID)

        await timeslots.delete_schedule(created.id)

        assert not any(created.id in key for key in store.data)
        with pytest.raises(NotFoundError):
            await timeslots.get_schedule(created.id)

    async def test_delete_active_rejected(self, timeslots: TimeSlotStore) -> None:
        with pytest.raises(ScheduleValidationError):
            await timeslots.delete_schedule(DEFAULT_SCHEDULE_ID)

    async def test_delete_unknown(self, timeslots: TimeSlotStore) -> None:
        with pytest.raises(NotFoundError):
            await timeslots.delete_schedule("missing")
