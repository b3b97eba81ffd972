"""Tests for hearth.core.scheduler."""

from __future__ import annotations

from datetime import UTC, datetime

from hearth.core.scheduler import Scheduler, find_active_slot, next_scheduled_action
from hearth.models.enums import ScheduledActionType, Weekday
from hearth.models.schemas import TimeSlot, WeeklySchedule

MORNING = TimeSlot(start="07:00", end="09:00", power=3, fan=2)
EVENING = TimeSlot(start="18:00", end="22:00", power=4, fan=3)


def _scheduler(**slots: list[TimeSlot]) -> Scheduler:
    schedule = WeeklySchedule(
        id="default", name="Default", slots={Weekday(day): value for day, value in slots.items()}
    )
    return Scheduler(schedule, timezone="Europe/Rome")


def test_find_active_slot_is_end_exclusive() -> None:
    slots = [MORNING, EVENING]
    assert find_active_slot(slots, 7 * 60) == MORNING
    assert find_active_slot(slots, 9 * 60 - 1) == MORNING
    assert find_active_slot(slots, 9 * 60) is None
    assert find_active_slot([], 600) is None


def test_local_time_uses_configured_timezone() -> None:
    scheduler = _scheduler(monday=[MORNING])
    # 06:00 UTC in January is 07:00 in Rome
    day, minute = scheduler.day_and_minute(datetime(2025, 1, 6, 6, 0, tzinfo=UTC))
    assert day == Weekday.monday
    assert minute == 7 * 60


def test_current_slot() -> None:
    scheduler = _scheduler(monday=[EVENING, MORNING])
    assert scheduler.get_current_slot(now=datetime(2025, 1, 6, 6, 30, tzinfo=UTC)) == MORNING
    assert scheduler.get_current_slot(now=datetime(2025, 1, 6, 8, 0, tzinfo=UTC)) is None


def test_slots_sorted_by_start() -> None:
    scheduler = _scheduler(monday=[EVENING, MORNING])
    assert scheduler.slots_for(Weekday.monday) == [MORNING, EVENING]
    assert scheduler.slots_for(Weekday.tuesday) == []


class TestNextAction:
    def test_shutdown_at_end_of_current_slot(self) -> None:
        action = _scheduler(monday=[MORNING]).next_action(
            now=datetime(2025, 1, 6, 6, 30, tzinfo=UTC)
        )
        assert action is not None
        assert action.action == ScheduledActionType.shutdown
        assert action.timestamp == datetime(2025, 1, 6, 8, 0, tzinfo=UTC)

    def test_ignite_at_next_slot_today(self) -> None:
        action = _scheduler(monday=[MORNING, EVENING]).next_action(
            now=datetime(2025, 1, 6, 10, 0, tzinfo=UTC)
        )
        assert action is not None
        assert action.action == ScheduledActionType.ignite
        assert action.timestamp == datetime(2025, 1, 6, 17, 0, tzinfo=UTC)
        assert (action.power, action.fan) == (4, 3)

    def test_wraps_to_next_week(self) -> None:
        action = _scheduler(monday=[MORNING]).next_action(
            now=datetime(2025, 1, 6, 22, 30, tzinfo=UTC)
        )
        assert action is not None
        assert action.action == ScheduledActionType.ignite
        assert action.timestamp == datetime(2025, 1, 13, 6, 0, tzinfo=UTC)

    def test_next_day(self) -> None:
        action = _scheduler(monday=[MORNING], wednesday=[EVENING]).next_action(
            now=datetime(2025, 1, 6, 12, 0, tzinfo=UTC)
        )
        assert action is not None
        assert action.timestamp == datetime(2025, 1, 8, 17, 0, tzinfo=UTC)

    def test_empty_week(self) -> None:
        assert _scheduler().next_action(now=datetime(2025, 1, 6, 12, 0, tzinfo=UTC)) is None


def test_next_scheduled_action_helper() -> None:
    schedule = WeeklySchedule(id="default", name="Default", slots={Weekday.monday: [MORNING]})
    action = next_scheduled_action(
        schedule, datetime(2025, 1, 6, 5, 0, tzinfo=UTC), timezone="Europe/Rome"
    )
    assert action is not None
    assert action.action == ScheduledActionType.ignite
    assert action.timestamp == datetime(2025, 1, 6, 6, 0, tzinfo=UTC)
