"""Tests for hearth.core.user_intent."""

from __future__ import annotations

import pytest

from hearth.core.user_intent import detect_user_intent
from hearth.models.enums import IntentChangeType
from hearth.models.schemas import ZoneStatus


def _zone(zone_id: str = "1", setpoint: float | None = 22.0, mode: str = "manual") -> ZoneStatus:
    return ZoneStatus(zone_id=zone_id, name=f"Room {zone_id}", setpoint=setpoint, mode=mode)


def test_no_change_when_setpoint_matches() -> None:
    intent = detect_user_intent([_zone(setpoint=22.0)], {"1": 22.0}, tolerance=0.5)
    assert intent.manual_change is False
    assert intent.reason is None


def test_drift_within_tolerance_ignored() -> None:
    intent = detect_user_intent([_zone(setpoint=22.4)], {"1": 22.0}, tolerance=0.5)
    assert intent.manual_change is False


def test_setpoint_change_detected() -> None:
    intent = detect_user_intent([_zone(setpoint=19.0)], {"1": 22.0}, tolerance=0.5)

    assert intent.manual_change is True
    [change] = intent.changes
    assert change.change_type == IntentChangeType.setpoint_changed
    assert change.expected == 22.0
    assert change.actual == 19.0
    assert intent.reason == "Setpoint changed manually (Room 1)"


@pytest.mark.parametrize("mode", ["away", "hg", "off"])
def test_manual_mode_switch_detected(mode: str) -> None:
    intent = detect_user_intent([_zone(mode=mode)], {"1": 22.0}, tolerance=0.5)
    [change] = intent.changes
    assert change.change_type == IntentChangeType.mode_changed
    assert change.actual == mode
    assert intent.reason == "Mode changed manually (Room 1)"


def test_schedule_mode_is_not_a_manual_change() -> None:
    intent = detect_user_intent([_zone(mode="schedule")], {"1": 22.0}, tolerance=0.5)
    assert intent.manual_change is False


def test_both_changes_reported() -> None:
    intent = detect_user_intent(
        [_zone("1", setpoint=15.0, mode="away"), _zone("2", setpoint=22.0)],
        {"1": 22.0, "2": 22.0},
        tolerance=0.5,
    )
    assert {c.change_type for c in intent.changes} == {
        IntentChangeType.setpoint_changed,
        IntentChangeType.mode_changed,
    }
    assert intent.reason == "Setpoint and mode changed manually (Room 1)"


def test_untracked_zones_are_ignored() -> None:
    intent = detect_user_intent([_zone("9", setpoint=10.0, mode="off")], {"1": 22.0})
    assert intent.manual_change is False


def test_missing_live_setpoint_is_not_a_change() -> None:
    intent = detect_user_intent([_zone(setpoint=None)], {"1": 22.0}, tolerance=0.5)
    assert intent.manual_change is False
