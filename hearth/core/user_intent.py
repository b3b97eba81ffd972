"""Detect manual thermostat changes made while a boost is active."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from hearth.config import SETTINGS
from hearth.models.enums import IntentChangeType
from hearth.models.schemas import ZoneStatus

# Modes only a person (or the thermostat's own app) would switch a room into.
MANUAL_MODES = frozenset({"away", "hg", "off"})


@dataclass(slots=True)
class IntentChange:
    zone_id: str
    zone_name: str
    change_type: IntentChangeType
    expected: float | str
    actual: float | str


@dataclass(slots=True)
class UserIntent:
    changes: list[IntentChange] = field(default_factory=list)

    @property
    def manual_change(self) -> bool:
        return bool(self.changes)

    @property
    def reason(self) -> str | None:
        if not self.changes:
            return None
        kinds = {change.change_type for change in self.changes}
        names = ", ".join(dict.fromkeys(change.zone_name for change in self.changes))
        if kinds == {IntentChangeType.setpoint_changed}:
            return f"Setpoint changed manually ({names})"
        if kinds == {IntentChangeType.mode_changed}:
            return f"Mode changed manually ({names})"
        return f"Setpoint and mode changed manually ({names})"


def detect_user_intent(
    zones: Iterable[ZoneStatus],
    expected_setpoints: Mapping[str, float],
    *,
    tolerance: float | None = None,
) -> UserIntent:
    """Compare live zones with the setpoints the engine applied last."""
    tolerance = SETTINGS.intent_tolerance_c if tolerance is None else tolerance
    intent = UserIntent()
    for zone in zones:
        expected = expected_setpoints.get(zone.zone_id)
        if expected is None:
            continue
        name = zone.name or zone.zone_id
        if zone.setpoint is not None and abs(zone.setpoint - expected) > tolerance:
            intent.changes.append(
                IntentChange(
                    zone_id=zone.zone_id,
                    zone_name=name,
                    change_type=IntentChangeType.setpoint_changed,
                    expected=expected,
                    actual=zone.setpoint,
                )
            )
        if zone.mode in MANUAL_MODES:
            intent.changes.append(
                IntentChange(
                    zone_id=zone.zone_id,
                    zone_name=name,
                    change_type=IntentChangeType.mode_changed,
                    expected="manual/home",
                    actual=zone.mode,
                )
            )
    return intent


__all__ = ["IntentChange", "MANUAL_MODES", "UserIntent", "detect_user_intent"]
