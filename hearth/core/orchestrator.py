"""Stove / thermostat coordination cycle.

One call to :meth:`CoordinationOrchestrator.run_cycle` is one stateless
invocation: every input is read from the state store and the collaborators,
and every decision is written back before the call returns. Invocations may
overlap, so each transition is safe to apply twice:

* ``boosted_rooms`` is the idempotency guard. A room already present there
  is never boosted from its live (already boosted) setpoint again, and an
  empty map makes the restore branch a no-op.
* Per-room bookkeeping is persisted only after the thermostat accepted the
  write it depends on, one room at a time. Each write adds or drops only
  that room's keys, so overlapping cycles never erase each other's entries.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from hearth.config import SETTINGS, Settings
from hearth.core.errors import ConfigurationMissingError, UpstreamUnavailableError
from hearth.core.pause_calculator import calculate_pause_until
from hearth.core.user_intent import UserIntent, detect_user_intent
from hearth.integrations.stove_client import StoveClient
from hearth.integrations.thermostat_client import ThermostatClient, ThermostatClientError
from hearth.models.enums import CoordinationEventType, CycleAction, ErrorSource, ZoneMode
from hearth.models.schemas import (
    CoordinationEvent,
    CoordinationPreferences,
    CoordinationState,
    ZoneStatus,
)
from hearth.services.event_log import CoordinationEventLog
from hearth.services.notification_service import NotificationService
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)

STATE_PATH = "coordination/state"
PREFERENCES_PATH = "coordination/preferences"

_EVENT_TYPES = {
    CycleAction.applied: CoordinationEventType.boost_applied,
    CycleAction.restored: CoordinationEventType.setpoints_restored,
    CycleAction.paused: CoordinationEventType.automation_paused,
    CycleAction.debouncing: CoordinationEventType.coordination_debouncing,
    CycleAction.error: CoordinationEventType.coordination_error,
}


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------


async def load_preferences(store: StateStore) -> CoordinationPreferences:
    stored = await store.get(PREFERENCES_PATH)
    return CoordinationPreferences.model_validate(stored) if stored else CoordinationPreferences()


async def save_preferences(
    store: StateStore, preferences: CoordinationPreferences
) -> CoordinationPreferences:
    await store.set(PREFERENCES_PATH, preferences.model_dump(mode="json"))
    logger.info(
        "Coordination preferences saved (enabled=%s, %d zone(s))",
        preferences.enabled,
        len(preferences.zones),
    )
    return preferences


async def load_coordination_state(store: StateStore) -> CoordinationState:
    stored = await store.get(STATE_PATH)
    return CoordinationState.model_validate(stored) if stored else CoordinationState()


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class CycleResult:
    action: CycleAction
    reason: str | None = None
    stove_status: str = "UNKNOWN"
    rooms: list[dict[str, Any]] = field(default_factory=list)
    capped_rooms: list[str] = field(default_factory=list)
    failed_rooms: list[str] = field(default_factory=list)
    changes: list[dict[str, Any]] = field(default_factory=list)
    paused_until: datetime | None = None
    remaining_seconds: int | None = None
    source: ErrorSource | None = None
    error: str | None = None
    notification_sent: bool = False
    cycle_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "action": str(self.action),
            "reason": self.reason,
            "stove_status": self.stove_status,
            "cycle_id": self.cycle_id,
            "notification_sent": self.notification_sent,
        }
        if self.rooms:
            data["rooms"] = self.rooms
        if self.capped_rooms:
            data["capped_rooms"] = self.capped_rooms
        if self.failed_rooms:
            data["failed_rooms"] = self.failed_rooms
        if self.changes:
            data["changes"] = self.changes
        if self.paused_until is not None:
            data["paused_until"] = self.paused_until.isoformat()
        if self.remaining_seconds is not None:
            data["remaining_seconds"] = self.remaining_seconds
        if self.source is not None:
            data["source"] = str(self.source)
            data["error"] = self.error
        return data


def _error(source: ErrorSource, reason: str, message: str) -> CycleResult:
    return CycleResult(action=CycleAction.error, reason=reason, source=source, error=message)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class CoordinationOrchestrator:
    """Boost thermostat setpoints while the stove heats, restore them after."""

    def __init__(
        self,
        store: StateStore,
        stove: StoveClient,
        thermostat: ThermostatClient,
        *,
        event_log: CoordinationEventLog | None = None,
        notifications: NotificationService | None = None,
        settings: Settings | None = None,
        home_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self._store = store
        self._stove = stove
        self._thermostat = thermostat
        self._settings = settings or SETTINGS
        self._event_log = event_log or CoordinationEventLog(store)
        self._notifications = notifications
        self._home_id = self._settings.home_id if home_id is None else home_id
        self._user_id = user_id or self._settings.admin_user_id or "hearth"

    async def run_cycle(self, *, now: datetime | None = None) -> CycleResult:
        """Run one coordination cycle; failures come back as ``error`` results."""
        now = now or datetime.now(UTC)
        cycle_id = uuid.uuid4().hex[:12]
        logger.info("Coordination cycle %s started", cycle_id)

        try:
            async with asyncio.timeout(self._settings.cycle_timeout_seconds):
                result = await self._run(now)
        except TimeoutError:
            logger.error("Coordination cycle %s timed out", cycle_id)
            result = _error(ErrorSource.orchestrator, "timeout", "Cycle exceeded its time budget")
        except ConfigurationMissingError as exc:
            logger.error("Coordination cycle %s: %s", cycle_id, exc)
            result = _error(ErrorSource.orchestrator, "configuration_missing", str(exc))
        except UpstreamUnavailableError as exc:
            logger.error("Coordination cycle %s failed at %s: %s", cycle_id, exc.source, exc)
            result = _error(exc.source, "upstream_unavailable", str(exc))
        except Exception as exc:  # noqa: BLE001 - nothing escapes the cycle boundary
            logger.exception("Coordination cycle %s crashed", cycle_id)
            result = _error(ErrorSource.orchestrator, "unexpected_error", str(exc))

        result.cycle_id = cycle_id
        await self._announce(result)
        logger.info("Coordination cycle %s: %s (%s)", cycle_id, result.action, result.reason)
        return result

    # -- decision -------------------------------------------------------------

    async def _run(self, now: datetime) -> CycleResult:
        preferences = await load_preferences(self._store)
        if not preferences.enabled:
            return CycleResult(action=CycleAction.noop, reason="disabled")
        if not preferences.enabled_zones:
            raise ConfigurationMissingError("No coordination zone is enabled")
        if not self._home_id:
            raise ConfigurationMissingError("Thermostat home id is not configured")

        state = await load_coordination_state(self._store)
        if state.paused_until is not None:
            if now < state.paused_until:
                return CycleResult(
                    action=CycleAction.paused,
                    reason="pause_active",
                    paused_until=state.paused_until,
                    remaining_seconds=int((state.paused_until - now).total_seconds()),
                )
            logger.info("Coordination pause expired; resuming")
            await self._store.update(STATE_PATH, {"paused_until": None, "pause_reason": None})
            state.paused_until = None
            state.pause_reason = None

        status = await self._stove.get_status()
        heating = status.is_heating

        if heating and not state.boost_active:
            result = await self._apply(preferences, now, reapply=False)
        elif heating:
            live = await self._thermostat.get_home_status(self._home_id)
            intent = detect_user_intent(
                (z for z in live if z.zone_id in state.boosted_rooms),
                state.applied_setpoints,
                tolerance=self._settings.intent_tolerance_c,
            )
            if intent.manual_change:
                result = await self._pause(intent, now)
            else:
                result = self._debounce(state, now) or await self._apply(
                    preferences, now, reapply=True, live=live
                )
        elif state.boost_active:
            result = await self._restore(preferences, state, now)
        else:
            result = CycleResult(action=CycleAction.noop, reason="no_change")

        result.stove_status = status.description
        return result

    def _debounce(self, state: CoordinationState, now: datetime) -> CycleResult | None:
        if state.last_action_at is None:
            return None
        interval = timedelta(minutes=self._settings.coordination_reapply_minutes)
        elapsed = now - state.last_action_at
        if elapsed >= interval:
            return None
        return CycleResult(
            action=CycleAction.debouncing,
            reason="reapply_interval",
            remaining_seconds=int((interval - elapsed).total_seconds()),
        )

    # -- transitions ----------------------------------------------------------

    async def _apply(
        self,
        preferences: CoordinationPreferences,
        now: datetime,
        *,
        reapply: bool,
        live: list[ZoneStatus] | None = None,
    ) -> CycleResult:
        if live is None:
            live = await self._thermostat.get_home_status(self._home_id)
        by_id = {zone.zone_id: zone for zone in live}
        endtime = now + timedelta(hours=self._settings.manual_setpoint_hours)
        cap = self._settings.max_setpoint_c

        rooms: list[dict[str, Any]] = []
        capped: list[str] = []
        failed: list[str] = []

        for zone in preferences.enabled_zones:
            # Re-read per room: an overlapping cycle may have boosted it already.
            state = await load_coordination_state(self._store)
            live_zone = by_id.get(zone.zone_id)
            if zone.zone_id in state.boosted_rooms:
                original = state.boosted_rooms[zone.zone_id]
            elif live_zone is not None and live_zone.setpoint is not None:
                original = live_zone.setpoint
            else:
                logger.warning("Zone %s has no readable setpoint; skipping boost", zone.zone_id)
                failed.append(zone.zone_name)
                continue

            boost = zone.boost if zone.boost is not None else preferences.default_boost
            target = round(min(original + boost, cap), 1)
            was_capped = original + boost > cap
            room = {
                "zone_id": zone.zone_id,
                "zone_name": zone.zone_name,
                "previous": original,
                "applied": target,
                "boost": boost,
            }

            if (
                zone.zone_id in state.boosted_rooms
                and live_zone is not None
                and live_zone.setpoint == target
            ):
                rooms.append(room)
                continue

            ok = await self._thermostat.set_zone_setpoint(
                self._home_id, zone.zone_id, ZoneMode.manual, temp=target, endtime=endtime
            )
            if not ok:
                logger.warning("Thermostat rejected boost for zone %s", zone.zone_id)
                failed.append(zone.zone_name)
                continue

            # Only this room's entries are written; an original recorded by an
            # overlapping cycle during the write wins over our live reading.
            recorded = (await load_coordination_state(self._store)).boosted_rooms
            await self._store.update(
                STATE_PATH,
                {
                    f"boosted_rooms/{zone.zone_id}": recorded.get(zone.zone_id, original),
                    f"applied_setpoints/{zone.zone_id}": target,
                },
            )
            rooms.append(room)
            if was_capped:
                capped.append(zone.zone_name)

        if not rooms:
            return CycleResult(
                action=CycleAction.error,
                reason="setpoint_rejected",
                source=ErrorSource.thermostat_api,
                error="No zone accepted the boosted setpoint",
                failed_rooms=failed,
            )

        await self._store.update(STATE_PATH, {"last_action_at": now.isoformat()})
        return CycleResult(
            action=CycleAction.applied,
            reason="drift_corrected" if reapply else "stove_heating",
            rooms=rooms,
            capped_rooms=capped,
            failed_rooms=failed,
        )

    async def _restore(
        self,
        preferences: CoordinationPreferences,
        state: CoordinationState,
        now: datetime,
    ) -> CycleResult:
        names = {zone.zone_id: zone.zone_name for zone in preferences.zones}
        endtime = now + timedelta(hours=self._settings.manual_setpoint_hours)
        rooms: list[dict[str, Any]] = []
        failed: list[str] = []

        for zone_id, original in state.boosted_rooms.items():
            name = names.get(zone_id, zone_id)
            ok = await self._thermostat.set_zone_setpoint(
                self._home_id, zone_id, ZoneMode.manual, temp=original, endtime=endtime
            )
            if not ok:
                logger.warning("Thermostat rejected restore for zone %s", zone_id)
                failed.append(name)
                continue

            await self._store.update(
                STATE_PATH,
                {f"boosted_rooms/{zone_id}": None, f"applied_setpoints/{zone_id}": None},
            )
            rooms.append({"zone_id": zone_id, "zone_name": name, "restored": original})

        if not rooms:
            return CycleResult(
                action=CycleAction.error,
                reason="setpoint_rejected",
                source=ErrorSource.thermostat_api,
                error="No zone accepted its restored setpoint",
                failed_rooms=failed,
            )

        await self._store.update(STATE_PATH, {"last_action_at": now.isoformat()})
        return CycleResult(
            action=CycleAction.restored,
            reason="partial" if failed else "stove_idle",
            rooms=rooms,
            failed_rooms=failed,
        )

    async def _pause(self, intent: UserIntent, now: datetime) -> CycleResult:
        schedule = None
        try:
            schedule = await self._thermostat.get_active_timetable(self._home_id)
        except ThermostatClientError as exc:
            logger.warning("Thermostat timetable unavailable for pause sizing: %s", exc)

        window = calculate_pause_until(
            now, schedule, default_minutes=self._settings.default_pause_minutes
        )

        fields: dict[str, Any] = {
            "paused_until": window.pause_until.isoformat(),
            "pause_reason": intent.reason,
        }
        # Rooms the user changed are theirs now; they are not restored later.
        for change in intent.changes:
            fields[f"boosted_rooms/{change.zone_id}"] = None
            fields[f"applied_setpoints/{change.zone_id}"] = None
        await self._store.update(STATE_PATH, fields)
        logger.info(
            "Manual change detected (%s); paused until %s", intent.reason, window.pause_until
        )
        return CycleResult(
            action=CycleAction.paused,
            reason="user_intent",
            paused_until=window.pause_until,
            remaining_seconds=window.wait_minutes * 60,
            changes=[
                {
                    "zone_id": change.zone_id,
                    "zone_name": change.zone_name,
                    "type": str(change.change_type),
                    "expected": change.expected,
                    "actual": change.actual,
                }
                for change in intent.changes
            ],
        )

    # -- side effects ---------------------------------------------------------

    async def _announce(self, result: CycleResult) -> None:
        """Notify and log the cycle outcome; never affects *result*."""
        if result.action == CycleAction.noop or result.reason == "pause_active":
            return

        notify = result.action in (CycleAction.restored, CycleAction.paused) or (
            result.action == CycleAction.applied and result.reason == "stove_heating"
        )
        event_type = _EVENT_TYPES[result.action]
        if notify and self._notifications is not None:
            outcome = await self._notifications.notify_coordination(
                event_type,
                {
                    "rooms": [room["zone_name"] for room in result.rooms],
                    "boost": result.rooms[0].get("boost") if result.rooms else None,
                    "paused_until": result.paused_until,
                },
                user_id=self._user_id,
            )
            result.notification_sent = outcome.sent

        details: dict[str, Any] = {"reason": result.reason}
        for key in ("rooms", "changes", "failed_rooms", "remaining_seconds", "error", "source"):
            value = result.to_dict().get(key)
            if value:
                details[key] = value
        if result.paused_until is not None:
            details["paused_until"] = result.paused_until.isoformat()

        await self._event_log.log(
            CoordinationEvent(
                user_id=self._user_id,
                event_type=event_type,
                stove_status=result.stove_status,
                action=str(result.action),
                details=details,
                notification_sent=result.notification_sent,
                cycle_id=result.cycle_id,
            )
        )

        if result.capped_rooms:
            capped_sent = False
            if self._notifications is not None:
                outcome = await self._notifications.notify_coordination(
                    CoordinationEventType.max_setpoint_capped,
                    {"rooms": result.capped_rooms, "cap": self._settings.max_setpoint_c},
                    user_id=self._user_id,
                )
                capped_sent = outcome.sent
            await self._event_log.log(
                CoordinationEvent(
                    user_id=self._user_id,
                    event_type=CoordinationEventType.max_setpoint_capped,
                    stove_status=result.stove_status,
                    action="capped",
                    details={
                        "rooms": result.capped_rooms,
                        "capped_at": self._settings.max_setpoint_c,
                    },
                    notification_sent=capped_sent,
                    cycle_id=result.cycle_id,
                )
            )


__all__ = [
    "PREFERENCES_PATH",
    "STATE_PATH",
    "CoordinationOrchestrator",
    "CycleResult",
    "load_coordination_state",
    "load_preferences",
    "save_preferences",
]
