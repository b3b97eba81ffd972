"""Scheduler check: turn the weekly schedule into stove commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

from hearth.config import SETTINGS, Settings
from hearth.core.errors import UpstreamUnavailableError
from hearth.core.pid_controller import PowerController
from hearth.core.scheduler import Scheduler, find_active_slot
from hearth.core.scheduler_mode import SchedulerModeStore
from hearth.core.timeslots import TimeSlotStore
from hearth.integrations.stove_client import StoveClient
from hearth.integrations.thermostat_client import ThermostatClient
from hearth.models.enums import DecisionStatus, ErrorSource, Weekday
from hearth.models.schemas import ApplianceStatus, ModeView, PIDConfig, TimeSlot
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PIDOutcome:
    skipped: bool
    reason: str | None = None
    adjusted: bool = False
    power_from: int | None = None
    power_to: int | None = None
    temperature: float | None = None
    setpoint: float | None = None
    zone_name: str | None = None


@dataclass(slots=True)
class StoveSnapshot:
    status: ApplianceStatus | None
    power: int | None
    fan: int | None

    @property
    def status_failed(self) -> bool:
        return self.status is None

    @property
    def is_on(self) -> bool:
        return self.status is not None and self.status.is_heating


@dataclass(slots=True)
class DecisionResult:
    status: DecisionStatus
    timestamp: datetime
    message: str = ""
    day: Weekday | None = None
    local_time: str | None = None
    active_slot: TimeSlot | None = None
    return_to_auto_at: datetime | None = None
    source: ErrorSource | None = None
    pid: PIDOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": str(self.status),
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "day": str(self.day) if self.day else None,
            "local_time": self.local_time,
            "active_slot": self.active_slot.model_dump() if self.active_slot else None,
        }
        if self.return_to_auto_at is not None:
            data["return_to_auto_at"] = self.return_to_auto_at.isoformat()
        if self.source is not None:
            data["source"] = str(self.source)
        if self.pid is not None:
            data["pid"] = asdict(self.pid)
        return data


class DecisionEngine:
    """Run one scheduler check per external tick."""

    def __init__(
        self,
        store: StateStore,
        stove: StoveClient,
        thermostat: ThermostatClient | None = None,
        *,
        settings: Settings | None = None,
        home_id: str | None = None,
    ) -> None:
        self._store = store
        self._stove = stove
        self._thermostat = thermostat
        self._settings = settings or SETTINGS
        self._home_id = self._settings.home_id if home_id is None else home_id
        self._modes = SchedulerModeStore(store)
        self._timeslots = TimeSlotStore(store)
        self._power = PowerController(store, settings=self._settings)

    async def check(self, *, now: datetime | None = None) -> DecisionResult:
        now = now or datetime.now(UTC)
        try:
            async with asyncio.timeout(self._settings.cycle_timeout_seconds):
                result = await self._check(now)
        except TimeoutError:
            logger.error("Scheduler check timed out")
            result = DecisionResult(
                status=DecisionStatus.error,
                timestamp=now,
                message="Scheduler check exceeded its time budget",
                source=ErrorSource.orchestrator,
            )
        except UpstreamUnavailableError as exc:
            logger.error("Scheduler check failed at %s: %s", exc.source, exc)
            result = DecisionResult(
                status=DecisionStatus.error, timestamp=now, message=str(exc), source=exc.source
            )
        logger.info("Scheduler check: %s %s", result.status, result.message)
        return result

    async def _check(self, now: datetime) -> DecisionResult:
        mode = await self._modes.current_mode(now=now)
        if not mode.enabled:
            return DecisionResult(
                status=DecisionStatus.manual, timestamp=now, message="Scheduler disabled"
            )
        if mode.semi_manual:
            return DecisionResult(
                status=DecisionStatus.semi_manual,
                timestamp=now,
                message="Manual hold active until the next scheduled change",
                return_to_auto_at=mode.effective_until,
            )

        scheduler = Scheduler(
            await self._timeslots.get_active_schedule(), timezone=self._settings.timezone
        )
        day, minute = scheduler.day_and_minute(now)
        base = {"timestamp": now, "day": day, "local_time": f"{minute // 60:02d}:{minute % 60:02d}"}

        slots = scheduler.slots_for(day)
        if not slots:
            return DecisionResult(
                status=DecisionStatus.no_schedule, message="No slots today", **base
            )

        active = find_active_slot(slots, minute)
        if active is not None and active.power == 0:
            active = None

        stove = await self._snapshot()

        if active is None:
            if stove.is_on:
                if not await self._stove.shutdown():
                    logger.error("Stove rejected the scheduled shutdown")
                    return DecisionResult(
                        status=DecisionStatus.error,
                        message="Stove rejected the shutdown command",
                        source=ErrorSource.stove_api,
                        **base,
                    )
                return DecisionResult(
                    status=DecisionStatus.shutdown, message="Outside scheduled slots", **base
                )
            return DecisionResult(status=DecisionStatus.off, **base)

        if not stove.is_on:
            if stove.status_failed:
                logger.warning("Stove status unknown; skipping scheduled ignition")
                return DecisionResult(
                    status=DecisionStatus.status_unavailable,
                    message="Ignition skipped: stove status unavailable",
                    active_slot=active,
                    **base,
                )
            return await self._ignite(active, stove, base)

        pid_config = await self._power.load_config()
        changed = await self._apply_levels(active, stove, pid_owns_power=pid_config.enabled)
        pid = await self.run_pid(stove, mode, pid_config, now=now)
        return DecisionResult(
            status=(
                DecisionStatus.levels_adjusted if changed or pid.adjusted else DecisionStatus.on
            ),
            active_slot=active,
            pid=pid,
            **base,
        )

    async def _snapshot(self) -> StoveSnapshot:
        results = await asyncio.gather(
            self._stove.get_status(),
            self._stove.get_power_level(),
            self._stove.get_fan_level(),
            return_exceptions=True,
        )
        for value in results:
            if isinstance(value, BaseException) and not isinstance(
                value, UpstreamUnavailableError
            ):
                raise value
        status, power, fan = (None if isinstance(v, BaseException) else v for v in results)
        if status is None:
            logger.warning("Stove status unavailable; state-changing actions are skipped")
        return StoveSnapshot(status=status, power=power, fan=fan)

    async def _ignite(
        self, active: TimeSlot, stove: StoveSnapshot, base: dict[str, Any]
    ) -> DecisionResult:
        # A concurrent check or a person may have lit the stove since the snapshot.
        try:
            confirm = await self._stove.get_status()
        except UpstreamUnavailableError as exc:
            logger.warning("Could not confirm stove status before ignition: %s", exc)
            return DecisionResult(
                status=DecisionStatus.status_unavailable,
                message="Ignition skipped: confirmation failed",
                active_slot=active,
                **base,
            )
        if confirm.is_heating:
            return DecisionResult(
                status=DecisionStatus.already_on,
                message="Stove already on",
                active_slot=active,
                **base,
            )

        if not await self._stove.ignite(power=active.power):
            logger.error("Stove rejected ignition at P%d", active.power)
            return DecisionResult(
                status=DecisionStatus.error,
                message="Stove rejected the ignition command",
                active_slot=active,
                source=ErrorSource.stove_api,
                **base,
            )
        if stove.fan != active.fan:
            try:
                await self._stove.set_fan_level(active.fan)
            except UpstreamUnavailableError as exc:
                logger.error("Failed to set fan after ignition: %s", exc)
        return DecisionResult(
            status=DecisionStatus.ignited,
            message=f"Ignited at P{active.power} V{active.fan}",
            active_slot=active,
            **base,
        )

    async def _apply_levels(
        self, active: TimeSlot, stove: StoveSnapshot, *, pid_owns_power: bool
    ) -> bool:
        changed = False
        if not pid_owns_power and stove.power != active.power:
            try:
                await self._stove.set_power_level(active.power)
                changed = True
            except UpstreamUnavailableError as exc:
                logger.error("Failed to set power level: %s", exc)
        if stove.fan != active.fan:
            try:
                await self._stove.set_fan_level(active.fan)
                changed = True
            except UpstreamUnavailableError as exc:
                logger.error("Failed to set fan level: %s", exc)
        return changed

    async def run_pid(
        self,
        stove: StoveSnapshot,
        mode: ModeView,
        config: PIDConfig,
        *,
        now: datetime | None = None,
    ) -> PIDOutcome:
        """Let the power controller adjust the stove power level."""
        if not stove.is_on:
            return PIDOutcome(skipped=True, reason="stove_off")
        if mode.semi_manual or not mode.enabled:
            return PIDOutcome(skipped=True, reason="not_auto_mode")
        if not config.enabled:
            return PIDOutcome(skipped=True, reason="pid_disabled")
        if not config.target_zone_id or self._thermostat is None or not self._home_id:
            return PIDOutcome(skipped=True, reason="no_target_zone")

        try:
            zones = await self._thermostat.get_home_status(self._home_id)
        except UpstreamUnavailableError as exc:
            logger.warning("PID skipped; thermostat unavailable: %s", exc)
            return PIDOutcome(skipped=True, reason="thermostat_unavailable")

        zone = next((z for z in zones if z.zone_id == str(config.target_zone_id)), None)
        if zone is None:
            return PIDOutcome(skipped=True, reason="zone_not_found")
        if zone.temperature is None:
            return PIDOutcome(skipped=True, reason="no_temperature_data")
        if not 15 <= config.setpoint <= 25:
            return PIDOutcome(skipped=True, reason="invalid_setpoint")

        evaluation = await self._power.evaluate(
            zone.zone_id, config.setpoint, zone.temperature, gains=config, now=now
        )
        if evaluation is None:
            return PIDOutcome(skipped=True, reason="interval_not_elapsed")

        outcome = PIDOutcome(
            skipped=False,
            power_from=stove.power,
            power_to=evaluation.power_level,
            temperature=zone.temperature,
            setpoint=config.setpoint,
            zone_name=zone.name,
        )
        if evaluation.power_level == stove.power:
            outcome.reason = "no_change_needed"
            return outcome
        try:
            await self._stove.set_power_level(evaluation.power_level)
        except UpstreamUnavailableError as exc:
            logger.error("PID failed to set power level: %s", exc)
            outcome.reason = "power_write_failed"
            return outcome
        outcome.adjusted = True
        logger.info(
            "PID: %.1f -> %.1f C, power %s -> %d",
            zone.temperature,
            config.setpoint,
            stove.power,
            evaluation.power_level,
        )
        return outcome


__all__ = ["DecisionEngine", "DecisionResult", "PIDOutcome", "StoveSnapshot"]
