"""PID power controller with anti-windup.

The controller turns a temperature error into a discrete stove power level.
The integral is accumulated in raw ``error * minutes`` units and clamped
before ``ki`` is applied, so retuning ``ki`` does not change how hard windup
is capped.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from numbers import Real

from hearth.config import SETTINGS, Settings
from hearth.models.schemas import PIDConfig, PIDGains, PIDState
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)

PID_CONFIG_PATH = "pid/config"
PID_STATE_PATH = "pid/state"

# Cron ticks drift by a few seconds; an evaluation that is "almost" due runs.
_INTERVAL_SLACK_MINUTES = 0.5


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(slots=True)
class ControllerLimits:
    output_min: int = 1
    output_max: int = 5
    integral_min: float = -10.0
    integral_max: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> ControllerLimits:
        return cls(
            output_min=settings.pid_output_min,
            output_max=settings.pid_output_max,
            integral_min=-settings.pid_integral_limit,
            integral_max=settings.pid_integral_limit,
        )


class PIDController:
    def __init__(
        self,
        gains: PIDGains | None = None,
        limits: ControllerLimits | None = None,
    ) -> None:
        gains = gains or PIDGains()
        self.kp = gains.kp
        self.ki = gains.ki
        self.kd = gains.kd
        self.limits = limits or ControllerLimits()
        self.integral = 0.0
        self.previous_error: float | None = None

    def reset(self) -> None:
        self.integral = 0.0
        self.previous_error = None

    def get_state(self) -> PIDState:
        return PIDState(
            kp=self.kp,
            ki=self.ki,
            kd=self.kd,
            integral=self.integral,
            previous_error=self.previous_error,
        )

    def set_state(self, state: PIDState) -> None:
        self.integral = self._clamp(
            self.limits.integral_min, self.limits.integral_max, state.integral
        )
        self.previous_error = state.previous_error

    def compute(self, setpoint: float, measured: float, dt_minutes: float) -> int:
        for name, value in (("setpoint", setpoint), ("measured", measured), ("dt", dt_minutes)):
            if isinstance(value, bool) or not isinstance(value, Real):
                raise TypeError(f"{name} must be a number, got {type(value).__name__}")
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite")
        if dt_minutes <= 0:
            raise ValueError("dt must be positive")

        error = setpoint - measured
        integral = self._clamp(
            self.limits.integral_min,
            self.limits.integral_max,
            self.integral + error * dt_minutes,
        )
        derivative = 0.0
        if self.previous_error is not None:
            derivative = (error - self.previous_error) / dt_minutes

        output = self.kp * error + self.ki * integral + self.kd * derivative
        level = int(
            self._clamp(self.limits.output_min, self.limits.output_max, round_half_up(output))
        )

        self.integral = integral
        self.previous_error = error
        return level

    @staticmethod
    def _clamp(low: float, high: float, value: float) -> float:
        if value < low:
            return low
        if value > high:
            return high
        return value


@dataclass(slots=True)
class PIDEvaluation:
    zone_id: str
    power_level: int
    error: float
    integral: float
    dt_minutes: float


class PowerController:
    """Per-zone controller whose state lives in the state store between runs."""

    def __init__(self, store: StateStore, *, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or SETTINGS
        self._limits = ControllerLimits.from_settings(self._settings)

    async def load_config(self) -> PIDConfig:
        stored = await self._store.get(PID_CONFIG_PATH)
        return PIDConfig.model_validate(stored) if stored else PIDConfig()

    async def save_config(self, config: PIDConfig) -> PIDConfig:
        await self._store.set(PID_CONFIG_PATH, config.model_dump(mode="json"))
        logger.info(
            "PID config saved (enabled=%s zone=%s setpoint=%.1f)",
            config.enabled,
            config.target_zone_id,
            config.setpoint,
        )
        return config

    async def load_state(self, zone_id: str) -> PIDState | None:
        stored = await self._store.get(f"{PID_STATE_PATH}/{zone_id}")
        return PIDState.model_validate(stored) if stored else None

    def _dt_minutes(self, state: PIDState | None, now: datetime) -> float | None:
        interval = self._settings.pid_control_interval_minutes
        if state is None or state.previous_timestamp is None:
            return interval
        elapsed = (now - state.previous_timestamp).total_seconds() / 60
        if elapsed < interval - _INTERVAL_SLACK_MINUTES:
            return None
        low, high = self._settings.pid_dt_min_minutes, self._settings.pid_dt_max_minutes
        return max(low, min(high, elapsed))

    async def evaluate(
        self,
        zone_id: str,
        setpoint: float,
        measured: float,
        *,
        gains: PIDGains | None = None,
        now: datetime | None = None,
    ) -> PIDEvaluation | None:
        """Run one control step for *zone_id*.

        Returns ``None`` when the previous step is younger than the control
        interval; the stored state is left untouched in that case.
        """
        now = now or datetime.now(UTC)
        state = await self.load_state(zone_id)
        dt = self._dt_minutes(state, now)
        if dt is None:
            logger.debug("PID step for zone %s skipped; interval not elapsed", zone_id)
            return None

        controller = PIDController(gains or state or PIDGains(), self._limits)
        if state is not None:
            controller.set_state(state)
        level = controller.compute(setpoint, measured, dt)

        new_state = controller.get_state()
        new_state.previous_timestamp = now
        await self._store.set(f"{PID_STATE_PATH}/{zone_id}", new_state.model_dump(mode="json"))

        logger.info(
            "PID zone %s: %.1f -> %.1f C, dt=%.1f min, power %d",
            zone_id,
            measured,
            setpoint,
            dt,
            level,
        )
        return PIDEvaluation(
            zone_id=zone_id,
            power_level=level,
            error=setpoint - measured,
            integral=new_state.integral,
            dt_minutes=dt,
        )

    def preview(
        self,
        setpoint: float,
        measured: float,
        dt_minutes: float,
        *,
        gains: PIDGains | None = None,
    ) -> int:
        """Cold-start output for a hypothetical step; never reads or writes state."""
        return PIDController(gains, self._limits).compute(setpoint, measured, dt_minutes)


__all__ = [
    "PID_CONFIG_PATH",
    "PID_STATE_PATH",
    "ControllerLimits",
    "PIDController",
    "PIDEvaluation",
    "PowerController",
    "round_half_up",
]
