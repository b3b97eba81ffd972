import os
from collections.abc import AsyncGenerator
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

# Settings are read at import time; keep the suite off any real database.
os.environ.setdefault("HEARTH_STATE_BACKEND", "memory")
os.environ.setdefault("HEARTH_API_KEY", "")
os.environ.setdefault("HEARTH_CRON_SECRET", "")
os.environ.setdefault("HEARTH_INTERNAL_SCHEDULER", "false")

from hearth.config import Settings  # noqa: E402
from hearth.core import scheduler_mode  # noqa: E402
from hearth.integrations.stove_client import StoveClient  # noqa: E402
from hearth.models.enums import ZoneMode  # noqa: E402
from hearth.models.schemas import ApplianceStatus, ThermostatSchedule, ZoneStatus  # noqa: E402
from hearth.services.state_store import InMemoryStateStore  # noqa: E402


class FakeThermostat:
    """In-memory thermostat whose live setpoints follow accepted writes."""

    def __init__(self, zones: list[ZoneStatus]) -> None:
        self.zones = {zone.zone_id: zone for zone in zones}
        self.writes: list[tuple[str, str, float | None, datetime | None]] = []
        self.reject: set[str] = set()
        self.timetable: ThermostatSchedule | None = None
        self.status_error: Exception | None = None

    async def get_home_status(self, home_id: str) -> list[ZoneStatus]:
        if self.status_error is not None:
            raise self.status_error
        return [zone.model_copy() for zone in self.zones.values()]

    async def set_zone_setpoint(
        self,
        home_id: str,
        zone_id: str,
        mode: ZoneMode,
        *,
        temp: float | None = None,
        endtime: datetime | None = None,
    ) -> bool:
        self.writes.append((zone_id, str(mode), temp, endtime))
        if zone_id in self.reject:
            return False
        current = self.zones.get(zone_id, ZoneStatus(zone_id=zone_id))
        self.zones[zone_id] = current.model_copy(update={"setpoint": temp, "mode": str(mode)})
        return True

    async def get_active_timetable(self, home_id: str) -> ThermostatSchedule | None:
        return self.timetable

    def user_sets(
        self, zone_id: str, *, setpoint: float | None = None, mode: str | None = None
    ) -> None:
        update: dict[str, object] = {}
        if setpoint is not None:
            update["setpoint"] = setpoint
        if mode is not None:
            update["mode"] = mode
        self.zones[zone_id] = self.zones[zone_id].model_copy(update=update)


def make_stove(description: str = "WORK", power: int = 3, fan: int = 3) -> AsyncMock:
    stove = AsyncMock(spec=StoveClient)
    stove.get_status.return_value = ApplianceStatus(status_code=1, description=description)
    stove.get_power_level.return_value = power
    stove.get_fan_level.return_value = fan
    stove.ignite.return_value = True
    stove.shutdown.return_value = True
    stove.set_power_level.return_value = True
    stove.set_fan_level.return_value = True
    return stove


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        state_backend="memory",
        home_id="home-1",
        admin_user_id="admin",
        timezone="Europe/Rome",
        notification_webhook_url="",
    )


@pytest.fixture()
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture()
def stove() -> AsyncMock:
    return make_stove()


@pytest.fixture()
def stove_factory():
    return make_stove


@pytest.fixture()
def thermostat() -> FakeThermostat:
    return FakeThermostat(
        [
            ZoneStatus(
                zone_id="1", name="Living", setpoint=20.0, mode="schedule", temperature=19.0
            ),
            ZoneStatus(
                zone_id="2", name="Bedroom", setpoint=18.0, mode="schedule", temperature=17.5
            ),
        ]
    )


@pytest.fixture(autouse=True)
async def drain_background_tasks() -> AsyncGenerator[None]:
    yield
    await scheduler_mode.wait_pending()
