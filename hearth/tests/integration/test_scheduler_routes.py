"""Integration tests for scheduler mode routes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from httpx import AsyncClient

from hearth.core.scheduler_mode import MODE_PATH
from hearth.core.timeslots import TimeSlotStore
from hearth.models.enums import Weekday
from hearth.services.state_store import InMemoryStateStore

BASE = "/api/v1/scheduler"

ALL_DAY = {"start": "06:00", "end": "22:00", "power": 3, "fan": 2}


async def _fill_week(store: InMemoryStateStore) -> None:
    timeslots = TimeSlotStore(store)
    for day in Weekday:
        await timeslots.save_day_slots(day, [ALL_DAY])


class TestMode:
    async def test_defaults_to_manual(self, api_client: AsyncClient) -> None:
        resp = await api_client.get(f"{BASE}/mode")

        assert resp.status_code == 200
        assert resp.json() == {"enabled": False, "semi_manual": False, "effective_until": None}

    async def test_enable(self, api_client: AsyncClient, store: InMemoryStateStore) -> None:
        resp = await api_client.put(
            f"{BASE}/mode", json={"enabled": True}, headers={"X-Operator": "u1"}
        )

        assert resp.status_code == 200
        assert resp.json()["enabled"] is True
        assert (await store.get(MODE_PATH))["updated_by"] == "u1"
        assert (await api_client.get(f"{BASE}/mode")).json()["enabled"] is True

    async def test_operator_falls_back_to_admin(
        self, api_client: AsyncClient, store: InMemoryStateStore
    ) -> None:
        await api_client.put(f"{BASE}/mode", json={"enabled": False})
        assert (await store.get(MODE_PATH))["updated_by"] == "admin"


class TestSemiManual:
    async def test_explicit_return_time(self, api_client: AsyncClient) -> None:
        until = datetime.now(UTC) + timedelta(hours=2)

        resp = await api_client.post(
            f"{BASE}/semi-manual", json={"return_to_auto_at": until.isoformat()}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["enabled"] is True
        assert data["semi_manual"] is True
        mode = (await api_client.get(f"{BASE}/mode")).json()
        assert mode["semi_manual"] is True
        assert datetime.fromisoformat(mode["effective_until"]) == until

    async def test_naive_time_is_utc(self, api_client: AsyncClient) -> None:
        until = (datetime.now(UTC) + timedelta(hours=1)).replace(tzinfo=None, microsecond=0)

        resp = await api_client.post(
            f"{BASE}/semi-manual", json={"return_to_auto_at": until.isoformat()}
        )

        assert resp.status_code == 200
        returned = datetime.fromisoformat(resp.json()["return_to_auto_at"])
        assert returned == until.replace(tzinfo=UTC)

    async def test_past_time_rejected(self, api_client: AsyncClient) -> None:
        past = datetime.now(UTC) - timedelta(minutes=1)

        resp = await api_client.post(
            f"{BASE}/semi-manual", json={"return_to_auto_at": past.isoformat()}
        )

        assert resp.status_code == 422

    async def test_defaults_to_next_scheduled_change(
        self, api_client: AsyncClient, store: InMemoryStateStore
    ) -> None:
        await _fill_week(store)
        before = datetime.now(UTC)

        resp = await api_client.post(f"{BASE}/semi-manual", json={})

        assert resp.status_code == 200
        until = datetime.fromisoformat(resp.json()["return_to_auto_at"])
        assert before < until <= before + timedelta(hours=24)

    async def test_no_scheduled_change_is_422(self, api_client: AsyncClient) -> None:
        resp = await api_client.post(f"{BASE}/semi-manual", json={})
        assert resp.status_code == 422

    async def test_exit(self, api_client: AsyncClient) -> None:
        until = datetime.now(UTC) + timedelta(hours=2)
        await api_client.post(f"{BASE}/semi-manual", json={"return_to_auto_at": until.isoformat()})

        resp = await api_client.delete(f"{BASE}/semi-manual")

        assert resp.status_code == 200
        assert resp.json()["semi_manual"] is False
        assert resp.json()["enabled"] is True


class TestNextAction:
    async def test_empty_schedule(self, api_client: AsyncClient) -> None:
        resp = await api_client.get(f"{BASE}/next-action")

        assert resp.status_code == 200
        assert resp.json() == {"timestamp": None, "action": None, "power": None, "fan": None}

    async def test_next_change(self, api_client: AsyncClient, store: InMemoryStateStore) -> None:
        await _fill_week(store)

        data = (await api_client.get(f"{BASE}/next-action")).json()

        assert data["action"] in {"ignite", "shutdown"}
        assert datetime.fromisoformat(data["timestamp"]) > datetime.now(UTC)
        if data["action"] == "ignite":
            assert (data["power"], data["fan"]) == (3, 2)
