"""Integration tests for weekly schedule routes on an in-memory store."""

from __future__ import annotations

from httpx import AsyncClient

from hearth.core.timeslots import TimeSlotStore
from hearth.services.state_store import InMemoryStateStore

BASE = "/api/v1/schedules"

MORNING = {"start": "06:00", "end": "09:00", "power": 3, "fan": 2}
EVENING = {"start": "18:00", "end": "22:30", "power": 4, "fan": 3}


# ============================================================================
# GET /api/v1/schedules
# ============================================================================


class TestListSchedules:
    async def test_default_schedule_is_listed_when_empty(self, api_client: AsyncClient) -> None:
        resp = await api_client.get(BASE)

        assert resp.status_code == 200
        assert resp.json() == [
            {"id": "default", "name": "Default", "updated_at": None, "is_active": True}
        ]

    async def test_created_schedule_is_listed(self, api_client: AsyncClient) -> None:
        created = (await api_client.post(BASE, json={"name": "Winter"})).json()

        resp = await api_client.get(BASE)

        rows = {row["id"]: row for row in resp.json()}
        assert rows[created["id"]]["name"] == "Winter"
        assert rows[created["id"]]["is_active"] is False
        assert rows["default"]["is_active"] is True


# ============================================================================
# POST /api/v1/schedules
# ============================================================================


class TestCreateSchedule:
    async def test_create_empty(self, api_client: AsyncClient) -> None:
        resp = await api_client.post(BASE, json={"name": "Holidays"}, headers={"X-Operator": "u1"})

        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Holidays"
        assert data["slots"] == {}
        assert data["updated_by"] == "u1"

    async def test_copy_from_existing(
        self, api_client: AsyncClient, store: InMemoryStateStore
    ) -> None:
        await TimeSlotStore(store).save_day_slots("monday", [MORNING])

        resp = await api_client.post(BASE, json={"name": "Copy", "copy_from": "default"})

        assert resp.status_code == 201
        assert resp.json()["slots"] == {"monday": [MORNING]}

    async def test_copy_from_unknown_is_404(self, api_client: AsyncClient) -> None:
        resp = await api_client.post(BASE, json={"name": "Copy", "copy_from": "nope"})

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == 404

    async def test_blank_name_rejected(self, api_client: AsyncClient) -> None:
        resp = await api_client.post(BASE, json={"name": "   "})
        assert resp.status_code == 422

    async def test_unknown_field_rejected(self, api_client: AsyncClient) -> None:
        resp = await api_client.post(BASE, json={"name": "X", "color": "red"})
        assert resp.status_code == 422


# ============================================================================
# Active schedule and day slots
# ============================================================================


class TestActiveSchedule:
    async def test_switch_active(self, api_client: AsyncClient) -> None:
        created = (await api_client.post(BASE, json={"name": "Winter"})).json()

        resp = await api_client.put(f"{BASE}/active", json={"schedule_id": created["id"]})

        assert resp.status_code == 200
        assert (await api_client.get(f"{BASE}/active")).json()["id"] == created["id"]

    async def test_switch_to_unknown_keeps_current(self, api_client: AsyncClient) -> None:
        resp = await api_client.put(f"{BASE}/active", json={"schedule_id": "missing"})

        assert resp.status_code == 404
        assert "missing" in resp.json()["error"]["message"]
        assert (await api_client.get(f"{BASE}/active")).json()["id"] == "default"

    async def test_save_and_read_day(self, api_client: AsyncClient) -> None:
        resp = await api_client.put(f"{BASE}/active/days/Monday", json=[MORNING, EVENING])

        assert resp.status_code == 200
        assert resp.json() == [MORNING, EVENING]
        assert (await api_client.get(f"{BASE}/active/days/monday")).json() == [MORNING, EVENING]
        assert (await api_client.get(f"{BASE}/active/days/tuesday")).json() == []

    async def test_invalid_slot_rejects_whole_day(self, api_client: AsyncClient) -> None:
        await api_client.put(f"{BASE}/active/days/monday", json=[MORNING])
        bad = {"start": "10:00", "end": "09:00", "power": 3, "fan": 2}

        resp = await api_client.put(f"{BASE}/active/days/monday", json=[EVENING, bad])

        assert resp.status_code == 422
        assert (await api_client.get(f"{BASE}/active/days/monday")).json() == [MORNING]

    async def test_unknown_weekday(self, api_client: AsyncClient) -> None:
        resp = await api_client.get(f"{BASE}/active/days/funday")
        assert resp.status_code == 422


# ============================================================================
# GET / DELETE /api/v1/schedules/{id}
# ============================================================================


class TestScheduleById:
    async def test_get_unknown(self, api_client: AsyncClient) -> None:
        resp = await api_client.get(f"{BASE}/missing")
        assert resp.status_code == 404

    async def test_delete(self, api_client: AsyncClient) -> None:
        created = (await api_client.post(BASE, json={"name": "Temp"})).json()

        resp = await api_client.delete(f"{BASE}/{created['id']}")

        assert resp.status_code == 204
        assert (await api_client.get(f"{BASE}/{created['id']}")).status_code == 404

    async def test_active_schedule_cannot_be_deleted(self, api_client: AsyncClient) -> None:
        resp = await api_client.delete(f"{BASE}/default")
        assert resp.status_code == 422
