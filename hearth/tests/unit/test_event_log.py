"""Tests for hearth.services.event_log."""

from __future__ import annotations

from typing import Any

from hearth.core.errors import StateStoreError
from hearth.models.enums import CoordinationEventType
from hearth.models.schemas import CoordinationEvent
from hearth.services.event_log import EVENTS_PATH, CoordinationEventLog
from hearth.services.state_store import InMemoryStateStore


def _event(
    event_type: CoordinationEventType = CoordinationEventType.boost_applied, **kw: Any
) -> CoordinationEvent:
    fields = {"user_id": "admin", "stove_status": "WORK", "action": "applied", **kw}
    return CoordinationEvent(event_type=event_type, **fields)


class _BrokenStore(InMemoryStateStore):
    async def set(self, path: str, value: Any) -> None:
        raise StateStoreError("write refused")


async def test_log_appends_event(store: InMemoryStateStore) -> None:
    log = CoordinationEventLog(store)

    key = await log.log(_event(details={"rooms": ["Living"]}))

    assert key is not None
    stored = await store.get(f"{EVENTS_PATH}/{key}")
    assert stored["event_type"] == "boost_applied"
    assert stored["details"] == {"rooms": ["Living"]}
    assert stored["timestamp"]


async def test_missing_required_fields_rejected(store: InMemoryStateStore) -> None:
    log = CoordinationEventLog(store)
    assert await log.log(_event(user_id="")) is None
    assert await log.log(_event(stove_status="")) is None
    assert await store.children(EVENTS_PATH) == {}


async def test_store_failure_never_raises() -> None:
    log = CoordinationEventLog(_BrokenStore())
    assert await log.log(_event()) is None


async def test_recent_is_newest_first_and_filtered(store: InMemoryStateStore) -> None:
    log = CoordinationEventLog(store)
    await store.set(f"{EVENTS_PATH}/0001", _event().model_dump(mode="json"))
    await store.set(
        f"{EVENTS_PATH}/0002",
        _event(CoordinationEventType.setpoints_restored, action="restored").model_dump(
            mode="json"
        ),
    )
    await store.set(f"{EVENTS_PATH}/0003", _event().model_dump(mode="json"))

    events = await log.recent()
    assert [e["id"] for e in events] == ["0003", "0002", "0001"]

    restored = await log.recent(event_type=CoordinationEventType.setpoints_restored)
    assert [e["id"] for e in restored] == ["0002"]

    assert len(await log.recent(limit=1)) == 1
