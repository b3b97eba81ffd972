"""Append-only log of coordination decisions.

Logging is fire-and-forget: a failed append is reported through the
application log and never propagates into the cycle that produced it.
"""

from __future__ import annotations

import logging
from typing import Any

from hearth.core.errors import HearthError
from hearth.models.enums import CoordinationEventType
from hearth.models.schemas import CoordinationEvent
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)

EVENTS_PATH = "coordination/events"


class CoordinationEventLog:
    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def log(self, event: CoordinationEvent) -> str | None:
        """Append *event*; returns the generated key or ``None`` on failure."""
        if not event.user_id or not event.stove_status or not event.action:
            logger.error("Coordination event missing required fields: %s", event.event_type)
            return None
        try:
            key = await self._store.push(EVENTS_PATH, event.model_dump(mode="json"))
        except HearthError as exc:
            logger.error("Failed to log coordination event %s: %s", event.event_type, exc)
            return None
        logger.debug("Logged coordination event %s (%s)", event.event_type, key)
        return key

    async def recent(
        self,
        *,
        limit: int = 50,
        event_type: CoordinationEventType | None = None,
    ) -> list[dict[str, Any]]:
        """Newest-first events for dashboards."""
        stored = await self._store.children(EVENTS_PATH)
        events = [
            {"id": key, **value}
            for key, value in sorted(stored.items(), reverse=True)
            if event_type is None or value.get("event_type") == event_type
        ]
        return events[:limit]


__all__ = ["EVENTS_PATH", "CoordinationEventLog"]
