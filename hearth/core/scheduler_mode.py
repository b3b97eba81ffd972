"""Scheduler mode store with lazily expiring semi-manual override."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from hearth.core.errors import HearthError
from hearth.models.schemas import ModeView, SchedulerMode
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)

MODE_PATH = "scheduler/mode"

_background_tasks: set[asyncio.Task[None]] = set()


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def evaluate_mode(stored: SchedulerMode, now: datetime) -> ModeView:
    """Effective mode of *stored* at *now*; a lapsed override reads as automatic."""
    if stored.semi_manual and stored.return_to_auto_at is not None:
        if _aware(now) >= _aware(stored.return_to_auto_at):
            return ModeView(enabled=stored.enabled, semi_manual=False)
    return ModeView(
        enabled=stored.enabled,
        semi_manual=stored.semi_manual,
        effective_until=stored.return_to_auto_at if stored.semi_manual else None,
    )


async def wait_pending() -> None:
    """Wait for outstanding best-effort expiry writes."""
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


class SchedulerModeStore:
    def __init__(self, store: StateStore) -> None:
        self._store = store

    async def get_stored(self) -> SchedulerMode:
        stored = await self._store.get(MODE_PATH)
        return SchedulerMode.model_validate(stored) if stored else SchedulerMode()

    async def _write(self, mode: SchedulerMode) -> SchedulerMode:
        await self._store.set(MODE_PATH, mode.model_dump(mode="json"))
        return mode

    async def set_enabled(self, enabled: bool, *, operator: str | None = None) -> SchedulerMode:
        mode = await self._write(SchedulerMode(enabled=enabled, updated_by=operator))
        state = "enabled" if enabled else "disabled"
        logger.info("Scheduler %s by %s", state, operator or "unknown")
        return mode

    async def enter_semi_manual(
        self, return_to_auto_at: datetime, *, operator: str | None = None
    ) -> SchedulerMode:
        """Start a manual hold; this always turns automation on."""
        now = datetime.now(UTC)
        mode = await self._write(
            SchedulerMode(
                enabled=True,
                semi_manual=True,
                semi_manual_activated_at=now,
                return_to_auto_at=_aware(return_to_auto_at),
                last_updated=now,
                updated_by=operator,
            )
        )
        logger.info("Semi-manual mode until %s", mode.return_to_auto_at)
        return mode

    async def exit_semi_manual(self, *, operator: str | None = None) -> SchedulerMode:
        current = await self.get_stored()
        mode = await self._write(
            SchedulerMode(enabled=current.enabled, updated_by=operator or current.updated_by)
        )
        logger.info("Semi-manual mode cleared; back to automatic")
        return mode

    async def current_mode(self, *, now: datetime | None = None) -> ModeView:
        now = now or datetime.now(UTC)
        stored = await self.get_stored()
        view = evaluate_mode(stored, now)
        if stored.semi_manual and not view.semi_manual:
            task = asyncio.create_task(self._expire(stored.return_to_auto_at))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)
        return view

    async def _expire(self, expected_return_at: datetime | None) -> None:
        try:
            current = await self.get_stored()
            # A newer hold written in the meantime must survive.
            if not current.semi_manual or current.return_to_auto_at != expected_return_at:
                return
            await self.exit_semi_manual()
        except HearthError as exc:
            logger.warning("Failed to clear expired semi-manual mode: %s", exc)


__all__ = ["MODE_PATH", "SchedulerModeStore", "evaluate_mode", "wait_pending"]
