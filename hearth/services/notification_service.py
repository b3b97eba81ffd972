"""Notification service for Hearth.

Coordination notifications go to an external webhook and share one global
throttle window: at most one message per window across every coordination
event type. The last-sent timestamp is kept in the state store so the window
survives between stateless invocations.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from hearth.config import SETTINGS
from hearth.core.errors import HearthError
from hearth.models.enums import CoordinationEventType
from hearth.models.schemas import CoordinationEvent
from hearth.services.event_log import CoordinationEventLog
from hearth.services.state_store import StateStore

logger = logging.getLogger(__name__)

THROTTLE_PATH = "coordination/notification_throttle"

_WEBHOOK_TIMEOUT = 10.0  # seconds
_TITLE = "Stove / thermostat coordination"


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class NotificationRecord:
    """Record of a delivery attempt (for auditing)."""

    title: str
    message: str
    target: str
    sent_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    success: bool = True
    error: str | None = None


@dataclass(slots=True)
class ThrottleDecision:
    allowed: bool
    wait_seconds: int = 0
    last_sent_at: datetime | None = None


@dataclass(slots=True)
class NotificationOutcome:
    sent: bool
    reason: str | None = None
    wait_seconds: int = 0


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class NotificationService:
    """Throttled coordination notifications delivered by webhook.

    Usage::

        service = NotificationService(store, webhook_url=url, event_log=log)
        outcome = await service.notify_coordination(
            CoordinationEventType.boost_applied, {"rooms": ["Living"]}, user_id="admin"
        )
    """

    def __init__(
        self,
        store: StateStore,
        *,
        webhook_url: str | None = None,
        throttle_minutes: float | None = None,
        event_log: CoordinationEventLog | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        history_limit: int = 100,
    ) -> None:
        self._store = store
        self._webhook_url = (
            SETTINGS.notification_webhook_url if webhook_url is None else webhook_url
        )
        self._window = timedelta(
            minutes=SETTINGS.notification_throttle_minutes
            if throttle_minutes is None
            else throttle_minutes
        )
        self._event_log = event_log
        self._transport = transport
        self._history: list[NotificationRecord] = []
        self._history_limit = history_limit

    # ------------------------------------------------------------------
    # Throttle
    # ------------------------------------------------------------------

    async def check_throttle(self, *, now: datetime | None = None) -> ThrottleDecision:
        now = now or datetime.now(UTC)
        stored = await self._store.get(THROTTLE_PATH)
        if not stored or not stored.get("last_sent_at"):
            return ThrottleDecision(allowed=True)

        last_sent = datetime.fromisoformat(stored["last_sent_at"])
        elapsed = now - last_sent
        if elapsed < self._window:
            wait = math.ceil((self._window - elapsed).total_seconds())
            return ThrottleDecision(allowed=False, wait_seconds=wait, last_sent_at=last_sent)
        return ThrottleDecision(allowed=True, last_sent_at=last_sent)

    async def record_sent(self, *, now: datetime | None = None) -> None:
        now = now or datetime.now(UTC)
        await self._store.set(THROTTLE_PATH, {"last_sent_at": now.isoformat()})

    # ------------------------------------------------------------------
    # Public API: Webhook notifications
    # ------------------------------------------------------------------

    async def send_webhook(self, url: str, payload: dict[str, Any]) -> None:
        """POST a JSON payload to an external webhook URL.

        Raises:
            httpx.HTTPStatusError: On non-2xx responses.
            httpx.TransportError: On network failures.
        """
        record = NotificationRecord(
            title=str(payload.get("title", "webhook")),
            message=str(payload.get("body", ""))[:200],
            target=url,
        )

        try:
            async with httpx.AsyncClient(
                timeout=_WEBHOOK_TIMEOUT, transport=self._transport
            ) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()

            logger.info("Webhook delivered to %s (status %d)", url, response.status_code)
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Webhook to %s failed with status %d: %s",
                url,
                exc.response.status_code,
                exc.response.text[:200],
            )
            record.success = False
            record.error = f"HTTP {exc.response.status_code}"
            raise
        except httpx.TransportError as exc:
            logger.error("Webhook connection to %s failed: %s", url, exc)
            record.success = False
            record.error = str(exc)
            raise
        finally:
            self._record(record)

    # ------------------------------------------------------------------
    # Public API: Coordination notifications
    # ------------------------------------------------------------------

    async def notify_coordination(
        self,
        event_type: CoordinationEventType,
        data: dict[str, Any],
        *,
        user_id: str,
        now: datetime | None = None,
    ) -> NotificationOutcome:
        """Send one coordination notification if the global window allows it.

        Never raises: a throttled or failed delivery is reported in the
        returned outcome only.
        """
        now = now or datetime.now(UTC)
        try:
            decision = await self.check_throttle(now=now)
        except HearthError as exc:
            logger.warning("Notification throttle unavailable: %s", exc)
            return NotificationOutcome(sent=False, reason="throttle_unavailable")

        if not decision.allowed:
            logger.info(
                "Coordination notification %s throttled (wait %ds)",
                event_type,
                decision.wait_seconds,
            )
            if self._event_log is not None:
                await self._event_log.log(
                    CoordinationEvent(
                        user_id=user_id,
                        event_type=CoordinationEventType.notification_throttled,
                        stove_status="UNKNOWN",
                        action="throttled",
                        details={
                            "wait_seconds": decision.wait_seconds,
                            "intended_type": str(event_type),
                        },
                    )
                )
            return NotificationOutcome(
                sent=False, reason="global_throttle", wait_seconds=decision.wait_seconds
            )

        if not self._webhook_url:
            logger.debug("No notification webhook configured; skipping %s", event_type)
            return NotificationOutcome(sent=False, reason="not_configured")

        payload = {
            "title": _TITLE,
            "body": build_message(event_type, data),
            "type": "coordination_event",
            "event_type": str(event_type),
            "user_id": user_id,
        }
        try:
            await self.send_webhook(self._webhook_url, payload)
        except httpx.HTTPError as exc:
            return NotificationOutcome(sent=False, reason=str(exc) or type(exc).__name__)

        try:
            await self.record_sent(now=now)
        except HearthError as exc:
            logger.warning("Could not persist notification throttle: %s", exc)
        return NotificationOutcome(sent=True)

    # ------------------------------------------------------------------
    # History / introspection
    # ------------------------------------------------------------------

    @property
    def history(self) -> list[NotificationRecord]:
        """Return a copy of the recent notification history."""
        return list(self._history)

    def _record(self, record: NotificationRecord) -> None:
        self._history.append(record)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def build_message(event_type: CoordinationEventType, data: dict[str, Any]) -> str:
    rooms = ", ".join(data.get("rooms") or []) or "rooms"
    if event_type == CoordinationEventType.boost_applied:
        boost = f" +{data['boost']:g}°C" if data.get("boost") else ""
        return f"Boost{boost} applied ({rooms})"
    if event_type == CoordinationEventType.setpoints_restored:
        return f"Setpoints restored ({rooms})"
    if event_type == CoordinationEventType.automation_paused:
        until = data.get("paused_until")
        if isinstance(until, datetime):
            return f"Automation paused until {until.astimezone(ZoneInfo(SETTINGS.timezone)):%H:%M}"
        return "Automation paused"
    if event_type == CoordinationEventType.max_setpoint_capped:
        return f"Setpoint capped at {data.get('cap', SETTINGS.max_setpoint_c):g}°C ({rooms})"
    return "Coordination event"


__all__ = [
    "NotificationOutcome",
    "NotificationRecord",
    "NotificationService",
    "THROTTLE_PATH",
    "ThrottleDecision",
    "build_message",
]
