"""Async client for the zone thermostat cloud API.

Only the three calls the engine needs are wrapped: live room status,
per-room setpoint writes, and the active weekly timetable. Room names and
the timetable come from ``homesdata``; live setpoints from ``homestatus``.
"""

from __future__ import annotations

import logging
from contextlib import suppress
from datetime import datetime
from typing import Any

import httpx

from hearth.core.errors import UpstreamUnavailableError
from hearth.models.enums import ErrorSource, ZoneMode
from hearth.models.schemas import (
    ThermostatSchedule,
    ThermostatScheduleZone,
    TimetableEntry,
    ZoneStatus,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ThermostatClientError(UpstreamUnavailableError):
    """Base exception for all thermostat client errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message, source=ErrorSource.thermostat_api)


class ThermostatConnectionError(ThermostatClientError):
    """Raised when the thermostat service cannot be reached or times out."""


class ThermostatAuthenticationError(ThermostatClientError):
    """Raised on 401/403 responses."""


class ThermostatServiceError(ThermostatClientError):
    """Raised on 5xx responses or unusable payloads."""


class ThermostatRejectedError(ThermostatClientError):
    """Raised when the service refuses a well-formed command (other 4xx)."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ThermostatClient:
    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._homes_data: dict[str, dict[str, Any]] = {}

    async def __aenter__(self) -> ThermostatClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            with suppress(httpx.HTTPError):
                await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    # -- internal request helper ----------------------------------------------

    def _raise_for_status(self, response: httpx.Response, *, context: str) -> None:
        """Translate HTTP error codes into typed exceptions."""
        if response.is_success:
            return

        status = response.status_code
        detail = response.text[:300]
        if status in (401, 403):
            msg = f"[{context}] Authentication failed ({status}). Check the thermostat token."
            logger.error(msg)
            raise ThermostatAuthenticationError(msg)
        if 400 <= status < 500:
            msg = f"[{context}] Command rejected {status}: {detail}"
            logger.warning(msg)
            raise ThermostatRejectedError(msg)
        msg = f"[{context}] Server error {status}: {detail}"
        logger.error(msg)
        raise ThermostatServiceError(msg)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._get_client().post(f"/api/{endpoint}", json=payload)
        except httpx.TimeoutException as exc:
            msg = f"Thermostat call {endpoint} timed out ({self._timeout}s)"
            logger.error(msg)
            raise ThermostatConnectionError(msg) from exc
        except httpx.TransportError as exc:
            msg = f"Cannot reach thermostat API at {self._base_url}: {exc}"
            logger.error(msg)
            raise ThermostatConnectionError(msg) from exc

        self._raise_for_status(response, context=endpoint)
        try:
            data = response.json()
        except ValueError as exc:
            raise ThermostatServiceError(f"[{endpoint}] Invalid JSON payload") from exc
        if not isinstance(data, dict):
            raise ThermostatServiceError(f"[{endpoint}] Unexpected payload")
        return data

    async def _home(self, home_id: str) -> dict[str, Any]:
        if home_id not in self._homes_data:
            data = await self._post("homesdata", {"home_id": home_id})
            homes = (data.get("body") or {}).get("homes") or []
            home = next((h for h in homes if str(h.get("id")) == home_id), None)
            if home is None and homes:
                home = homes[0]
            self._homes_data[home_id] = home or {}
        return self._homes_data[home_id]

    # -- public API -----------------------------------------------------------

    async def get_home_status(self, home_id: str) -> list[ZoneStatus]:
        """Live setpoint, mode and temperature of every room in the home."""
        names = {
            str(room.get("id")): room.get("name") or ""
            for room in (await self._home(home_id)).get("rooms") or []
        }
        data = await self._post("homestatus", {"home_id": home_id})
        rooms = ((data.get("body") or {}).get("home") or {}).get("rooms") or []
        zones = [
            ZoneStatus(
                zone_id=str(room["id"]),
                name=names.get(str(room["id"]), ""),
                setpoint=room.get("therm_setpoint_temperature"),
                mode=room.get("therm_setpoint_mode"),
                temperature=room.get("therm_measured_temperature"),
            )
            for room in rooms
            if room.get("id") is not None
        ]
        logger.debug("Thermostat home %s: %d room(s)", home_id, len(zones))
        return zones

    async def set_zone_setpoint(
        self,
        home_id: str,
        zone_id: str,
        mode: ZoneMode,
        *,
        temp: float | None = None,
        endtime: datetime | None = None,
    ) -> bool:
        """Write a room setpoint; returns ``False`` when the command is rejected."""
        payload: dict[str, Any] = {"home_id": home_id, "room_id": zone_id, "mode": str(mode)}
        if temp is not None:
            payload["temp"] = float(temp)
        if endtime is not None:
            payload["endtime"] = int(endtime.timestamp())

        logger.info("Setting room %s to %s%s", zone_id, mode, f" {temp:.1f}" if temp else "")
        try:
            data = await self._post("setroomthermpoint", payload)
        except ThermostatRejectedError:
            return False
        return data.get("status") == "ok"

    async def get_active_timetable(self, home_id: str) -> ThermostatSchedule | None:
        """Timetable of the selected schedule, or ``None`` when there is none."""
        schedules = (await self._home(home_id)).get("schedules") or []
        selected = next((s for s in schedules if s.get("selected")), None)
        if selected is None:
            return None
        return ThermostatSchedule(
            timetable=[TimetableEntry.model_validate(e) for e in selected.get("timetable") or []],
            zones=[
                ThermostatScheduleZone(id=z["id"], name=z.get("name"), temp=z.get("temp"))
                for z in selected.get("zones") or []
                if "id" in z
            ],
        )


__all__ = [
    "ThermostatAuthenticationError",
    "ThermostatClient",
    "ThermostatClientError",
    "ThermostatConnectionError",
    "ThermostatRejectedError",
    "ThermostatServiceError",
]
