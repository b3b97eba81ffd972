"""Async client for the pellet stove cloud API.

The stove service exposes one GET endpoint per command, authenticated by an
API key embedded in the path (``/GetStatus/{key}``, ``/SetPower/{key};3``).
Every failure surfaces as a :class:`StoveClientError`, which the engine
treats as a transient upstream outage tagged ``stove_api``.
"""

from __future__ import annotations

import logging
from contextlib import suppress
from typing import Any

import httpx

from hearth.core.errors import UpstreamUnavailableError
from hearth.models.enums import ErrorSource
from hearth.models.schemas import ApplianceStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class StoveClientError(UpstreamUnavailableError):
    """Base exception for all stove client errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message, source=ErrorSource.stove_api)


class StoveConnectionError(StoveClientError):
    """Raised when the stove service cannot be reached or times out."""


class StoveServiceError(StoveClientError):
    """Raised on HTTP error responses or unusable payloads."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class StoveClient:
    """Async wrapper around the stove command endpoints.

    Usage::

        async with StoveClient(url, api_key=key) as stove:
            status = await stove.get_status()
            if not status.is_heating:
                await stove.ignite(power=3)
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> StoveClient:
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
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            )
        return self._client

    # -- internal request helper ----------------------------------------------

    def _raise_for_status(self, response: httpx.Response, *, context: str) -> None:
        if response.is_success:
            return
        msg = f"[{context}] Stove API error {response.status_code}: {response.text[:300]}"
        logger.error(msg)
        raise StoveServiceError(msg)

    async def _call(self, command: str, argument: int | None = None) -> dict[str, Any]:
        path = f"/{command}/{self._api_key}"
        if argument is not None:
            path = f"{path};{argument}"

        logger.debug("Stove command %s(%s)", command, argument)
        try:
            response = await self._get_client().get(path)
        except httpx.TimeoutException as exc:
            msg = f"Stove command {command} timed out ({self._timeout}s)"
            logger.error(msg)
            raise StoveConnectionError(msg) from exc
        except httpx.TransportError as exc:
            msg = f"Cannot reach stove API at {self._base_url}: {exc}"
            logger.error(msg)
            raise StoveConnectionError(msg) from exc

        self._raise_for_status(response, context=command)
        try:
            data = response.json()
        except ValueError as exc:
            raise StoveServiceError(f"[{command}] Invalid JSON payload") from exc
        if not isinstance(data, dict):
            raise StoveServiceError(f"[{command}] Unexpected payload type {type(data).__name__}")
        return data

    async def _numeric(self, command: str) -> int:
        data = await self._call(command)
        value = data.get("Result")
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise StoveServiceError(f"[{command}] Missing numeric result")
        return int(value)

    async def _command(self, command: str, argument: int | None = None) -> bool:
        data = await self._call(command, argument)
        return bool(data.get("Success", True))

    # -- reads ----------------------------------------------------------------

    async def get_status(self) -> ApplianceStatus:
        data = await self._call("GetStatus")
        description = data.get("StatusDescription")
        if not isinstance(description, str):
            raise StoveServiceError("[GetStatus] Missing status description")
        status = ApplianceStatus(status_code=data.get("Status"), description=description)
        logger.debug("Stove status: %s (%s)", status.description, status.status_code)
        return status

    async def get_power_level(self) -> int:
        return await self._numeric("GetPower")

    async def get_fan_level(self) -> int:
        return await self._numeric("GetFanLevel")

    # -- commands -------------------------------------------------------------

    async def ignite(self, *, power: int | None = None) -> bool:
        logger.info("Igniting stove%s", f" at power {power}" if power else "")
        ok = await self._command("Ignit")
        if ok and power:
            await self.set_power_level(power)
        return ok

    async def shutdown(self) -> bool:
        logger.info("Shutting down stove")
        return await self._command("Shutdown")

    async def set_power_level(self, level: int) -> bool:
        if not 1 <= level <= 5:
            raise ValueError(f"Power level must be between 1 and 5, got {level}")
        logger.info("Setting stove power level to %d", level)
        return await self._command("SetPower", level)

    async def set_fan_level(self, level: int) -> bool:
        if not 1 <= level <= 6:
            raise ValueError(f"Fan level must be between 1 and 6, got {level}")
        logger.info("Setting stove fan level to %d", level)
        return await self._command("SetFanLevel", level)


__all__ = ["StoveClient", "StoveClientError", "StoveConnectionError", "StoveServiceError"]
