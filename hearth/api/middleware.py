"""HTTP middleware for Hearth."""

from __future__ import annotations

import logging

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


class APIKeyMiddleware:
    """Optional API key authentication.

    When ``HEARTH_API_KEY`` is set, all non-health endpoints require an
    ``Authorization: Bearer <key>`` header. When a cron secret is configured
    too, the cycle triggers are checked against that secret instead, so an
    external scheduler needs only one credential. If the key is empty, all
    requests are allowed through.
    """

    _PUBLIC_PATHS = frozenset({"/health", "/"})
    _TRIGGER_PATHS = frozenset(
        {"/api/v1/automation/check", "/api/v1/automation/coordinate"}
    )

    def __init__(self, app: ASGIApp, *, api_key: str, cron_secret: str = "") -> None:
        self.app = app
        self._api_key = api_key
        self._cron_secret = cron_secret

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self._api_key or scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "/")
        if path in self._PUBLIC_PATHS or (self._cron_secret and path in self._TRIGGER_PATHS):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        auth_header = headers.get(b"authorization", b"").decode("utf-8")
        if auth_header == f"Bearer {self._api_key}":
            await self.app(scope, receive, send)
            return

        logger.warning("Rejected unauthenticated request to %s", path)
        response = JSONResponse(
            status_code=401,
            content={"detail": "Invalid or missing API key"},
        )
        await response(scope, receive, send)


__all__ = ["APIKeyMiddleware"]
