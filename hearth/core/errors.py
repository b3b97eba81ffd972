"""Exception taxonomy for the heating automation engine."""

from __future__ import annotations

from hearth.models.enums import ErrorSource


class HearthError(Exception):
    """Base exception for all engine errors."""


class ConfigurationMissingError(HearthError):
    """Raised when a cycle cannot run because required configuration is absent."""


class UpstreamUnavailableError(HearthError):
    """Raised when the stove, thermostat or state store cannot serve a request."""

    def __init__(self, message: str, *, source: ErrorSource) -> None:
        super().__init__(message)
        self.source = source


class StateStoreError(UpstreamUnavailableError):
    """Raised by state store backends on read/write failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message, source=ErrorSource.state_store)


class ScheduleValidationError(HearthError):
    """Raised when user-facing schedule input is malformed."""


class NotFoundError(HearthError):
    """Raised when a referenced schedule does not exist."""


__all__ = [
    "ConfigurationMissingError",
    "HearthError",
    "NotFoundError",
    "ScheduleValidationError",
    "StateStoreError",
    "UpstreamUnavailableError",
]
