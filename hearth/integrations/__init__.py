"""Hearth integration clients."""

from .stove_client import StoveClient, StoveClientError, StoveConnectionError, StoveServiceError
from .thermostat_client import (
    ThermostatClient,
    ThermostatClientError,
    ThermostatConnectionError,
    ThermostatServiceError,
)

__all__ = [
    "StoveClient",
    "StoveClientError",
    "StoveConnectionError",
    "StoveServiceError",
    "ThermostatClient",
    "ThermostatClientError",
    "ThermostatConnectionError",
    "ThermostatServiceError",
]
