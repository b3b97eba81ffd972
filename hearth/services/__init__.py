"""Hearth application services."""

from .event_log import CoordinationEventLog
from .notification_service import NotificationService
from .state_store import InMemoryStateStore, SQLStateStore, StateStore

__all__ = [
    "CoordinationEventLog",
    "InMemoryStateStore",
    "NotificationService",
    "SQLStateStore",
    "StateStore",
]
