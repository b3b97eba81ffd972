"""Path-addressed state store.

Every piece of mutable engine state lives in an external store addressed by
opaque string paths. Two operations write a document: ``set`` overwrites it,
``update`` merges fields into it. A field name containing ``/`` addresses a
key nested inside the document, and ``None`` at such a key removes it, so
several callers can add or drop entries of one map without overwriting each
other. There are no transactions across unrelated paths; callers keep each
record on its own path and rely on idempotent field updates instead of locks.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hearth.core.errors import StateStoreError
from hearth.models.database import StateEntry

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    cleaned = "/".join(part for part in path.strip().split("/") if part)
    if not cleaned:
        raise ValueError("State store path must not be empty")
    return cleaned


def merge_fields(document: Any, fields: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *document* with *fields* merged in."""
    merged = copy.deepcopy(document) if isinstance(document, dict) else {}
    for name, value in fields.items():
        *parents, leaf = normalize_path(name).split("/")
        if not parents:
            merged[leaf] = copy.deepcopy(value)
            continue
        target = merged
        for part in parents:
            child = target.get(part)
            if not isinstance(child, dict):
                child = target[part] = {}
            target = child
        if value is None:
            target.pop(leaf, None)
        else:
            target[leaf] = copy.deepcopy(value)
    return merged


_PUSH_SEQUENCE = itertools.count()


def _push_key() -> str:
    # Millisecond prefix plus a process-wide counter keeps children in
    # insertion order when sorted.
    sequence = next(_PUSH_SEQUENCE) % 1_000_000
    return f"{int(time.time() * 1000):013d}-{sequence:06d}-{uuid.uuid4().hex[:6]}"


class StateStore(ABC):
    """Contract shared by all store backends."""

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Return the document at *path* or ``None``."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Overwrite the document at *path*."""

    @abstractmethod
    async def update(self, path: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Merge *fields* into the document at *path* and return the result.

        ``"rooms/1": None`` removes key ``1`` from the nested ``rooms`` map
        while a top-level ``None`` is stored as a value.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the document at *path* (no-op when absent)."""

    @abstractmethod
    async def children(self, prefix: str) -> dict[str, Any]:
        """Return direct child documents of *prefix* keyed by their last segment."""

    async def push(self, path: str, value: Any) -> str:
        """Append *value* under *path* with a generated, time-ordered key."""
        key = _push_key()
        await self.set(f"{normalize_path(path)}/{key}", value)
        return key


class InMemoryStateStore(StateStore):
    """Process-local backend used in tests and single-process deployments."""

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()
        for path, value in (initial or {}).items():
            self._data[normalize_path(path)] = copy.deepcopy(value)

    @property
    def data(self) -> dict[str, Any]:
        """Raw snapshot of every stored document."""
        return copy.deepcopy(self._data)

    async def get(self, path: str) -> Any:
        return copy.deepcopy(self._data.get(normalize_path(path)))

    async def set(self, path: str, value: Any) -> None:
        key = normalize_path(path)
        if value is None:
            self._data.pop(key, None)
            return
        self._data[key] = copy.deepcopy(value)

    async def update(self, path: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        key = normalize_path(path)
        async with self._lock:
            merged = merge_fields(self._data.get(key), fields)
            self._data[key] = merged
            return copy.deepcopy(merged)

    async def delete(self, path: str) -> None:
        self._data.pop(normalize_path(path), None)

    async def children(self, prefix: str) -> dict[str, Any]:
        base = normalize_path(prefix) + "/"
        return {
            key[len(base) :]: copy.deepcopy(value)
            for key, value in sorted(self._data.items())
            if key.startswith(base) and "/" not in key[len(base) :]
        }


class SQLStateStore(StateStore):
    """SQLAlchemy backend storing one row per path with a JSON value."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def get(self, path: str) -> Any:
        key = normalize_path(path)
        try:
            async with self._session_maker() as session:
                entry = await session.get(StateEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as exc:
            logger.error("State store read failed for %s: %s", key, exc)
            raise StateStoreError(f"Failed to read {key}: {exc}") from exc

    async def set(self, path: str, value: Any) -> None:
        key = normalize_path(path)
        try:
            async with self._session_maker() as session, session.begin():
                if value is None:
                    await session.execute(delete(StateEntry).where(StateEntry.path == key))
                    return
                await session.merge(StateEntry(path=key, value=value))
        except SQLAlchemyError as exc:
            logger.error("State store write failed for %s: %s", key, exc)
            raise StateStoreError(f"Failed to write {key}: {exc}") from exc

    async def update(self, path: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        key = normalize_path(path)
        try:
            async with self._session_maker() as session, session.begin():
                stmt = select(StateEntry).where(StateEntry.path == key).with_for_update()
                entry = (await session.execute(stmt)).scalar_one_or_none()
                merged = merge_fields(entry.value if entry is not None else None, fields)
                if entry is None:
                    session.add(StateEntry(path=key, value=merged))
                else:
                    entry.value = merged
                return dict(merged)
        except SQLAlchemyError as exc:
            logger.error("State store update failed for %s: %s", key, exc)
            raise StateStoreError(f"Failed to update {key}: {exc}") from exc

    async def delete(self, path: str) -> None:
        await self.set(path, None)

    async def children(self, prefix: str) -> dict[str, Any]:
        base = normalize_path(prefix) + "/"
        try:
            async with self._session_maker() as session:
                stmt = (
                    select(StateEntry)
                    .where(StateEntry.path.startswith(base, autoescape=True))
                    .order_by(StateEntry.path)
                )
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("State store listing failed for %s: %s", base, exc)
            raise StateStoreError(f"Failed to list {base}: {exc}") from exc
        return {
            row.path[len(base) :]: row.value
            for row in rows
            if "/" not in row.path[len(base) :]
        }


__all__ = [
    "InMemoryStateStore",
    "SQLStateStore",
    "StateStore",
    "merge_fields",
    "normalize_path",
]
