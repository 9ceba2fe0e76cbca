"""Key-value store contract for credential records.

The proxy only ever uses four operations on persisted state: get, set,
list-by-prefix and delete. Listing order is unspecified.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Optional

from sqlalchemy import select

from ..database.base import DatabaseBase
from ..database.models import KVEntry

logger = logging.getLogger("onemin-proxy")


class KeyValueStore(ABC):
    """Async key-value store holding JSON-serialisable values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        """Return the value stored under ``key`` or None."""

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def list(self, prefix: str) -> list[dict[str, Any]]:
        """Return every value whose key starts with ``prefix``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; deleting a missing key is not an error."""

    def close(self) -> None:
        """Release resources held by the store."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store used by tests and the ``memory`` backend."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    async def list(self, prefix: str) -> list[dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(value)
                for key, value in self._data.items()
                if key.startswith(prefix)
            ]

    async def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class DatabaseKeyValueStore(KeyValueStore):
    """SQLAlchemy-backed store; blocking calls run in a worker thread."""

    def __init__(self, database: DatabaseBase) -> None:
        self._db = database
        self._db.initialize()

    def _get(self, key: str) -> Optional[dict[str, Any]]:
        with self._db.session() as sess:
            entry = sess.get(KVEntry, key)
            return copy.deepcopy(entry.value) if entry is not None else None

    def _set(self, key: str, value: dict[str, Any]) -> None:
        with self._db.session() as sess:
            entry = sess.get(KVEntry, key)
            if entry is None:
                sess.add(KVEntry(key=key, value=copy.deepcopy(value)))
            else:
                # Reassign so the JSON column is flagged dirty
                entry.value = copy.deepcopy(value)

    def _list(self, prefix: str) -> list[dict[str, Any]]:
        with self._db.session() as sess:
            stmt = select(KVEntry).where(KVEntry.key.startswith(prefix, autoescape=True))
            return [copy.deepcopy(entry.value) for entry in sess.scalars(stmt)]

    def _delete(self, key: str) -> None:
        with self._db.session() as sess:
            entry = sess.get(KVEntry, key)
            if entry is not None:
                sess.delete(entry)

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def list(self, prefix: str) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._list, prefix)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    def close(self) -> None:
        self._db.close()


def create_store(db_config: Optional[dict[str, Any]]) -> KeyValueStore:
    """Build the store named by the ``database`` config section."""
    backend = str((db_config or {}).get("backend", "sqlite")).lower()
    if backend == "memory":
        logger.warning("Using in-memory credential store; credentials are lost on restart")
        return InMemoryKeyValueStore()

    from ..database.factory import create_database

    return DatabaseKeyValueStore(create_database(db_config))
