"""
Shared key-value stores with change notification.

Every ``set`` is one write: all of its keys become visible together and
subscribers receive one list of ``StoreChange`` objects for it. Notifications
are scheduled on the running event loop with ``call_soon``, so they are
delivered in write order and never re-enter the writer.
"""

from __future__ import annotations

import asyncio
import copy
import json
import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import aiosqlite
import structlog

from cogload.config.config import StoreConfig
from cogload.errors import StoreError
from cogload.protocols import ChangeListener, StoreChange

logger = structlog.get_logger(__name__)


class BaseStore:
    """Listener bookkeeping and ordered dispatch shared by all stores."""

    def __init__(self) -> None:
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self, changes: List[StoreChange]) -> None:
        if not changes:
            return
        loop = asyncio.get_running_loop()
        for listener in list(self._listeners):
            loop.call_soon(self._dispatch, listener, changes)

    def _dispatch(self, listener: ChangeListener, changes: List[StoreChange]) -> None:
        # A listener removed after the write was queued is skipped
        if listener not in self._listeners:
            return
        try:
            listener(changes)
        except Exception:
            logger.exception("Store change listener failed", keys=[c.key for c in changes])


class MemoryStore(BaseStore):
    """In-process store; values are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__()
        self._data: Dict[str, Any] = copy.deepcopy(dict(initial or {}))

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {key: copy.deepcopy(self._data[key]) for key in keys if key in self._data}

    async def set(self, items: Mapping[str, Any]) -> None:
        changes = [StoreChange(key, self._data.get(key), copy.deepcopy(value)) for key, value in items.items()]
        for change in changes:
            self._data[change.key] = change.new_value
        self._notify(changes)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the full contents, for inspection."""
        return copy.deepcopy(self._data)


class SQLiteStore(BaseStore):
    """
    Persistent store backed by a single SQLite table of JSON values.

    Change notifications reach subscribers of this store object; contexts that
    should observe each other's writes share one instance.
    """

    def __init__(self, db_path: Path) -> None:
        super().__init__()
        self.db_path = Path(db_path)
        self._db: Optional[aiosqlite.Connection] = None
        # Held across read-old, write and commit
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the database and create the key-value table."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self.db_path)
            await self._db.execute("PRAGMA journal_mode=WAL;")
            await self._db.execute("PRAGMA busy_timeout = 5000;")
            await self._db.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            await self._db.commit()
        except (OSError, sqlite3.Error) as e:
            raise StoreError("initialize", str(e)) from e
        logger.info("SQLite store initialized", path=str(self.db_path))

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SQLiteStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _connection(self, operation: str) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError(operation, "store is not initialized")
        return self._db

    async def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        db = self._connection("read")
        keys = list(keys)
        if not keys:
            return {}
        placeholders = ",".join("?" for _ in keys)
        try:
            cursor = await db.execute(f"SELECT key, value FROM kv WHERE key IN ({placeholders})", keys)
            rows = await cursor.fetchall()
            return {key: json.loads(value) for key, value in rows}
        except (sqlite3.Error, ValueError) as e:
            raise StoreError("read", str(e)) from e

    async def set(self, items: Mapping[str, Any]) -> None:
        db = self._connection("write")
        try:
            encoded = [(key, json.dumps(value)) for key, value in items.items()]
        except (TypeError, ValueError) as e:
            raise StoreError("write", f"value is not JSON serializable: {e}") from e

        async with self._write_lock:
            old = await self.get(items.keys())
            try:
                await db.executemany("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", encoded)
                await db.commit()
            except sqlite3.Error as e:
                await db.rollback()
                raise StoreError("write", str(e)) from e

            self._notify([StoreChange(key, old.get(key), json.loads(raw)) for key, raw in encoded])


async def create_store(config: StoreConfig) -> MemoryStore | SQLiteStore:
    """Build and initialize the configured store backend."""
    if config.backend == "sqlite":
        store = SQLiteStore(config.db_path)
        await store.initialize()
        return store
    return MemoryStore()
