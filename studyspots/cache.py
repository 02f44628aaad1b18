"""Keyed TTL cache over a pluggable key-value store (SQLite or in-memory)."""
from __future__ import annotations

import json
import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class StorageFullError(RuntimeError):
    pass


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = max_entries
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if (
            self.max_entries is not None
            and key not in self._items
            and len(self._items) >= self.max_entries
        ):
            raise StorageFullError(f"Store quota of {self.max_entries} entries reached")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __len__(self) -> int:
        return len(self._items)


class SqliteKeyValueStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._configure_conn()
        self._init_db()

    def _configure_conn(self) -> None:
        cur = self.conn.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.fetchone()
        except sqlite3.DatabaseError:
            pass
        try:
            cur.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.DatabaseError:
            pass

    def _init_db(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_cache (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def get_item(self, key: str) -> Optional[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT value_json FROM kv_cache WHERE key = ?", (key,))
        row = cur.fetchone()
        if not row:
            return None
        return row["value_json"]

    def set_item(self, key: str, value: str) -> None:
        cur = self.conn.cursor()
        cur.execute(
            "INSERT OR REPLACE INTO kv_cache (key, value_json) VALUES (?, ?)",
            (key, value),
        )
        self.conn.commit()

    def remove_item(self, key: str) -> None:
        self.conn.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    fetched_at: float


class TtlCache:
    """Stores JSON payloads with a fetch timestamp and treats old ones as absent.

    Persisted values have the shape ``{"data": ..., "timestamp": <ms>}``.
    Storage errors never escape: a failed read is a miss and a failed write
    only loses persistence.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def is_expired(self, entry: CacheEntry) -> bool:
        return (self.clock() - entry.fetched_at) > self.ttl_seconds

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = self.store.get_item(key)
        except (sqlite3.Error, OSError) as exc:
            logger.debug("Cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            logger.debug("Cache miss for key: %s", key)
            return None
        try:
            record = json.loads(raw)
            entry = CacheEntry(
                key=key,
                payload=record["data"],
                fetched_at=float(record["timestamp"]) / 1000.0,
            )
        except (ValueError, KeyError, TypeError):
            logger.debug("Discarding unreadable cache record for %s", key)
            self._remove_quietly(key)
            return None
        if self.is_expired(entry):
            logger.debug("Cache entry expired for key: %s", key)
            self._remove_quietly(key)
            return None
        logger.debug("Cache hit for key: %s", key)
        return entry

    def put(self, key: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(key=key, payload=payload, fetched_at=self.clock())
        record = json.dumps({"data": payload, "timestamp": int(entry.fetched_at * 1000)})
        try:
            self.store.set_item(key, record)
        except (StorageFullError, sqlite3.Error, OSError) as exc:
            logger.debug("Cache write skipped for %s: %s", key, exc)
        return entry

    def _remove_quietly(self, key: str) -> None:
        try:
            self.store.remove_item(key)
        except (sqlite3.Error, OSError):
            pass
