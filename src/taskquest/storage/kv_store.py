# src/taskquest/storage/kv_store.py

from __future__ import annotations

import contextlib
import copy
import json
import logging
import sqlite3
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore:
    """
    SQLite-backed key-value store (the local counterpart of browser localStorage).

    Values are stored as JSON text in a single table:
    - create table if missing on open()
    - set_many() writes every key inside one transaction

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskquest.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._opened = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    def open(self) -> None:
        if self._opened:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create key-value store directory for db=%s: %s", self._db_path, exc)
            raise StoreUnavailable(str(exc)) from exc
        self._ensure_schema()
        self._opened = True
        logger.info("KeyValueStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Lifecycle hook (no persistent connections are kept)."""
        self._opened = False

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        if not self._opened:
            raise StoreUnavailable(f"key-value store {self._db_path} is not open")
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        except sqlite3.Error as exc:
            logger.error("Cannot open key-value store db=%s: %s", self._db_path, exc)
            raise StoreUnavailable(str(exc)) from exc
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        except sqlite3.Error as exc:
            raise StoreUnavailable(str(exc)) from exc
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        except sqlite3.Error as exc:
            logger.error("KeyValueStore schema setup failed db=%s: %s", self._db_path, exc)
            raise StoreUnavailable(str(exc)) from exc
        finally:
            conn.close()

    # ---- public API ----

    def get(self, key: str) -> Any | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.error("KeyValueStore read failed key=%s: %s", key, exc)
            raise StoreUnavailable(str(exc)) from exc
        finally:
            conn.close()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except ValueError:
            logger.warning("KeyValueStore: corrupt JSON under key=%s, ignoring.", key)
            return None

    def set_many(self, items: Mapping[str, Any]) -> None:
        if not items:
            return
        now = time.time()
        rows = [(k, json.dumps(v, ensure_ascii=False), now) for k, v in items.items()]

        conn = self._get_conn()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO kv(key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    rows,
                )
        except sqlite3.Error as exc:
            logger.error("KeyValueStore write failed keys=%s: %s", list(items), exc)
            raise StoreUnavailable(str(exc)) from exc
        finally:
            conn.close()
        logger.debug("KeyValueStore wrote keys=%s", list(items))

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            with conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            logger.error("KeyValueStore delete failed key=%s: %s", key, exc)
            raise StoreUnavailable(str(exc)) from exc
        finally:
            conn.close()


class MemoryKeyValueStore:
    """In-process key-value store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._opened = False

    def open(self) -> None:
        self._opened = True

    def close(self) -> None:
        self._opened = False

    def _check_open(self) -> None:
        if not self._opened:
            raise StoreUnavailable("in-memory key-value store is not open")

    def get(self, key: str) -> Any | None:
        self._check_open()
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set_many(self, items: Mapping[str, Any]) -> None:
        self._check_open()
        # Serialize everything first so a bad value leaves the store untouched.
        encoded = {k: json.dumps(copy.deepcopy(v), ensure_ascii=False) for k, v in items.items()}
        self._data.update(encoded)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def delete(self, key: str) -> None:
        self._check_open()
        self._data.pop(key, None)
