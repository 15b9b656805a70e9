"""Key/value persistence for dashboard state (baselines, windows, theme)."""
from __future__ import annotations

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Protocol

START_PRICES_KEY = 'startPrices'
CURRENT_WINDOWS_KEY = 'currentWindows'
DARK_MODE_KEY = 'darkMode'


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """In-process store; values are JSON round-tripped like the sqlite store."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            raw = self._data.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._data[key] = encoded


class SqliteStore:
    def __init__(self, path):
        self.path = Path(path)
        self.ensure_db()

    def _get_conn(self):
        # Ensure parent dir exists before connecting
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, timeout=5, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def ensure_db(self):
        conn = self._get_conn()
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_state (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str, default: Any = None) -> Any:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM kv_state WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return default
        return json.loads(row['value'])

    def set(self, key: str, value: Any) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO kv_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                (key, json.dumps(value)),
            )
            conn.commit()
        finally:
            conn.close()


def load_dark_mode(store: KeyValueStore) -> bool:
    return bool(store.get(DARK_MODE_KEY, True))


def save_dark_mode(store: KeyValueStore, enabled: bool) -> None:
    store.set(DARK_MODE_KEY, bool(enabled))
