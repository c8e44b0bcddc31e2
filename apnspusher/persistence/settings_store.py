from __future__ import annotations

import json
from pathlib import Path
import sqlite3
from threading import Lock
from typing import Any, Protocol


class SettingsStore(Protocol):
    # Key/value persistence for session fields; values must be JSON-serializable.
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class InMemorySettingsStore:
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, str] = {}
        self._lock = Lock()
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            raw = self._values.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = json.dumps(value)


class SQLiteSettingsStore:
    """Persist session fields in a single sqlite key/value table."""

    def __init__(self, db_path: str, table_name: str = "pusher_settings") -> None:
        self._db_path = str(Path(db_path).expanduser())
        self._table_name = table_name
        self._lock = Lock()
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self._table_name} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                f"SELECT value FROM {self._table_name} WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError:
            return default

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock, self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {self._table_name}(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, encoded),
            )
            conn.commit()
