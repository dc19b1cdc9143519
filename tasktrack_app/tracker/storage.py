"""SQLite-backed key/value persistence."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, List, Optional

LOGGER = logging.getLogger(__name__)

STORAGE_PREFIX = "time-tracker-pomodoro-v1"
TIMER_STATE_KEY = f"{STORAGE_PREFIX}-timer-state"
TIMER_SETTINGS_KEY = f"{STORAGE_PREFIX}-timerSettings"
ROUNDS_KEY = f"{STORAGE_PREFIX}-roundByDate"
ALARM_SOUND_KEY = f"{STORAGE_PREFIX}-alarmSound"
CUSTOM_ALARM_KEY = f"{STORAGE_PREFIX}-customAlarm"


def day_key(date_key: str) -> str:
    return f"{STORAGE_PREFIX}-day-{date_key}"


class Storage:
    """Durable string-to-string mapping.

    Reads return ``None`` when a key is missing or the database cannot be read;
    writes are best effort and only log on failure so the timer keeps running.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_conn(self) -> Iterable[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            LOGGER.exception("Database operation failed")
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        try:
            with self._get_conn() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error:
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, value),
                )
        except sqlite3.Error:
            LOGGER.warning("Could not persist %s", key)

    def remove(self, key: str) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error:
            LOGGER.warning("Could not remove %s", key)

    def keys(self, prefix: str = STORAGE_PREFIX) -> List[str]:
        try:
            with self._get_conn() as conn:
                rows = conn.execute(
                    "SELECT key FROM kv_store WHERE key = ? OR key LIKE ? ESCAPE '\\' ORDER BY key",
                    (prefix, _like_prefix(prefix)),
                ).fetchall()
        except sqlite3.Error:
            return []
        return [row[0] for row in rows]

    def clear_all(self, prefix: str = STORAGE_PREFIX) -> int:
        """Remove every key in the application namespace."""
        keys = self.keys(prefix)
        for key in keys:
            self.remove(key)
        LOGGER.info("Cleared %d stored keys", len(keys))
        return len(keys)


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}-%"
