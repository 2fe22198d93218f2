"""Key-value blob store — SQLite-backed persistence for registry + settings.

Values are opaque text (JSON by convention). Callers own the encoding.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from ..config import settings
from ..monitor.models import (
    DEFAULT_INTERVAL_MINUTES,
    MAX_INTERVAL_MINUTES,
    MIN_INTERVAL_MINUTES,
    AutoCheckConfig,
)

logger = logging.getLogger(__name__)

SERVERS_KEY = "savedServers"
AUTO_CHECK_INTERVAL_KEY = "autoCheckInterval"
AUTO_CHECK_ENABLED_KEY = "autoCheckEnabled"


class BlobStore:
    """SQLite key-value table: load/save text blobs by key."""

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = Path(db_path or settings.db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key        TEXT PRIMARY KEY,
                value      TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.commit()

    def load(self, key: str) -> str | None:
        row = self._get_conn().execute(
            "SELECT value FROM kv WHERE key = ?", (key,),
        ).fetchone()
        return row[0] if row else None

    def save(self, key: str, value: str) -> None:
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
            (key, value, datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        conn.commit()

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


# ── Auto-check settings ──────────────────────────────────────────────────────


def load_auto_check(store: BlobStore) -> AutoCheckConfig:
    """Read the persisted auto-check config; anything missing or bad → defaults."""
    config = AutoCheckConfig()
    try:
        raw_interval = store.load(AUTO_CHECK_INTERVAL_KEY)
        raw_enabled = store.load(AUTO_CHECK_ENABLED_KEY)
    except sqlite3.Error:
        logger.exception("Failed to read auto-check settings, using defaults")
        return config

    if raw_interval is not None:
        try:
            interval = int(json.loads(raw_interval))
        except (ValueError, TypeError, OverflowError):
            interval = DEFAULT_INTERVAL_MINUTES
        # 0 means "never set"
        if MIN_INTERVAL_MINUTES <= interval <= MAX_INTERVAL_MINUTES:
            config.interval_minutes = interval

    if raw_enabled is not None:
        try:
            config.enabled = json.loads(raw_enabled) is True
        except ValueError:
            config.enabled = False

    return config


def save_auto_check(store: BlobStore, config: AutoCheckConfig) -> bool:
    try:
        store.save(AUTO_CHECK_INTERVAL_KEY, json.dumps(config.interval_minutes))
        store.save(AUTO_CHECK_ENABLED_KEY, json.dumps(config.enabled))
    except sqlite3.Error:
        logger.exception("Failed to save auto-check settings")
        return False
    return True
