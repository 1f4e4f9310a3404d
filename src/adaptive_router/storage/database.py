"""SQLite database with WAL mode for profiles, decisions and suggestions."""

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

DEFAULT_DATA_DIR = Path.home() / ".adaptive-router"


class Database:
    """SQLite storage layer with WAL mode."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir or DEFAULT_DATA_DIR
        self.db_path = self.data_dir / "data" / "router.db"

    def _ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        (self.data_dir / "data").mkdir(exist_ok=True)

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with WAL mode."""
        self._ensure_dirs()
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_tables(self) -> None:
        """Create all tables if they don't exist."""
        with self.connect() as conn:
            conn.executescript(_SCHEMA)

    def execute(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        """Execute a query and return results."""
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchall()

    def execute_insert(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Execute an insert and return lastrowid."""
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.lastrowid or 0

    def execute_update(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Execute an update and return the number of affected rows."""
        with self.connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount


_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    version INTEGER NOT NULL DEFAULT 1,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS profile_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    version INTEGER NOT NULL,
    setting_path TEXT,
    data TEXT NOT NULL,
    changed_at TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (user_id, version)
);

CREATE TABLE IF NOT EXISTS routing_decisions (
    decision_id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    category TEXT NOT NULL,
    worker_id TEXT NOT NULL,
    confidence REAL NOT NULL,
    privacy_enforced INTEGER NOT NULL DEFAULT 0,
    task_excerpt TEXT NOT NULL DEFAULT '',
    payload TEXT NOT NULL,
    outcome_success INTEGER,
    outcome_latency_ms REAL,
    outcome_rating INTEGER,
    outcome_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_decisions_user_time
ON routing_decisions(user_id, created_at);

CREATE INDEX IF NOT EXISTS idx_decisions_category
ON routing_decisions(category, created_at);

CREATE TABLE IF NOT EXISTS drift_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    category TEXT NOT NULL,
    payload TEXT NOT NULL,
    superseded INTEGER NOT NULL DEFAULT 0,
    detected_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS suggestions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    setting_path TEXT NOT NULL,
    current_value TEXT,
    suggested_value TEXT NOT NULL,
    reasoning TEXT NOT NULL,
    confidence REAL NOT NULL,
    priority REAL NOT NULL DEFAULT 0.0,
    risk_level TEXT NOT NULL DEFAULT 'medium',
    urgency TEXT NOT NULL DEFAULT 'low',
    estimated_improvement TEXT NOT NULL DEFAULT '',
    evidence TEXT NOT NULL DEFAULT '{}',
    status TEXT NOT NULL DEFAULT 'pending',
    rejection_reason TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    decided_at TEXT,
    applied_at TEXT,
    CHECK (status IN ('pending', 'accepted', 'rejected')),
    CHECK (confidence BETWEEN 0.0 AND 1.0)
);

CREATE INDEX IF NOT EXISTS idx_suggestions_user_status
ON suggestions(user_id, status);

INSERT OR IGNORE INTO schema_version (version) VALUES (1);
"""
