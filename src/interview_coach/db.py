"""SQLite storage: connection lifecycle, schema, row helpers."""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from interview_coach.errors import TransientStorageError

SCHEMA = """
CREATE TABLE IF NOT EXISTS coaching_sessions (
    id TEXT PRIMARY KEY,
    owner_email TEXT NOT NULL,
    session_kind TEXT NOT NULL CHECK(session_kind IN
        ('quick_prep','full_mock','premium_audio','pro')),
    status TEXT NOT NULL CHECK(status IN
        ('pending','active','paused','completed','abandoned','expired')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    paused_at TEXT,
    completed_at TEXT,
    current_question_number INTEGER NOT NULL DEFAULT 0,
    payment_reference TEXT,
    first_name TEXT,
    resume_text TEXT,
    job_description TEXT,
    company_url TEXT
);
CREATE INDEX IF NOT EXISTS idx_sessions_owner
    ON coaching_sessions(owner_email, status, created_at);
CREATE UNIQUE INDEX IF NOT EXISTS idx_one_active_session
    ON coaching_sessions(owner_email) WHERE status = 'active';

CREATE TABLE IF NOT EXISTS turns (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES coaching_sessions(id) ON DELETE RESTRICT,
    position INTEGER NOT NULL,
    role TEXT NOT NULL CHECK(role IN ('user','assistant')),
    content TEXT NOT NULL,
    question_number INTEGER,
    created_at TEXT NOT NULL,
    UNIQUE(session_id, position)
);

CREATE TABLE IF NOT EXISTS discount_codes (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE COLLATE NOCASE,
    discount_percent INTEGER NOT NULL CHECK(discount_percent BETWEEN 1 AND 100),
    description TEXT,
    is_active INTEGER NOT NULL DEFAULT 1 CHECK(is_active IN (0,1)),
    valid_from TEXT,
    valid_until TEXT,
    applicable_products TEXT,
    max_uses INTEGER CHECK(max_uses IS NULL OR max_uses > 0),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS discount_redemptions (
    id TEXT PRIMARY KEY,
    code_id TEXT NOT NULL REFERENCES discount_codes(id) ON DELETE RESTRICT,
    email TEXT NOT NULL,
    product_kind TEXT NOT NULL,
    redeemed_at TEXT NOT NULL,
    session_id TEXT,
    UNIQUE(code_id, email)
);

CREATE TABLE IF NOT EXISTS session_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT,
    owner_email TEXT NOT NULL,
    event_type TEXT NOT NULL,
    message TEXT NOT NULL,
    code TEXT,
    context_json TEXT,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_session ON session_events(session_id, created_at);
"""


class Database:
    """Owns the shared aiosqlite connection.

    The connection runs in autocommit mode: every statement is its own
    transaction, so writes that must be atomic are single conditional
    statements.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path, isolation_level=None)
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.execute("PRAGMA busy_timeout = 5000")
        await self._db.executescript(SCHEMA)

    @property
    def conn(self) -> aiosqlite.Connection:
        assert self._db is not None, "Database not initialized, call init() first"
        return self._db

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None


@asynccontextmanager
async def storage_errors() -> AsyncIterator[None]:
    """Translate lock/IO failures from SQLite into retryable errors."""
    try:
        yield
    except sqlite3.OperationalError as exc:
        raise TransientStorageError(f"Storage unavailable: {exc}") from exc


def rows_to_dicts(cursor: aiosqlite.Cursor, rows: list) -> list[dict]:
    cols = [d[0] for d in cursor.description]
    return [dict(zip(cols, row)) for row in rows]


def to_db_time(value: datetime | None) -> str | None:
    return value.isoformat(timespec="microseconds") if value is not None else None


def from_db_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
