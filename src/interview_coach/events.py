"""Diagnostic event log for sessions.

Writes are best-effort: a failure to record an event is logged and never
reaches the caller's primary flow.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime

import aiosqlite

from interview_coach.db import rows_to_dicts, to_db_time
from interview_coach.types import normalize_email, utcnow

logger = logging.getLogger(__name__)


class EventLog:
    """Persists session diagnostics and lifecycle events into *session_events*."""

    def __init__(self, db: aiosqlite.Connection, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = db
        self._clock = clock

    async def log_event(
        self,
        session_id: str | None,
        owner_email: str,
        event_type: str,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> bool:
        """Record an event. Returns ``False`` if it could not be stored."""
        try:
            await self._db.execute(
                "INSERT INTO session_events "
                "(session_id, owner_email, event_type, message, code, context_json, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    session_id,
                    normalize_email(owner_email),
                    event_type,
                    message,
                    code,
                    json.dumps(context, default=str) if context is not None else None,
                    to_db_time(self._clock()),
                ),
            )
        except Exception:
            logger.warning("Failed to record %s event for session %s", event_type, session_id, exc_info=True)
            return False
        return True

    async def get_events(self, session_id: str, limit: int = 100) -> list[dict]:
        cursor = await self._db.execute(
            "SELECT event_type, message, code, context_json, created_at FROM session_events "
            "WHERE session_id = ? ORDER BY id ASC LIMIT ?",
            (session_id, limit),
        )
        events = rows_to_dicts(cursor, await cursor.fetchall())
        for event in events:
            raw = event.pop("context_json")
            event["context"] = json.loads(raw) if raw else None
        return events
