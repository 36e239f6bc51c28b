"""Append-only transcript storage keyed by session."""

from __future__ import annotations

import uuid
from datetime import datetime

import aiosqlite

from interview_coach.db import from_db_time, rows_to_dicts, to_db_time
from interview_coach.errors import InvalidTransition, SessionNotFound
from interview_coach.transcript.questions import completed_from
from interview_coach.types import AppendResult, SessionStatus, Turn, TurnRole, normalize_email

DEFAULT_HISTORY_LIMIT = 500


def _to_turn(row: dict) -> Turn:
    return Turn(
        id=row["id"],
        session_id=row["session_id"],
        position=row["position"],
        role=TurnRole(row["role"]),
        content=row["content"],
        question_number=row["question_number"],
        created_at=from_db_time(row["created_at"]),
    )


class TranscriptStore:
    """Durable, append-only log of turns.

    Every call checks that the session belongs to the requesting email and
    raises ``SessionNotFound`` otherwise. Positions are assigned inside the
    INSERT so they are gap-free per session; ``UNIQUE(session_id, position)``
    backs that up.
    """

    def __init__(self, db: aiosqlite.Connection, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        self._db = db
        self.history_limit = history_limit

    async def _require_owner(self, session_id: str, owner_email: str) -> None:
        cursor = await self._db.execute(
            "SELECT 1 FROM coaching_sessions WHERE id = ? AND owner_email = ?",
            (session_id, normalize_email(owner_email)),
        )
        if await cursor.fetchone() is None:
            raise SessionNotFound(session_id)

    async def append(
        self,
        session_id: str,
        owner_email: str,
        role: TurnRole,
        content: str,
        question_number: int | None,
        now: datetime,
    ) -> AppendResult:
        """Persist a turn and return it with its committed position.

        A turn identical (role and content) to the session's last committed
        turn is not written again; the existing turn is returned with
        ``duplicate=True``. This also collapses a genuine repeat, such as a
        candidate saying the same thing twice in a row.

        The INSERT only lands while the session is ``active``; otherwise
        ``InvalidTransition`` is raised and nothing is written.
        """
        await self._require_owner(session_id, owner_email)

        last = await self.last_turn(session_id)
        if last is not None and last.role == role and last.content == content:
            return AppendResult(turn=last, duplicate=True)

        turn_id = str(uuid.uuid4())
        cursor = await self._db.execute(
            "INSERT INTO turns (id, session_id, position, role, content, question_number, created_at) "
            "SELECT ?, ?, (SELECT COALESCE(MAX(position), 0) + 1 FROM turns WHERE session_id = ?), "
            "?, ?, ?, ? "
            "WHERE EXISTS (SELECT 1 FROM coaching_sessions WHERE id = ? AND status = 'active')",
            (
                turn_id,
                session_id,
                session_id,
                role.value,
                content,
                question_number,
                to_db_time(now),
                session_id,
            ),
        )
        if cursor.rowcount != 1:
            raise InvalidTransition(session_id, await self._status(session_id), SessionStatus.ACTIVE)
        cursor = await self._db.execute("SELECT * FROM turns WHERE id = ?", (turn_id,))
        rows = rows_to_dicts(cursor, await cursor.fetchall())
        return AppendResult(turn=_to_turn(rows[0]))

    async def read(self, session_id: str, owner_email: str, limit: int | None = None) -> list[Turn]:
        """Turns oldest first, at most *limit* (defaults to the history limit)."""
        await self._require_owner(session_id, owner_email)
        bound = min(limit, self.history_limit) if limit is not None else self.history_limit
        cursor = await self._db.execute(
            "SELECT * FROM turns WHERE session_id = ? ORDER BY position ASC LIMIT ?",
            (session_id, bound),
        )
        return [_to_turn(r) for r in rows_to_dicts(cursor, await cursor.fetchall())]

    async def max_question_number(self, session_id: str) -> int:
        cursor = await self._db.execute(
            "SELECT COALESCE(MAX(question_number), 0) FROM turns WHERE session_id = ? AND role = 'assistant'",
            (session_id,),
        )
        row = await cursor.fetchone()
        return row[0]

    async def count(self, session_id: str) -> int:
        cursor = await self._db.execute("SELECT COUNT(*) FROM turns WHERE session_id = ?", (session_id,))
        return (await cursor.fetchone())[0]

    async def questions_completed(self, session_id: str) -> int:
        """Answered questions over the whole transcript, not just the readable window."""
        cursor = await self._db.execute(
            "SELECT COUNT(*) FROM turns WHERE session_id = ? AND role = 'assistant' AND instr(content, '?') > 0",
            (session_id,),
        )
        asked = (await cursor.fetchone())[0]
        return completed_from(asked, await self.last_turn(session_id))

    async def last_turn(self, session_id: str) -> Turn | None:
        cursor = await self._db.execute(
            "SELECT * FROM turns WHERE session_id = ? ORDER BY position DESC LIMIT 1",
            (session_id,),
        )
        rows = rows_to_dicts(cursor, await cursor.fetchall())
        return _to_turn(rows[0]) if rows else None

    async def _status(self, session_id: str) -> SessionStatus:
        cursor = await self._db.execute("SELECT status FROM coaching_sessions WHERE id = ?", (session_id,))
        row = await cursor.fetchone()
        if row is None:
            raise SessionNotFound(session_id)
        return SessionStatus(row[0])
