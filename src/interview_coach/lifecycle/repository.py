"""Repository for coaching sessions.

Status changes are compare-and-set writes: ``UPDATE ... WHERE status = ?``
applies only if no other caller moved the session first. The partial unique
index on ``(owner_email) WHERE status = 'active'`` rejects a second active
session for the same owner at the storage level.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime

import aiosqlite

from interview_coach.db import from_db_time, rows_to_dicts, to_db_time
from interview_coach.types import (
    CoachingSession,
    SessionDocuments,
    SessionKind,
    SessionStatus,
    normalize_email,
)

_COLUMNS = (
    "id, owner_email, session_kind, status, created_at, updated_at, paused_at, "
    "completed_at, current_question_number, payment_reference, first_name, "
    "resume_text, job_description, company_url"
)


class ActiveSessionExists(Exception):
    """Raised when a write would give an owner a second active session."""


def _to_session(row: dict) -> CoachingSession:
    return CoachingSession(
        id=row["id"],
        owner_email=row["owner_email"],
        kind=SessionKind(row["session_kind"]),
        status=SessionStatus(row["status"]),
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
        paused_at=from_db_time(row["paused_at"]),
        completed_at=from_db_time(row["completed_at"]),
        current_question_number=row["current_question_number"] or 0,
        payment_reference=row["payment_reference"],
        documents=SessionDocuments(
            first_name=row["first_name"] or "",
            resume=row["resume_text"] or "",
            job_description=row["job_description"] or "",
            company_url=row["company_url"] or "",
        ),
    )


class SessionRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def create(
        self,
        owner_email: str,
        kind: SessionKind,
        now: datetime,
        status: SessionStatus = SessionStatus.PENDING,
        session_id: str | None = None,
    ) -> CoachingSession:
        session_id = session_id or str(uuid.uuid4())
        ts = to_db_time(now)
        await self._db.execute(
            "INSERT INTO coaching_sessions (id, owner_email, session_kind, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (session_id, normalize_email(owner_email), kind.value, status.value, ts, ts),
        )
        session = await self.get(session_id)
        assert session is not None
        return session

    async def get(self, session_id: str) -> CoachingSession | None:
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM coaching_sessions WHERE id = ?", (session_id,)
        )
        rows = await cursor.fetchall()
        if not rows:
            return None
        return _to_session(rows_to_dicts(cursor, rows)[0])

    async def get_owned(self, session_id: str, owner_email: str) -> CoachingSession | None:
        """Return the session only when *owner_email* owns it."""
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM coaching_sessions WHERE id = ? AND owner_email = ?",
            (session_id, normalize_email(owner_email)),
        )
        rows = await cursor.fetchall()
        if not rows:
            return None
        return _to_session(rows_to_dicts(cursor, rows)[0])

    async def list_by_status(
        self, owner_email: str, status: SessionStatus
    ) -> list[CoachingSession]:
        order = "paused_at DESC" if status == SessionStatus.PAUSED else "created_at DESC"
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM coaching_sessions WHERE owner_email = ? AND status = ? "
            f"ORDER BY {order}",
            (normalize_email(owner_email), status.value),
        )
        return [_to_session(r) for r in rows_to_dicts(cursor, await cursor.fetchall())]

    async def list_purchased_since(
        self, owner_email: str, since: datetime
    ) -> list[CoachingSession]:
        """Paid sessions (not pending or abandoned) created at or after *since*."""
        cursor = await self._db.execute(
            f"SELECT {_COLUMNS} FROM coaching_sessions WHERE owner_email = ? "
            "AND status NOT IN ('pending', 'abandoned') AND created_at >= ? "
            "ORDER BY created_at DESC",
            (normalize_email(owner_email), to_db_time(since)),
        )
        return [_to_session(r) for r in rows_to_dicts(cursor, await cursor.fetchall())]

    async def compare_and_set_status(
        self,
        session_id: str,
        expected: SessionStatus,
        target: SessionStatus,
        now: datetime,
        **fields: object,
    ) -> bool:
        """Move *session_id* from *expected* to *target*; ``False`` if it had moved.

        Extra *fields* are written in the same statement.
        """
        assignments = ["status = ?", "updated_at = ?"]
        params: list[object] = [target.value, to_db_time(now)]
        for column, value in fields.items():
            assignments.append(f"{column} = ?")
            params.append(to_db_time(value) if isinstance(value, datetime) else value)
        params.extend([session_id, expected.value])
        try:
            cursor = await self._db.execute(
                f"UPDATE coaching_sessions SET {', '.join(assignments)} "
                "WHERE id = ? AND status = ?",
                tuple(params),
            )
        except sqlite3.IntegrityError as exc:
            raise ActiveSessionExists(session_id) from exc
        return cursor.rowcount == 1

    async def set_question_number(self, session_id: str, question_number: int, now: datetime) -> None:
        await self._db.execute(
            "UPDATE coaching_sessions SET current_question_number = ?, updated_at = ? WHERE id = ?",
            (question_number, to_db_time(now), session_id),
        )

    async def set_payment_reference(self, session_id: str, reference: str, now: datetime) -> None:
        await self._db.execute(
            "UPDATE coaching_sessions SET payment_reference = ?, updated_at = ? WHERE id = ?",
            (reference, to_db_time(now), session_id),
        )

    async def save_documents(
        self, session_id: str, documents: SessionDocuments, now: datetime
    ) -> None:
        await self._db.execute(
            "UPDATE coaching_sessions SET first_name = ?, resume_text = ?, job_description = ?, "
            "company_url = ?, updated_at = ? WHERE id = ?",
            (
                documents.first_name,
                documents.resume,
                documents.job_description,
                documents.company_url,
                to_db_time(now),
                session_id,
            ),
        )
