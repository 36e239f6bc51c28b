"""Pause/resume arbitration and the single-active-session rule."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from interview_coach.errors import AbandonFailed, InvalidTransition, SessionExpired, SessionNotFound
from interview_coach.lifecycle.repository import SessionRepository
from interview_coach.lifecycle.state import SessionStateMachine
from interview_coach.types import CoachingSession, SessionKind, SessionStatus, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class ConflictCheck:
    """``paused_session`` is set when the owner must resume or abandon first."""

    paused_session: CoachingSession | None = None

    @property
    def has_conflict(self) -> bool:
        return self.paused_session is not None


class PauseResumeManager:
    """Mediates between paused sessions and requests for new ones.

    Never abandons on its own: abandonment is an explicit caller action.
    Paused sessions past the retention window are marked ``expired`` when
    they are encountered during a conflict check; a resume attempt on one
    raises ``SessionExpired`` and leaves its status untouched.
    """

    def __init__(
        self,
        sessions: SessionRepository,
        machine: SessionStateMachine,
        retention_window: timedelta = DEFAULT_RETENTION_WINDOW,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessions = sessions
        self._machine = machine
        self.retention_window = retention_window
        self._clock = clock

    def is_expired(self, session: CoachingSession) -> bool:
        if session.status != SessionStatus.PAUSED or session.paused_at is None:
            return False
        return self._clock() - session.paused_at > self.retention_window

    async def get_paused_sessions(self, owner_email: str) -> list[CoachingSession]:
        """Resumable paused sessions, most recently paused first."""
        paused = await self._sessions.list_by_status(owner_email, SessionStatus.PAUSED)
        return [s for s in paused if not self.is_expired(s)]

    async def check_for_conflict(
        self, owner_email: str, requested_kind: SessionKind
    ) -> ConflictCheck:
        paused = await self._sessions.list_by_status(owner_email, SessionStatus.PAUSED)
        resumable: list[CoachingSession] = []
        for session in paused:
            if self.is_expired(session):
                await self._expire_quietly(session)
            else:
                resumable.append(session)
        if not resumable:
            return ConflictCheck()
        if len(resumable) > 1:
            logger.warning(
                "Owner has %d paused sessions; surfacing the most recent (%s)",
                len(resumable),
                resumable[0].id,
            )
        logger.info(
            "Paused session %s blocks new %s session", resumable[0].id, requested_kind.value
        )
        return ConflictCheck(paused_session=resumable[0])

    async def resume(self, session_id: str, owner_email: str) -> CoachingSession:
        session = await self._owned(session_id, owner_email)
        if self.is_expired(session):
            logger.info("Resume refused for expired session %s", session_id)
            raise SessionExpired(session_id)
        return await self._machine.resume(session)

    async def abandon(self, session_id: str, owner_email: str) -> CoachingSession:
        """Discard a paused (or active) session so a new one may start.

        Raises ``AbandonFailed`` when the session has already left
        ``paused``/``active``, e.g. another tab resumed or abandoned it.
        """
        session = await self._owned(session_id, owner_email)
        try:
            return await self._machine.abandon(session)
        except InvalidTransition as exc:
            raise AbandonFailed(session_id, exc.current) from None

    async def _owned(self, session_id: str, owner_email: str) -> CoachingSession:
        session = await self._sessions.get_owned(session_id, owner_email)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def _expire_quietly(self, session: CoachingSession) -> None:
        try:
            await self._machine.expire(session)
        except InvalidTransition:
            # Resolved concurrently; whatever it became is not paused anymore.
            pass
