"""Coaching-session state machine with valid transition enforcement."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from interview_coach.errors import InvalidTransition, SessionConflict
from interview_coach.lifecycle.repository import ActiveSessionExists, SessionRepository
from interview_coach.types import CoachingSession, SessionStatus, utcnow

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset(
    {
        SessionStatus.COMPLETED,
        SessionStatus.ABANDONED,
        SessionStatus.EXPIRED,
    }
)

VALID_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.ACTIVE}),
    SessionStatus.ACTIVE: frozenset(
        {
            SessionStatus.PAUSED,
            SessionStatus.COMPLETED,
            SessionStatus.ABANDONED,
        }
    ),
    SessionStatus.PAUSED: frozenset(
        {
            SessionStatus.ACTIVE,
            SessionStatus.ABANDONED,
            SessionStatus.EXPIRED,
        }
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ABANDONED: frozenset(),
    SessionStatus.EXPIRED: frozenset(),
}


def is_terminal(status: SessionStatus) -> bool:
    return status in TERMINAL_STATES


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


class SessionStateMachine:
    """Applies lifecycle transitions to persisted sessions.

    The persisted status is the source of truth. A move is validated against
    ``VALID_TRANSITIONS`` before anything is written, then applied as a
    compare-and-set on the status the caller observed. If another caller got
    there first the write is refused and ``InvalidTransition`` reports the
    status actually found.
    """

    def __init__(self, sessions: SessionRepository, clock: Callable[[], datetime] = utcnow) -> None:
        self._sessions = sessions
        self._clock = clock

    def check(self, session: CoachingSession, target: SessionStatus) -> None:
        """Raise ``InvalidTransition`` unless the move is allowed."""
        if not can_transition(session.status, target):
            raise InvalidTransition(session.id, session.status, target)

    async def transition(
        self, session: CoachingSession, target: SessionStatus, **fields: object
    ) -> CoachingSession:
        self.check(session, target)
        try:
            applied = await self._sessions.compare_and_set_status(
                session.id, session.status, target, self._clock(), **fields
            )
        except ActiveSessionExists:
            active = await self._sessions.list_by_status(session.owner_email, SessionStatus.ACTIVE)
            blocking = active[0] if active else session
            raise SessionConflict(
                blocking,
                f"Session {blocking.id} is already active for this email",
            ) from None
        if not applied:
            current = await self._sessions.get(session.id)
            found = current.status if current is not None else session.status
            raise InvalidTransition(session.id, found, target)

        logger.info("Session %s: %s -> %s", session.id, session.status.value, target.value)
        updated = await self._sessions.get(session.id)
        assert updated is not None
        return updated

    async def start(self, session: CoachingSession) -> CoachingSession:
        return await self.transition(session, SessionStatus.ACTIVE)

    async def pause(self, session: CoachingSession, question_number: int) -> CoachingSession:
        return await self.transition(
            session,
            SessionStatus.PAUSED,
            paused_at=self._clock(),
            current_question_number=question_number,
        )

    async def resume(self, session: CoachingSession) -> CoachingSession:
        self._require(session, SessionStatus.PAUSED, SessionStatus.ACTIVE)
        return await self.transition(session, SessionStatus.ACTIVE, paused_at=None)

    async def complete(self, session: CoachingSession) -> CoachingSession:
        return await self.transition(session, SessionStatus.COMPLETED, completed_at=self._clock())

    async def abandon(self, session: CoachingSession) -> CoachingSession:
        return await self.transition(session, SessionStatus.ABANDONED, paused_at=None)

    async def expire(self, session: CoachingSession) -> CoachingSession:
        return await self.transition(session, SessionStatus.EXPIRED)

    @staticmethod
    def _require(session: CoachingSession, expected: SessionStatus, target: SessionStatus) -> None:
        if session.status != expected:
            raise InvalidTransition(session.id, session.status, target)
