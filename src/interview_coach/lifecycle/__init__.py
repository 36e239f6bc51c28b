"""Session lifecycle: state machine, repository, pause/resume arbitration."""

from interview_coach.lifecycle.pause import ConflictCheck, PauseResumeManager
from interview_coach.lifecycle.repository import SessionRepository
from interview_coach.lifecycle.state import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    SessionStateMachine,
    can_transition,
    is_terminal,
)

__all__ = [
    "ConflictCheck",
    "PauseResumeManager",
    "SessionRepository",
    "SessionStateMachine",
    "TERMINAL_STATES",
    "VALID_TRANSITIONS",
    "can_transition",
    "is_terminal",
]
