"""Transcript persistence: ordered, append-only turns per session."""

from interview_coach.transcript.questions import is_new_question, questions_completed
from interview_coach.transcript.sequencer import TurnSequencer
from interview_coach.transcript.store import DEFAULT_HISTORY_LIMIT, TranscriptStore

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "TranscriptStore",
    "TurnSequencer",
    "is_new_question",
    "questions_completed",
]
