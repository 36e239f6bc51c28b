"""Question detection for interviewer turns."""

from __future__ import annotations

from collections.abc import Sequence

from interview_coach.types import Turn, TurnRole


def is_new_question(role: TurnRole, content: str) -> bool:
    """An interviewer turn that asks something opens a new question."""
    return role == TurnRole.ASSISTANT and "?" in content


def completed_from(asked: int, last: Turn | None) -> int:
    """Answered count given *asked* question turns and the transcript's last turn."""
    if last is not None and is_new_question(last.role, last.content):
        return max(asked - 1, 0)
    return asked


def questions_completed(turns: Sequence[Turn]) -> int:
    """Questions the candidate has answered so far.

    Counts interviewer turns that pose a question; if the transcript ends on
    such a turn it is still unanswered and does not count.
    """
    asked = sum(1 for t in turns if is_new_question(t.role, t.content))
    return completed_from(asked, turns[-1] if turns else None)
