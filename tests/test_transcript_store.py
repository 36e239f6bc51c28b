"""Tests for the append-only transcript store."""
from datetime import datetime, timezone

import pytest

from interview_coach.errors import InvalidTransition, SessionNotFound
from interview_coach.lifecycle.repository import SessionRepository
from interview_coach.transcript.questions import is_new_question, questions_completed
from interview_coach.transcript.store import TranscriptStore
from interview_coach.types import SessionKind, SessionStatus, Turn, TurnRole

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
EMAIL = "candidate@example.com"


@pytest.fixture
async def session_id(db):
    session = await SessionRepository(db).create(EMAIL, SessionKind.FULL_MOCK, NOW, status=SessionStatus.ACTIVE)
    return session.id


@pytest.fixture
def store(db):
    return TranscriptStore(db, history_limit=5)


class TestAppend:
    async def test_positions_start_at_one_and_increase(self, store, session_id):
        first = await store.append(session_id, EMAIL, TurnRole.ASSISTANT, "Tell me about yourself?", 1, NOW)
        second = await store.append(session_id, EMAIL, TurnRole.USER, "I build things.", 1, NOW)
        assert first.turn.position == 1
        assert second.turn.position == 2
        assert not second.duplicate

    async def test_repeat_of_last_turn_is_not_written(self, store, session_id):
        await store.append(session_id, EMAIL, TurnRole.USER, "Hello", None, NOW)
        again = await store.append(session_id, EMAIL, TurnRole.USER, "Hello", None, NOW)
        assert again.duplicate is True
        assert again.turn.position == 1
        assert await store.count(session_id) == 1

    async def test_same_content_from_other_role_is_written(self, store, session_id):
        await store.append(session_id, EMAIL, TurnRole.USER, "Okay", None, NOW)
        result = await store.append(session_id, EMAIL, TurnRole.ASSISTANT, "Okay", None, NOW)
        assert result.duplicate is False
        assert result.turn.position == 2

    async def test_email_is_case_insensitive(self, store, session_id):
        result = await store.append(session_id, "  Candidate@Example.COM ", TurnRole.USER, "Hi", None, NOW)
        assert result.turn.position == 1

    async def test_other_owner_is_rejected(self, store, session_id):
        with pytest.raises(SessionNotFound):
            await store.append(session_id, "intruder@example.com", TurnRole.USER, "Hi", None, NOW)
        assert await store.count(session_id) == 0

    async def test_unknown_session_is_rejected(self, store):
        with pytest.raises(SessionNotFound):
            await store.append("missing", EMAIL, TurnRole.USER, "Hi", None, NOW)

    async def test_inactive_session_is_rejected_without_writing(self, db, store):
        repo = SessionRepository(db)
        session = await repo.create(EMAIL, SessionKind.FULL_MOCK, NOW, status=SessionStatus.ABANDONED)
        with pytest.raises(InvalidTransition) as exc_info:
            await store.append(session.id, EMAIL, TurnRole.USER, "late answer", None, NOW)
        assert exc_info.value.current == SessionStatus.ABANDONED
        assert await store.count(session.id) == 0

    async def test_append_after_abandon_writes_nothing(self, db, store, session_id):
        repo = SessionRepository(db)
        assert await repo.compare_and_set_status(
            session_id, SessionStatus.ACTIVE, SessionStatus.ABANDONED, NOW
        )
        with pytest.raises(InvalidTransition):
            await store.append(session_id, EMAIL, TurnRole.USER, "late answer", None, NOW)
        assert await store.read(session_id, EMAIL) == []

    async def test_identical_consecutive_utterances_collapse(self, store, session_id):
        for content in ["Yes", "Yes", "No", "Yes"]:
            await store.append(session_id, EMAIL, TurnRole.USER, content, None, NOW)
        turns = await store.read(session_id, EMAIL)
        assert [t.content for t in turns] == ["Yes", "No", "Yes"]


class TestRead:
    async def test_oldest_first(self, store, session_id):
        for i in range(3):
            await store.append(session_id, EMAIL, TurnRole.USER, f"turn {i}", None, NOW)
        turns = await store.read(session_id, EMAIL)
        assert [t.content for t in turns] == ["turn 0", "turn 1", "turn 2"]
        assert [t.position for t in turns] == [1, 2, 3]

    async def test_bounded_by_history_limit(self, store, session_id):
        for i in range(8):
            await store.append(session_id, EMAIL, TurnRole.USER, f"turn {i}", None, NOW)
        turns = await store.read(session_id, EMAIL)
        assert len(turns) == 5
        assert turns[0].position == 1

    async def test_explicit_limit_cannot_exceed_history_limit(self, store, session_id):
        for i in range(8):
            await store.append(session_id, EMAIL, TurnRole.USER, f"turn {i}", None, NOW)
        assert len(await store.read(session_id, EMAIL, limit=2)) == 2
        assert len(await store.read(session_id, EMAIL, limit=100)) == 5

    async def test_other_owner_cannot_read(self, store, session_id):
        with pytest.raises(SessionNotFound):
            await store.read(session_id, "intruder@example.com")

    async def test_max_question_number(self, store, session_id):
        assert await store.max_question_number(session_id) == 0
        await store.append(session_id, EMAIL, TurnRole.ASSISTANT, "Why us?", 1, NOW)
        await store.append(session_id, EMAIL, TurnRole.USER, "Because.", 1, NOW)
        await store.append(session_id, EMAIL, TurnRole.ASSISTANT, "Any weaknesses?", 2, NOW)
        assert await store.max_question_number(session_id) == 2


def _turn(position: int, role: TurnRole, content: str) -> Turn:
    return Turn(
        id=str(position),
        session_id="s1",
        position=position,
        role=role,
        content=content,
        question_number=None,
        created_at=NOW,
    )


class TestQuestions:
    def test_assistant_question_is_new(self):
        assert is_new_question(TurnRole.ASSISTANT, "What motivates you?")

    def test_statement_is_not_a_question(self):
        assert not is_new_question(TurnRole.ASSISTANT, "Thanks for sharing.")

    def test_user_question_does_not_count(self):
        assert not is_new_question(TurnRole.USER, "Can I ask something?")

    def test_answered_questions_count(self):
        turns = [
            _turn(1, TurnRole.ASSISTANT, "Q1?"),
            _turn(2, TurnRole.USER, "A1"),
            _turn(3, TurnRole.ASSISTANT, "Q2?"),
            _turn(4, TurnRole.USER, "A2"),
        ]
        assert questions_completed(turns) == 2

    def test_trailing_unanswered_question_is_excluded(self):
        turns = [
            _turn(1, TurnRole.ASSISTANT, "Q1?"),
            _turn(2, TurnRole.USER, "A1"),
            _turn(3, TurnRole.ASSISTANT, "Q2?"),
        ]
        assert questions_completed(turns) == 1

    def test_empty_transcript(self):
        assert questions_completed([]) == 0


class TestProgress:
    async def test_questions_completed_counts_past_history_limit(self, store, session_id):
        for i in range(6):
            await store.append(session_id, EMAIL, TurnRole.ASSISTANT, f"Question {i}?", i + 1, NOW)
            await store.append(session_id, EMAIL, TurnRole.USER, f"Answer {i}", i + 1, NOW)
        await store.append(session_id, EMAIL, TurnRole.ASSISTANT, "Question 6?", 7, NOW)
        assert len(await store.read(session_id, EMAIL)) == 5
        assert await store.questions_completed(session_id) == 6

    async def test_questions_completed_when_last_question_answered(self, store, session_id):
        await store.append(session_id, EMAIL, TurnRole.ASSISTANT, "Why us?", 1, NOW)
        assert await store.questions_completed(session_id) == 0
        await store.append(session_id, EMAIL, TurnRole.USER, "Because.", 1, NOW)
        assert await store.questions_completed(session_id) == 1
