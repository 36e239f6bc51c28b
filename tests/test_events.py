"""Tests for the best-effort diagnostic event log."""
from unittest.mock import AsyncMock, MagicMock

from interview_coach.events import EventLog


class TestEventLog:
    async def test_log_and_read_back(self, db, clock):
        log = EventLog(db, clock=clock)
        ok = await log.log_event(
            "s1", "Candidate@Example.com", "audio_error", "Mic permission denied",
            code="mic_denied", context={"browser": "firefox"},
        )
        assert ok is True
        events = await log.get_events("s1")
        assert len(events) == 1
        assert events[0]["event_type"] == "audio_error"
        assert events[0]["code"] == "mic_denied"
        assert events[0]["context"] == {"browser": "firefox"}

    async def test_events_are_oldest_first(self, db, clock):
        log = EventLog(db, clock=clock)
        for i in range(3):
            await log.log_event("s1", "a@example.com", "tick", f"event {i}")
        assert [e["message"] for e in await log.get_events("s1")] == ["event 0", "event 1", "event 2"]

    async def test_storage_failure_is_swallowed(self, clock):
        broken = MagicMock()
        broken.execute = AsyncMock(side_effect=RuntimeError("disk full"))
        log = EventLog(broken, clock=clock)
        assert await log.log_event("s1", "a@example.com", "tick", "lost") is False
