"""Shared fixtures: temp SQLite storage, a controllable clock, a fake payment gateway."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from interview_coach.billing.payments import CheckoutReference
from interview_coach.config import CoachConfig
from interview_coach.db import Database
from interview_coach.service import CoachService

EMAIL = "candidate@example.com"


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway:
    """Records checkout requests instead of calling the processor."""

    def __init__(self) -> None:
        self.calls: list = []

    async def create_checkout(self, session, pricing) -> CheckoutReference:
        self.calls.append((session, pricing))
        return CheckoutReference(
            reference=f"cs_test_{len(self.calls)}",
            url=f"https://checkout.test/pay/{session.id}",
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "test.db"))
    await database.init()
    yield database.conn
    await database.close()


@pytest.fixture
def config(tmp_path) -> CoachConfig:
    return CoachConfig(
        _env_file=None,
        db_path=str(tmp_path / "coach.db"),
        api_token="test-token",
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def service(config, gateway, clock):
    svc = CoachService(config, gateway=gateway, clock=clock)
    await svc.setup()
    yield svc
    await svc.shutdown()
