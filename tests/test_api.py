"""Tests for the HTTP transport."""
from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from conftest import EMAIL

from interview_coach.api.app import create_app
from interview_coach.types import SessionKind

AUTH = {"Authorization": "Bearer test-token"}


@pytest.fixture
async def client(config, service):
    """Async HTTP client wired to an app sharing the test service."""
    app = create_app(config, service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=AUTH) as ac:
        yield ac


async def _pending_id(service, kind=SessionKind.FULL_MOCK) -> str:
    session = await service.sessions.create(EMAIL, kind, service.clock())
    return session.id


class TestAuth:
    async def test_health_no_auth(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_requires_auth(self, config, service):
        transport = ASGITransport(app=create_app(config, service))
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.get("/api/sessions/paused", params={"email": EMAIL})
        assert resp.status_code in (401, 403)

    async def test_rejects_bad_token(self, client: AsyncClient):
        resp = await client.get(
            "/api/sessions/paused",
            params={"email": EMAIL},
            headers={"Authorization": "Bearer wrong-token"},
        )
        assert resp.status_code == 401


class TestSessionRoutes:
    async def test_turns_and_history(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        resp = await client.post(
            f"/api/sessions/{session_id}/turns",
            json={"email": EMAIL, "role": "assistant", "content": "Why do you want this job?"},
        )
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "position": 1, "question_number": 1, "duplicate": False}

        resp = await client.get(f"/api/sessions/{session_id}/history", params={"email": EMAIL})
        turns = resp.json()["turns"]
        assert [t["content"] for t in turns] == ["Why do you want this job?"]

    async def test_bad_role_is_400(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        resp = await client.post(
            f"/api/sessions/{session_id}/turns",
            json={"email": EMAIL, "role": "narrator", "content": "hi"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_request"

    async def test_other_owner_is_404(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        resp = await client.get(f"/api/sessions/{session_id}", params={"email": "intruder@example.com"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    async def test_invalid_transition_is_409(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        resp = await client.post(f"/api/sessions/{session_id}/pause", json={"email": EMAIL})
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_transition"

    async def test_pause_resume_cycle(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        await client.post(f"/api/sessions/{session_id}/start", json={"email": EMAIL})
        resp = await client.post(
            f"/api/sessions/{session_id}/pause", json={"email": EMAIL, "question_number": 0}
        )
        assert resp.json()["session"]["status"] == "paused"

        resp = await client.get("/api/sessions/paused", params={"email": EMAIL})
        assert [s["id"] for s in resp.json()["sessions"]] == [session_id]

        resp = await client.post(f"/api/sessions/{session_id}/resume", json={"email": EMAIL})
        body = resp.json()
        assert body["ok"] is True
        assert body["session"]["status"] == "active"

    async def test_expired_resume(self, client: AsyncClient, service, clock):
        session_id = await _pending_id(service)
        await client.post(f"/api/sessions/{session_id}/start", json={"email": EMAIL})
        await client.post(f"/api/sessions/{session_id}/pause", json={"email": EMAIL})
        clock.advance(days=2)
        resp = await client.post(f"/api/sessions/{session_id}/resume", json={"email": EMAIL})
        assert resp.status_code == 200
        assert resp.json()["expired"] is True

    async def test_abandon_already_resolved(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        await client.post(f"/api/sessions/{session_id}/start", json={"email": EMAIL})
        first = await client.post(f"/api/sessions/{session_id}/abandon", json={"email": EMAIL})
        assert first.json()["session"]["status"] == "abandoned"
        again = await client.post(f"/api/sessions/{session_id}/abandon", json={"email": EMAIL})
        assert again.status_code == 200
        assert again.json()["ok"] is False
        assert again.json()["already_resolved"] is True

    async def test_documents(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        resp = await client.put(
            f"/api/sessions/{session_id}/documents",
            json={"email": EMAIL, "first_name": "Ada", "job_description": "Staff engineer"},
        )
        assert resp.json()["documents"]["first_name"] == "Ada"

    async def test_events_always_ok(self, client: AsyncClient):
        resp = await client.post(
            "/api/sessions/missing/events",
            json={"email": EMAIL, "event_type": "audio_error", "message": "mic lost"},
        )
        assert resp.json() == {"ok": True}


class TestCheckoutRoutes:
    async def test_validate_discount(self, client: AsyncClient, service):
        await service.discounts.create_code("TEN", 10, description="Ten off")
        resp = await client.post(
            "/api/discounts/validate",
            json={"email": EMAIL, "code": "ten", "product_kind": "full_mock"},
        )
        body = resp.json()
        assert body["valid"] is True
        assert body["percent"] == 10

        resp = await client.post(
            "/api/discounts/validate",
            json={"email": EMAIL, "code": "ten", "product_kind": "full_mock"},
        )
        assert resp.status_code == 200
        assert resp.json()["valid"] is False
        assert resp.json()["reason"] == "already_redeemed"

    async def test_checkout_and_estimate(self, client: AsyncClient):
        resp = await client.post("/api/checkout/estimate", json={"email": EMAIL, "product_kind": "pro"})
        assert resp.json()["final_cents"] == 7900

        resp = await client.post("/api/checkout", json={"email": EMAIL, "product_kind": "quick_prep"})
        body = resp.json()
        assert resp.status_code == 200
        assert body["checkout_url"].endswith(body["session_id"])
        assert body["pricing"]["winner"] == "none"

    async def test_checkout_conflict_names_paused_session(self, client: AsyncClient, service):
        session_id = await _pending_id(service)
        await client.post(f"/api/sessions/{session_id}/start", json={"email": EMAIL})
        await client.post(f"/api/sessions/{session_id}/pause", json={"email": EMAIL})
        resp = await client.post("/api/checkout", json={"email": EMAIL, "product_kind": "full_mock"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "conflict"
        assert resp.json()["session"]["id"] == session_id

    async def test_unreserved_code_at_checkout_is_422(self, client: AsyncClient, service):
        code = await service.discounts.create_code("HALF", 50)
        resp = await client.post(
            "/api/checkout",
            json={"email": EMAIL, "product_kind": "full_mock", "code_id": code.id},
        )
        assert resp.status_code == 422
        assert resp.json()["error"] == "code_not_found"
