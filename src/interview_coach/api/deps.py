"""Shared dependencies -- the service owned by the running app."""
from __future__ import annotations

from fastapi import Request

from interview_coach.service import CoachService


def get_service(request: Request) -> CoachService:
    return request.app.state.service
