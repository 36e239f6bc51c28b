"""HTTP transport for the coaching core."""

from interview_coach.api.app import create_app

__all__ = ["create_app"]
