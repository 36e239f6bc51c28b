"""Typed failures returned to callers of the coaching core.

Every error carries a stable ``code`` so transports can map it without
inspecting messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from interview_coach.types import CoachingSession, DiscountRejectionReason, SessionStatus


class CoachError(Exception):
    """Base class for all coaching-core failures."""

    code = "error"


class InvalidRequest(CoachError):
    """Malformed input: unknown product kind, empty content, bad role."""

    code = "invalid_request"


class SessionNotFound(CoachError):
    """Session is absent or not owned by the requesting email."""

    code = "not_found"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found for this email: {session_id}")
        self.session_id = session_id


class Unauthorized(CoachError):
    code = "unauthorized"


class InvalidTransition(CoachError):
    """Illegal lifecycle move; nothing was written."""

    code = "invalid_transition"

    def __init__(self, session_id: str, current: SessionStatus, target: SessionStatus) -> None:
        super().__init__(
            f"Invalid transition for session {session_id}: {current.value} -> {target.value}"
        )
        self.session_id = session_id
        self.current = current
        self.target = target


class SessionExpired(CoachError):
    """Resume attempted after the retention window elapsed."""

    code = "expired"

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session {session_id} expired. Paused sessions are only resumable "
            "within the retention window."
        )
        self.session_id = session_id


class SessionConflict(CoachError):
    """Another session blocks the request; the caller must resume or abandon it."""

    code = "conflict"

    def __init__(self, session: CoachingSession, message: str | None = None) -> None:
        super().__init__(
            message or f"Session {session.id} ({session.status.value}) must be resumed or abandoned first"
        )
        self.session = session


class AbandonFailed(CoachError):
    """The session already left ``paused``/``active``; another caller resolved it."""

    code = "already_resolved"

    def __init__(self, session_id: str, status: SessionStatus) -> None:
        super().__init__(f"Session {session_id} already resolved ({status.value})")
        self.session_id = session_id
        self.status = status


class DiscountRejected(CoachError):
    """A promo code could not be applied. ``code`` is the rejection reason."""

    def __init__(self, reason: DiscountRejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.code = reason.value


class TransientStorageError(CoachError):
    """Storage failure that is safe to retry."""

    code = "transient_io"


class PaymentUnavailable(CoachError):
    """The payment processor is not configured or refused the request."""

    code = "payment_unavailable"
