"""Enums and typed contracts for the coaching core."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class SessionKind(str, Enum):
    QUICK_PREP = "quick_prep"
    FULL_MOCK = "full_mock"
    PREMIUM_AUDIO = "premium_audio"
    PRO = "pro"


class SessionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    EXPIRED = "expired"


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class DiscountRejectionReason(str, Enum):
    CODE_NOT_FOUND = "code_not_found"
    CODE_NOT_ACTIVE_YET = "code_not_active_yet"
    CODE_EXPIRED = "code_expired"
    CODE_NOT_APPLICABLE = "code_not_applicable"
    ALREADY_REDEEMED = "already_redeemed"
    MAX_REDEMPTIONS_REACHED = "max_redemptions_reached"


class DiscountSource(str, Enum):
    NONE = "none"
    UPGRADE_CREDIT = "upgrade_credit"
    PROMO_CODE = "promo_code"


@dataclass
class SessionDocuments:
    first_name: str = ""
    resume: str = ""
    job_description: str = ""
    company_url: str = ""


@dataclass
class CoachingSession:
    id: str
    owner_email: str
    kind: SessionKind
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    paused_at: datetime | None = None
    completed_at: datetime | None = None
    current_question_number: int = 0
    payment_reference: str | None = None
    documents: SessionDocuments = field(default_factory=SessionDocuments)


@dataclass(frozen=True)
class Turn:
    """One immutable utterance in a session transcript."""

    id: str
    session_id: str
    position: int
    role: TurnRole
    content: str
    question_number: int | None
    created_at: datetime


@dataclass(frozen=True)
class AppendResult:
    turn: Turn
    duplicate: bool = False


@dataclass(frozen=True)
class DiscountCode:
    id: str
    code: str
    discount_percent: int
    description: str | None = None
    is_active: bool = True
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    applicable_products: tuple[SessionKind, ...] | None = None
    max_uses: int | None = None


@dataclass(frozen=True)
class DiscountDecision:
    """Outcome of a promo-code check. Rejections carry a reason and message."""

    accepted: bool
    code_id: str | None = None
    percent: int | None = None
    description: str | None = None
    reason: DiscountRejectionReason | None = None
    message: str | None = None


@dataclass(frozen=True)
class ResumeResult:
    session: CoachingSession
    turns: list[Turn]
