"""Request and response bodies for the HTTP transport."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from interview_coach.types import CoachingSession, Turn


class EmailBody(BaseModel):
    email: str


class TurnIn(EmailBody):
    # Plain strings: unknown roles and empty content are rejected by the service.
    role: str
    content: str
    question_number: int | None = None


class PauseIn(EmailBody):
    question_number: int | None = None


class DocumentsIn(EmailBody):
    first_name: str = ""
    resume: str = ""
    job_description: str = ""
    company_url: str = ""


class EventIn(EmailBody):
    event_type: str
    message: str
    code: str | None = None
    context: dict[str, Any] | None = None


class DiscountValidateIn(EmailBody):
    code: str
    product_kind: str


class CheckoutIn(EmailBody):
    product_kind: str
    code_id: str | None = None


class TurnOut(BaseModel):
    position: int
    role: str
    content: str
    question_number: int | None
    created_at: datetime

    @classmethod
    def from_turn(cls, turn: Turn) -> TurnOut:
        return cls(
            position=turn.position,
            role=turn.role.value,
            content=turn.content,
            question_number=turn.question_number,
            created_at=turn.created_at,
        )


class DocumentsOut(BaseModel):
    first_name: str
    resume: str
    job_description: str
    company_url: str


class SessionOut(BaseModel):
    id: str
    kind: str
    status: str
    created_at: datetime
    updated_at: datetime
    paused_at: datetime | None
    completed_at: datetime | None
    current_question_number: int
    payment_reference: str | None
    documents: DocumentsOut

    @classmethod
    def from_session(cls, session: CoachingSession) -> SessionOut:
        docs = session.documents
        return cls(
            id=session.id,
            kind=session.kind.value,
            status=session.status.value,
            created_at=session.created_at,
            updated_at=session.updated_at,
            paused_at=session.paused_at,
            completed_at=session.completed_at,
            current_question_number=session.current_question_number,
            payment_reference=session.payment_reference,
            documents=DocumentsOut(
                first_name=docs.first_name,
                resume=docs.resume,
                job_description=docs.job_description,
                company_url=docs.company_url,
            ),
        )


class AppendOut(BaseModel):
    ok: bool = True
    position: int
    question_number: int | None
    duplicate: bool


class HistoryOut(BaseModel):
    turns: list[TurnOut]


class ResumeOut(BaseModel):
    ok: bool = True
    expired: bool = False
    session: SessionOut | None = None
    turns: list[TurnOut] = Field(default_factory=list)


class DiscountOut(BaseModel):
    valid: bool
    percent: int | None = None
    description: str | None = None
    code_id: str | None = None
    error: str | None = None
    reason: str | None = None


class PricingOut(BaseModel):
    base_cents: int
    upgrade_credit_cents: int
    promo_discount_cents: int
    promo_percent: int | None
    winner: str
    discount_cents: int
    final_cents: int
    upgraded_from_session_id: str | None = None
    promo_code_id: str | None = None


class CheckoutOut(BaseModel):
    checkout_url: str
    session_id: str
    pricing: PricingOut
