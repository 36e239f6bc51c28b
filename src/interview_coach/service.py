"""Coaching core facade: the logical operations exposed to transports."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from interview_coach.billing.catalog import parse_kind
from interview_coach.billing.discounts import REJECTION_MESSAGES, DiscountLedger
from interview_coach.billing.payments import PaymentGateway, StripeCheckoutGateway
from interview_coach.billing.pricing import PricingBreakdown, PricingResolver
from interview_coach.config import CoachConfig
from interview_coach.db import Database, storage_errors
from interview_coach.errors import (
    DiscountRejected,
    InvalidRequest,
    InvalidTransition,
    SessionConflict,
    SessionNotFound,
)
from interview_coach.events import EventLog
from interview_coach.lifecycle.pause import PauseResumeManager
from interview_coach.lifecycle.repository import SessionRepository
from interview_coach.lifecycle.state import SessionStateMachine
from interview_coach.transcript.questions import is_new_question
from interview_coach.transcript.sequencer import TurnSequencer
from interview_coach.transcript.store import TranscriptStore
from interview_coach.types import (
    AppendResult,
    CoachingSession,
    DiscountDecision,
    DiscountRejectionReason,
    ResumeResult,
    SessionDocuments,
    SessionKind,
    SessionStatus,
    Turn,
    TurnRole,
    normalize_email,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    session: CoachingSession
    checkout_url: str
    pricing: PricingBreakdown


def _require_email(email: str) -> str:
    normalized = normalize_email(email)
    if not normalized:
        raise InvalidRequest("email is required")
    return normalized


class CoachService:
    """Central controller wiring storage, lifecycle and billing components."""

    def __init__(
        self,
        config: CoachConfig,
        gateway: PaymentGateway | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.clock = clock
        self.gateway: PaymentGateway = gateway or StripeCheckoutGateway(
            secret_key=config.stripe_secret_key,
            success_url=config.checkout_success_url,
            cancel_url=config.checkout_cancel_url,
            currency=config.currency,
        )
        self.database = Database(config.db_path)
        self.sequencer = TurnSequencer()
        self.pricing = PricingResolver()
        self.sessions: SessionRepository | None = None
        self.transcripts: TranscriptStore | None = None
        self.machine: SessionStateMachine | None = None
        self.pauses: PauseResumeManager | None = None
        self.discounts: DiscountLedger | None = None
        self.events: EventLog | None = None

    @classmethod
    def from_config(cls, config: CoachConfig | None = None) -> CoachService:
        return cls(config or CoachConfig())

    async def setup(self) -> None:
        """Open storage and build every component on the shared connection."""
        if self.sessions is not None:
            return
        await self.database.init()
        conn = self.database.conn
        self.sessions = SessionRepository(conn)
        self.transcripts = TranscriptStore(conn, history_limit=self.config.history_limit)
        self.machine = SessionStateMachine(self.sessions, clock=self.clock)
        self.pauses = PauseResumeManager(
            self.sessions,
            self.machine,
            retention_window=self.config.retention_window,
            clock=self.clock,
        )
        self.discounts = DiscountLedger(conn, clock=self.clock)
        self.events = EventLog(conn, clock=self.clock)

    async def shutdown(self) -> None:
        await self.sequencer.drain()
        await self.database.close()

    def _require_setup(
        self,
    ) -> tuple[SessionRepository, TranscriptStore, SessionStateMachine, PauseResumeManager, DiscountLedger, EventLog]:
        assert self.sessions is not None, "Service not initialized, call setup() first"
        assert self.transcripts is not None, "Service not initialized, call setup() first"
        assert self.machine is not None, "Service not initialized, call setup() first"
        assert self.pauses is not None, "Service not initialized, call setup() first"
        assert self.discounts is not None, "Service not initialized, call setup() first"
        assert self.events is not None, "Service not initialized, call setup() first"
        return self.sessions, self.transcripts, self.machine, self.pauses, self.discounts, self.events

    async def _owned(self, session_id: str, email: str) -> CoachingSession:
        sessions = self._require_setup()[0]
        session = await sessions.get_owned(session_id, _require_email(email))
        if session is None:
            raise SessionNotFound(session_id)
        return session

    # ------------------------------------------------------------------
    # Transcript
    # ------------------------------------------------------------------

    async def append_turn(
        self,
        session_id: str,
        email: str,
        role: TurnRole | str,
        content: str,
        question_number: int | None = None,
    ) -> AppendResult:
        """Queue a turn behind every earlier write for this session.

        Interviewer turns that ask a question get the next question number
        inside the serialized path. Other turns keep the caller's number, or
        the question currently open.

        A turn repeating the last committed turn (same role and content) is
        treated as a client retry: nothing is written and the existing turn
        comes back with ``duplicate=True``. Two identical consecutive
        utterances therefore produce one turn.
        """
        try:
            turn_role = TurnRole(role)
        except ValueError:
            raise InvalidRequest(f"Invalid role: {role}") from None
        if not content or not content.strip():
            raise InvalidRequest("role and content are required")
        owner = _require_email(email)
        sessions, transcripts, machine, _, _, _ = self._require_setup()

        async def write() -> AppendResult:
            session = await sessions.get_owned(session_id, owner)
            if session is None:
                raise SessionNotFound(session_id)
            if session.status == SessionStatus.PENDING:
                session = await machine.start(session)
            if session.status != SessionStatus.ACTIVE:
                raise InvalidTransition(session_id, session.status, SessionStatus.ACTIVE)

            asked = await transcripts.max_question_number(session_id)
            new_question = is_new_question(turn_role, content)
            if new_question:
                number: int | None = asked + 1
            else:
                number = question_number if question_number is not None else (asked or None)

            now = self.clock()
            result = await transcripts.append(session_id, owner, turn_role, content, number, now)
            if new_question and not result.duplicate:
                await sessions.set_question_number(session_id, asked + 1, now)
            return result

        async with storage_errors():
            return await self.sequencer.enqueue(session_id, write)

    async def get_history(self, session_id: str, email: str) -> list[Turn]:
        transcripts = self._require_setup()[1]
        async with storage_errors():
            return await transcripts.read(session_id, _require_email(email))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str, email: str) -> CoachingSession:
        async with storage_errors():
            return await self._owned(session_id, email)

    async def save_documents(
        self, session_id: str, email: str, documents: SessionDocuments
    ) -> CoachingSession:
        sessions = self._require_setup()[0]
        async with storage_errors():
            session = await self._owned(session_id, email)
            await sessions.save_documents(session.id, documents, self.clock())
            return await self._owned(session_id, email)

    async def start_session(self, session_id: str, email: str) -> CoachingSession:
        machine = self._require_setup()[2]
        async with storage_errors():
            session = await self._owned(session_id, email)
            return await machine.start(session)

    async def pause_session(
        self, session_id: str, email: str, question_number: int | None = None
    ) -> CoachingSession:
        """Pause after every queued append; progress is computed from the transcript."""
        owner = _require_email(email)
        _, transcripts, machine, _, _, events = self._require_setup()

        async def pause() -> CoachingSession:
            session = await self._owned(session_id, owner)
            machine.check(session, SessionStatus.PAUSED)
            completed = await transcripts.questions_completed(session_id)
            paused = await machine.pause(session, completed)
            await events.log_event(
                session_id,
                owner,
                "session_paused",
                f"Session paused at question {completed}",
                context={"questions_completed": completed, "client_question_number": question_number},
            )
            return paused

        async with storage_errors():
            return await self.sequencer.enqueue(session_id, pause)

    async def resume_session(self, session_id: str, email: str) -> ResumeResult:
        """Reactivate a paused session and return its history.

        Raises ``SessionExpired`` past the retention window, leaving the
        session as it was.
        """
        owner = _require_email(email)
        _, transcripts, _, pauses, _, events = self._require_setup()

        async def resume() -> tuple[CoachingSession, list[Turn]]:
            session = await pauses.resume(session_id, owner)
            return session, await transcripts.read(session_id, owner)

        async with storage_errors():
            session, turns = await self.sequencer.enqueue(session_id, resume)
        await events.log_event(
            session_id,
            owner,
            "session_resumed",
            f"Session resumed from question {session.current_question_number}",
            context={"current_question_number": session.current_question_number},
        )
        return ResumeResult(session=session, turns=turns)

    async def abandon_session(self, session_id: str, email: str) -> CoachingSession:
        """Discard the session once every queued append for it has landed."""
        owner = _require_email(email)
        _, _, _, pauses, _, events = self._require_setup()

        async def abandon() -> CoachingSession:
            return await pauses.abandon(session_id, owner)

        async with storage_errors():
            session = await self.sequencer.enqueue(session_id, abandon)
        await events.log_event(
            session_id,
            owner,
            "session_abandoned",
            f"Session abandoned at question {session.current_question_number}",
            context={"current_question_number": session.current_question_number},
        )
        return session

    async def complete_session(self, session_id: str, email: str) -> CoachingSession:
        owner = _require_email(email)
        _, _, machine, _, _, events = self._require_setup()

        async def complete() -> CoachingSession:
            session = await self._owned(session_id, owner)
            return await machine.complete(session)

        async with storage_errors():
            session = await self.sequencer.enqueue(session_id, complete)
        await events.log_event(session_id, owner, "session_completed", "Session completed")
        return session

    async def get_paused_sessions(self, email: str) -> list[CoachingSession]:
        pauses = self._require_setup()[3]
        async with storage_errors():
            return await pauses.get_paused_sessions(_require_email(email))

    async def log_event(
        self,
        session_id: str,
        email: str,
        event_type: str,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> bool:
        """Best-effort diagnostics; never raises."""
        events = self._require_setup()[5]
        try:
            await self._owned(session_id, email)
        except Exception:
            logger.warning("Dropping %s event for session %s", event_type, session_id, exc_info=True)
            return False
        return await events.log_event(session_id, email, event_type, message, code, context)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    async def validate_discount(
        self, code: str, email: str, product_kind: SessionKind | str
    ) -> DiscountDecision:
        if not code or not code.strip():
            raise InvalidRequest("Missing required fields")
        discounts = self._require_setup()[4]
        async with storage_errors():
            return await discounts.validate_and_reserve(code, _require_email(email), parse_kind(product_kind))

    async def _price(
        self, kind: SessionKind, owner: str, code_id: str | None
    ) -> PricingBreakdown:
        sessions, _, _, _, discounts, _ = self._require_setup()
        recent = await sessions.list_purchased_since(
            owner, self.clock() - self.config.upgrade_credit_window
        )
        percent: int | None = None
        if code_id:
            decision = await discounts.get_reservation(code_id, owner, kind)
            if not decision.accepted:
                assert decision.reason is not None and decision.message is not None
                raise DiscountRejected(decision.reason, decision.message)
            percent = decision.percent
        return self.pricing.resolve(kind, recent, promo_percent=percent, promo_code_id=code_id)

    async def estimate_price(
        self, product_kind: SessionKind | str, email: str, code_id: str | None = None
    ) -> PricingBreakdown:
        """Same breakdown checkout would charge; writes nothing."""
        kind = parse_kind(product_kind)
        async with storage_errors():
            return await self._price(kind, _require_email(email), code_id)

    async def create_checkout(
        self, product_kind: SessionKind | str, email: str, code_id: str | None = None
    ) -> CheckoutResult:
        """Create a pending session and hand payment collection to the processor.

        Raises ``SessionConflict`` while the owner has a resumable paused
        session; nothing is created in that case. A reserved promo code is
        spent by this checkout; reusing it raises ``DiscountRejected``.
        """
        kind = parse_kind(product_kind)
        owner = _require_email(email)
        sessions, _, _, pauses, discounts, _ = self._require_setup()

        async with storage_errors():
            conflict = await pauses.check_for_conflict(owner, kind)
            if conflict.paused_session is not None:
                raise SessionConflict(conflict.paused_session)
            pricing = await self._price(kind, owner, code_id)
            session_id = str(uuid.uuid4())
            if code_id and not await discounts.claim_reservation(code_id, owner, session_id):
                reason = DiscountRejectionReason.ALREADY_REDEEMED
                raise DiscountRejected(reason, REJECTION_MESSAGES[reason])
            session = await sessions.create(owner, kind, self.clock(), session_id=session_id)
        logger.info(
            "Created pending %s session %s for %s (final %d cents, %s)",
            kind.value,
            session.id,
            owner,
            pricing.final_cents,
            pricing.winner.value,
        )

        checkout = await self.gateway.create_checkout(session, pricing)
        async with storage_errors():
            await sessions.set_payment_reference(session.id, checkout.reference, self.clock())
            session = await self._owned(session.id, owner)
        logger.info("Checkout %s created for session %s", checkout.reference, session.id)
        return CheckoutResult(session=session, checkout_url=checkout.url, pricing=pricing)
