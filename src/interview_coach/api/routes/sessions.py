"""Session lifecycle and transcript endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from interview_coach.api.auth import verify_token
from interview_coach.api.deps import get_service
from interview_coach.api.schemas import (
    AppendOut,
    DocumentsIn,
    EmailBody,
    EventIn,
    HistoryOut,
    PauseIn,
    ResumeOut,
    SessionOut,
    TurnIn,
    TurnOut,
)
from interview_coach.errors import SessionExpired
from interview_coach.service import CoachService
from interview_coach.types import SessionDocuments

router = APIRouter(prefix="/api/sessions", tags=["sessions"], dependencies=[Depends(verify_token)])


# Registered before /{session_id} so "paused" is not taken for an id.
@router.get("/paused")
async def list_paused(email: str, service: CoachService = Depends(get_service)):
    """Resumable paused sessions for *email*, most recent first."""
    sessions = await service.get_paused_sessions(email)
    return {"sessions": [SessionOut.from_session(s) for s in sessions]}


@router.get("/{session_id}", response_model=SessionOut)
async def get_session(session_id: str, email: str, service: CoachService = Depends(get_service)):
    return SessionOut.from_session(await service.get_session(session_id, email))


@router.put("/{session_id}/documents", response_model=SessionOut)
async def save_documents(
    session_id: str, body: DocumentsIn, service: CoachService = Depends(get_service)
):
    """Store the interview inputs so a resume link can restore them."""
    documents = SessionDocuments(
        first_name=body.first_name,
        resume=body.resume,
        job_description=body.job_description,
        company_url=body.company_url,
    )
    session = await service.save_documents(session_id, body.email, documents)
    return SessionOut.from_session(session)


@router.post("/{session_id}/turns", response_model=AppendOut)
async def append_turn(session_id: str, body: TurnIn, service: CoachService = Depends(get_service)):
    result = await service.append_turn(
        session_id, body.email, body.role, body.content, body.question_number
    )
    return AppendOut(
        position=result.turn.position,
        question_number=result.turn.question_number,
        duplicate=result.duplicate,
    )


@router.get("/{session_id}/history", response_model=HistoryOut)
async def get_history(session_id: str, email: str, service: CoachService = Depends(get_service)):
    turns = await service.get_history(session_id, email)
    return HistoryOut(turns=[TurnOut.from_turn(t) for t in turns])


@router.post("/{session_id}/start", response_model=SessionOut)
async def start_session(session_id: str, body: EmailBody, service: CoachService = Depends(get_service)):
    return SessionOut.from_session(await service.start_session(session_id, body.email))


@router.post("/{session_id}/pause")
async def pause_session(session_id: str, body: PauseIn, service: CoachService = Depends(get_service)):
    session = await service.pause_session(session_id, body.email, body.question_number)
    return {"ok": True, "session": SessionOut.from_session(session)}


@router.post("/{session_id}/resume", response_model=ResumeOut)
async def resume_session(session_id: str, body: EmailBody, service: CoachService = Depends(get_service)):
    try:
        result = await service.resume_session(session_id, body.email)
    except SessionExpired:
        return ResumeOut(ok=False, expired=True)
    return ResumeOut(
        session=SessionOut.from_session(result.session),
        turns=[TurnOut.from_turn(t) for t in result.turns],
    )


@router.post("/{session_id}/abandon")
async def abandon_session(session_id: str, body: EmailBody, service: CoachService = Depends(get_service)):
    session = await service.abandon_session(session_id, body.email)
    return {"ok": True, "session": SessionOut.from_session(session)}


@router.post("/{session_id}/complete")
async def complete_session(session_id: str, body: EmailBody, service: CoachService = Depends(get_service)):
    session = await service.complete_session(session_id, body.email)
    return {"ok": True, "session": SessionOut.from_session(session)}


@router.post("/{session_id}/events")
async def log_event(session_id: str, body: EventIn, service: CoachService = Depends(get_service)):
    """Diagnostics from the client. Always answers ``ok``."""
    await service.log_event(
        session_id, body.email, body.event_type, body.message, body.code, body.context
    )
    return {"ok": True}
