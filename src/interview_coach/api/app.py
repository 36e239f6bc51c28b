"""FastAPI application -- HTTP transport for the coaching core."""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from interview_coach import __version__
from interview_coach.api.routes import checkout, discounts, sessions
from interview_coach.api.schemas import SessionOut
from interview_coach.config import CoachConfig
from interview_coach.errors import (
    AbandonFailed,
    CoachError,
    DiscountRejected,
    SessionConflict,
)
from interview_coach.service import CoachService

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[str, int] = {
    "invalid_request": 400,
    "unauthorized": 401,
    "not_found": 404,
    "invalid_transition": 409,
    "conflict": 409,
    "expired": 410,
    "payment_unavailable": 502,
    "transient_io": 503,
}


async def handle_coach_error(request: Request, exc: CoachError) -> JSONResponse:
    """Map a core failure onto a response by its ``code``."""
    if isinstance(exc, AbandonFailed):
        return JSONResponse(
            {"ok": False, "already_resolved": True, "status": exc.status.value, "detail": str(exc)}
        )
    if isinstance(exc, DiscountRejected):
        return JSONResponse(
            {"error": exc.code, "detail": str(exc)}, status_code=422
        )

    status = STATUS_BY_CODE.get(exc.code, 500)
    body: dict = {"error": exc.code, "detail": str(exc)}
    if isinstance(exc, SessionConflict):
        body["session"] = SessionOut.from_session(exc.session).model_dump(mode="json")
    if status >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(body, status_code=status)


def create_app(config: CoachConfig | None = None, service: CoachService | None = None) -> FastAPI:
    config = config or CoachConfig()
    service = service or CoachService(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await service.setup()
        logger.info("Coaching service ready (db=%s)", config.db_path)
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(
        title="Interview Coach API",
        version=__version__,
        description="Session lifecycle, transcripts and checkout for interview coaching.",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CoachError, handle_coach_error)

    app.include_router(sessions.router)
    app.include_router(discounts.router)
    app.include_router(checkout.router)

    @app.get("/health")
    async def health():
        """Unauthenticated health-check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()
