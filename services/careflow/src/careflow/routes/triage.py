"""Triage session API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from services.careflow.src.careflow.core.sessions import (
    SessionExistsError,
    SessionNotFoundError,
    SessionStore,
    session_store,
)
from services.careflow.src.careflow.schemas.responses import (
    CreateSessionRequest,
    MessageResponse,
    RiskResponse,
    SBARResponse,
    SendMessageRequest,
    SessionResponse,
    TurnResponse,
)
from services.careflow.src.careflow.triage.report import strip_completion_marker
from services.careflow.src.careflow.triage.session import START_SESSION, TriageSession

logger = logging.getLogger(__name__)

router = APIRouter()

TURN_FAILED_MESSAGE = "Sorry, I encountered an error. Please try again."


def _store() -> SessionStore:
    return session_store


def _get_session(store: SessionStore, session_id: str) -> TriageSession:
    try:
        return store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")


def _session_response(session: TriageSession) -> SessionResponse:
    ctx = session.context
    risk = None
    if ctx.risk is not None:
        risk = RiskResponse(
            tier=ctx.risk.tier.value,
            label=ctx.risk.label,
            advice=ctx.risk.advice,
            color=ctx.risk.color,
            rationale=ctx.rationale,
        )
    return SessionResponse(
        id=session.session_id,
        state=session.state.value,
        is_complete=session.is_complete,
        messages=[MessageResponse(role=m.role.value, text=m.text) for m in session.messages],
        red_flags=list(ctx.red_flags),
        risk=risk,
        summary=session.summary,
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

@router.post("/sessions", response_model=SessionResponse)
async def create_session(
    body: CreateSessionRequest | None = None,
    store: SessionStore = Depends(_store),
) -> SessionResponse:
    """Create a triage session and return it with the opening greeting."""
    try:
        session = store.create(session_id=body.session_id if body else None)
    except SessionExistsError as exc:
        raise HTTPException(409, str(exc))

    await session.process_message(START_SESSION)
    return _session_response(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str,
    store: SessionStore = Depends(_store),
) -> SessionResponse:
    """Get the transcript and status of a session."""
    return _session_response(_get_session(store, session_id))


@router.post("/sessions/{session_id}/reset", response_model=SessionResponse)
async def reset_session(
    session_id: str,
    store: SessionStore = Depends(_store),
) -> SessionResponse:
    """Start the conversation over in the same session."""
    _get_session(store, session_id)
    async with store.lock_for(session_id):
        session = store.reset(session_id)
        await session.process_message(START_SESSION)
    return _session_response(session)


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(
    session_id: str,
    store: SessionStore = Depends(_store),
) -> Response:
    """Destroy a session."""
    try:
        store.destroy(session_id)
    except SessionNotFoundError:
        raise HTTPException(404, "Session not found")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/messages", response_model=TurnResponse)
async def send_message(
    session_id: str,
    body: SendMessageRequest,
    store: SessionStore = Depends(_store),
) -> TurnResponse:
    """Process one patient turn and return the assistant reply."""
    session = _get_session(store, session_id)
    if not body.content.strip():
        raise HTTPException(400, "Message content is empty")

    async with store.lock_for(session_id):
        try:
            result = await session.process_message(body.content)
        except Exception as exc:
            logger.error("turn_failed", extra={
                "session_id": session_id, "error": str(exc),
            })
            return TurnResponse(
                session_id=session_id,
                text=TURN_FAILED_MESSAGE,
                is_complete=False,
                state=session.state.value,
            )

    logger.info("message_processed", extra={
        "session_id": session_id,
        "state": session.state.value,
        "is_complete": result.is_complete,
    })

    return TurnResponse(
        session_id=session_id,
        text=strip_completion_marker(result.text),
        is_complete=result.is_complete,
        state=session.state.value,
        summary=session.summary,
    )


# ---------------------------------------------------------------------------
# Handoff
# ---------------------------------------------------------------------------

@router.get("/sessions/{session_id}/sbar", response_model=SBARResponse)
def get_sbar(
    session_id: str,
    store: SessionStore = Depends(_store),
) -> SBARResponse:
    """SBAR handoff summary; only available once the session is complete."""
    session = _get_session(store, session_id)
    if not session.is_complete:
        raise HTTPException(409, "Triage is not complete yet")
    return SBARResponse(session_id=session_id, summary=session.generate_sbar())
