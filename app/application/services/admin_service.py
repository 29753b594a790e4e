"""Session queries and manual actions for the admin API."""

from typing import Optional

from app.application.services.outreach_service import OutreachEngine
from app.core.exceptions import EntityNotFoundException
from app.domain.models.outreach_session import OutreachSession
from app.domain.schemas.outreach import (
    ConsentEntry,
    MessageRead,
    ReplyEventRead,
    SessionDetailRead,
    SessionDetailResponse,
    SessionListResponse,
    SessionRead,
)


def _get_session_or_404(engine: OutreachEngine, session_id: int) -> OutreachSession:
    session = engine.store.get(session_id)
    if session is None:
        raise EntityNotFoundException("Session not found", details={"session_id": session_id})
    return session


def list_sessions(
    engine: OutreachEngine,
    state: Optional[str] = None,
    e164: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> SessionListResponse:
    """Newest sessions first. ``next_offset`` is set only when the page came back full."""
    sessions = engine.store.list_sessions(state=state, e164=e164, limit=limit, offset=offset)
    return SessionListResponse(
        items=[SessionRead.model_validate(s) for s in sessions],
        next_offset=offset + limit if len(sessions) == limit else None,
    )


def get_session_detail(engine: OutreachEngine, session_id: int) -> SessionDetailResponse:
    session = _get_session_or_404(engine, session_id)
    messages = engine.store.timeline(session.id)
    consent = engine.ledger.consent_detail(session.e164)

    return SessionDetailResponse(
        session=SessionDetailRead.model_validate(session),
        messages=[MessageRead.model_validate(m) for m in messages],
        reply_events=[ReplyEventRead.model_validate(e) for e in engine.store.reply_events(session.id)],
        consent={channel: ConsentEntry(**entry) for channel, entry in consent.items()},
    )


async def resend_initial(engine: OutreachEngine, session_id: int) -> None:
    session = _get_session_or_404(engine, session_id)
    await engine.resend_initial(session)


def cancel_session(engine: OutreachEngine, session_id: int) -> bool:
    """Stop a pending or sent session. Terminal sessions are left as they are."""
    session = _get_session_or_404(engine, session_id)
    return engine.store.mark_stopped(session.id)


def set_consent(engine: OutreachEngine, e164: str, channel: str, action: str) -> None:
    engine.apply_opt_status(e164, channel, action, source="admin")
