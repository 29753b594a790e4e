"""Outreach admin API routes — session list/detail, resend, cancel and consent overrides."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.interfaces.api.deps import require_admin_token
from app.interfaces.deps import get_outreach_engine
from app.application.services.outreach_service import OutreachEngine
from app.application.services import admin_service
from app.core.phone import normalize_e164
from app.domain.schemas.outreach import (
    ConsentUpdateRequest,
    OkResponse,
    SessionDetailResponse,
    SessionListResponse,
    SessionState,
)

router = APIRouter(
    prefix="/api/outreach",
    tags=["Outreach Admin"],
    dependencies=[Depends(require_admin_token)],
)


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    state: Optional[SessionState] = None,
    e164: Optional[str] = Query(None, description="Substring of the caller number"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    engine: OutreachEngine = Depends(get_outreach_engine),
):
    return admin_service.list_sessions(engine, state=state, e164=e164, limit=limit, offset=offset)


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
def get_session(
    session_id: int,
    engine: OutreachEngine = Depends(get_outreach_engine),
):
    """Session with its message timeline and the caller's current consent."""
    return admin_service.get_session_detail(engine, session_id)


@router.post("/sessions/{session_id}/actions/resend-initial", response_model=OkResponse)
async def resend_initial(
    session_id: int,
    engine: OutreachEngine = Depends(get_outreach_engine),
):
    await admin_service.resend_initial(engine, session_id)
    return OkResponse()


@router.post("/sessions/{session_id}/actions/cancel", response_model=OkResponse)
def cancel_session(
    session_id: int,
    engine: OutreachEngine = Depends(get_outreach_engine),
):
    admin_service.cancel_session(engine, session_id)
    return OkResponse()


@router.post("/consent", response_model=OkResponse)
def set_consent(
    body: ConsentUpdateRequest,
    engine: OutreachEngine = Depends(get_outreach_engine),
):
    admin_service.set_consent(engine, normalize_e164(body.e164), body.channel, body.action)
    return OkResponse()
