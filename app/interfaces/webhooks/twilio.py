"""Twilio webhooks — call status (missed-call trigger) and inbound SMS/WhatsApp messages.

Both endpoints acknowledge as soon as the signature checks out. Session and
consent changes run afterwards as detached background work.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.orm import sessionmaker
from twilio.twiml.messaging_response import MessagingResponse

from app.application.services.outreach_service import classify_reply, keyword_action
from app.config import Settings, get_settings
from app.core.logging import mask_phone
from app.core.phone import normalize_e164, split_channel_address
from app.core.tasks import run_detached
from app.infrastructure.signature import verify_twilio_signature
from app.infrastructure.twilio_api import TwilioAPIClient
from app.interfaces.deps import build_outreach_engine, get_session_factory, get_twilio_client

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


async def process_call_status(
    session_factory: sessionmaker,
    client,
    settings: Settings,
    call_sid: str,
    e164: str,
    meta: Dict[str, Any],
) -> None:
    db = session_factory()
    try:
        engine = build_outreach_engine(db, client, settings)
        await engine.on_missed_call(call_sid, e164, meta)
    finally:
        db.close()


async def process_inbound_message(
    session_factory: sessionmaker,
    client,
    settings: Settings,
    from_address: str,
    body: str,
) -> Optional[str]:
    """Apply STOP/START keywords, or route the reply to the caller's open session.

    Returns what happened: the consent action, the reply signal, or None when
    there was no session to reply to.
    """
    e164, channel = split_channel_address(from_address)
    log = logger.bind(e164=mask_phone(e164), channel=channel)

    db = session_factory()
    try:
        engine = build_outreach_engine(db, client, settings)

        action = keyword_action(body)
        if action:
            engine.apply_opt_status(e164, channel, action)
            return action

        session = engine.store.find_reply_target(e164)
        if session is None:
            log.info("No recent session for inbound message")
            return None

        signal = classify_reply(body)
        return await engine.handle_reply(session, signal, raw_text=body)
    finally:
        db.close()


@router.post("/voice/status")
async def voice_status_webhook(
    background_tasks: BackgroundTasks,
    form: dict = Depends(verify_twilio_signature),
    session_factory: sessionmaker = Depends(get_session_factory),
    client: TwilioAPIClient = Depends(get_twilio_client),
    settings: Settings = Depends(get_settings),
):
    """Call status callback. Missed inbound calls open an outreach session."""
    call_sid = form.get("CallSid", "")
    caller = normalize_e164(form.get("From"))

    if call_sid and caller:
        meta = {
            "call_status": form.get("CallStatus"),
            "call_duration": form.get("CallDuration"),
            "direction": form.get("Direction"),
            "to_number": form.get("To"),
        }
        background_tasks.add_task(
            run_detached, "missed_call", process_call_status,
            session_factory, client, settings, call_sid, caller, meta,
        )
    else:
        logger.warning("Call status callback without CallSid/From")

    return PlainTextResponse("ok")


@router.post("/messaging/twilio")
async def inbound_message_webhook(
    background_tasks: BackgroundTasks,
    form: dict = Depends(verify_twilio_signature),
    session_factory: sessionmaker = Depends(get_session_factory),
    client: TwilioAPIClient = Depends(get_twilio_client),
    settings: Settings = Depends(get_settings),
):
    """Inbound SMS or WhatsApp message. Always answered with empty TwiML."""
    sender = form.get("From", "")
    body = (form.get("Body") or "").strip()

    if sender:
        background_tasks.add_task(
            run_detached, "inbound_message", process_inbound_message,
            session_factory, client, settings, sender, body,
        )
    else:
        logger.warning("Inbound message without sender", message_sid=form.get("MessageSid"))

    return Response(content=str(MessagingResponse()), media_type="application/xml")
