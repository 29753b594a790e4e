"""Outreach engine — missed-call follow-up over SMS or WhatsApp.

Features:
- Missed-call detection from call status callbacks (inbound only)
- 24h per-number dedup before a new conversation is opened
- Channel-specific opening message with numbered options
- Reply dispatch: callback bridge, booking link, or note
- Follow-up sweep that nudges silent sessions once and expires them
"""

from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

import structlog

from app.application.services.consent_service import ConsentLedger
from app.application.services.session_store import SessionStore
from app.config import Settings
from app.core.clock import Clock, utc_now
from app.core.exceptions import BusinessRuleViolationException
from app.core.logging import mask_phone
from app.domain.gateways import MessageReceipt, MessagingGateway, TelephonyGateway, WhatsAppOptions
from app.domain.models.outreach_session import OutreachSession
from app.domain.repositories.contact_repository import ContactRepository
from app.infrastructure.twilio_api import bridge_twiml

logger = structlog.get_logger(__name__)

MISSED_CALL_STATUSES = {"no-answer", "busy", "failed"}

STOP_KEYWORDS = {"stop", "stopall", "unsubscribe", "cancel", "end", "quit"}
START_KEYWORDS = {"start", "unstop", "subscribe", "yes"}

REPLY_SIGNAL_ALIASES = {
    "1": {"1", "call", "call now"},
    "2": {"2", "book", "book time", "schedule"},
    "3": {"3", "note", "leave note", "message"},
}

INITIAL_OPTIONS = ["Call now", "Book time", "Leave note"]
FOLLOWUP_NUDGE_TEXT = "Still need help? Reply here or call us back any time."


def is_missed_call(status: Optional[str], duration_seconds: Any, direction: Optional[str], max_seconds: int = 45) -> bool:
    """No-answer, busy or failed, or answered but shorter than ``max_seconds``. Inbound calls only."""
    if (direction or "").lower() != "inbound":
        return False
    status = (status or "").lower()
    if status in MISSED_CALL_STATUSES:
        return True
    try:
        duration = int(duration_seconds or 0)
    except (TypeError, ValueError):
        duration = 0
    return status == "completed" and duration < max_seconds


def keyword_action(text: str) -> Optional[str]:
    """Consent action for carrier-style STOP/START keywords, None for anything else."""
    normalized = (text or "").strip().lower()
    if normalized in STOP_KEYWORDS:
        return "opt_out"
    if normalized in START_KEYWORDS:
        return "opt_in"
    return None


def classify_reply(text: str) -> str:
    """Map free text onto the coarse signals "1", "2", "3"; unknown text passes through."""
    normalized = (text or "").strip().lower()
    for signal, aliases in REPLY_SIGNAL_ALIASES.items():
        if normalized in aliases:
            return signal
    return (text or "").strip()


class OutreachEngine:
    def __init__(
        self,
        store: SessionStore,
        ledger: ConsentLedger,
        contacts: ContactRepository,
        messaging: MessagingGateway,
        telephony: TelephonyGateway,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.ledger = ledger
        self.contacts = contacts
        self.messaging = messaging
        self.telephony = telephony
        self.settings = settings
        self.clock = clock

    async def on_missed_call(self, call_sid: str, e164: str, meta: Dict[str, Any]) -> Optional[OutreachSession]:
        """
        Open a conversation for a missed inbound call.

        Never raises: the telephony callback that triggered this must not fail
        because outreach did.
        """
        log = logger.bind(call_sid=call_sid, e164=mask_phone(e164))

        if not is_missed_call(
            meta.get("call_status"),
            meta.get("call_duration"),
            meta.get("direction"),
            self.settings.MISSED_CALL_MAX_SECONDS,
        ):
            log.debug("Call not missed, no outreach", status=meta.get("call_status"))
            return None

        try:
            if not self.store.may_send_initial(e164):
                log.info("Skipping outreach, recent session exists")
                return None

            session = self.store.create_or_get_session(call_sid, e164, meta)
            if session.state != "pending":
                log.info("Session already past pending", session_id=session.id, state=session.state)
                return session

            await self.send_initial(session)
            return session
        except Exception:
            log.exception("Missed-call outreach failed")
            return None

    def _compose_initial(self, session: OutreachSession) -> Union[WhatsAppOptions, str]:
        contact = self.contacts.get_by_e164(session.e164)
        first_name = (contact.first_name if contact else None) or "there"
        business = self.settings.BUSINESS_NAME

        if session.channel == "whatsapp":
            return WhatsAppOptions(
                body=f"Hi {first_name}, you just tried {business}. How can we help?",
                buttons=list(INITIAL_OPTIONS),
            )
        return (
            f"Hi {first_name}, you just tried {business}. "
            "Reply 1) Call now 2) Book time 3) Leave a note. Reply STOP to opt out."
        )

    async def _deliver_initial(self, session: OutreachSession) -> MessageReceipt:
        message = self._compose_initial(session)
        if session.channel == "whatsapp":
            receipt = await self.messaging.send_whatsapp(session.e164, message)
        else:
            receipt = await self.messaging.send_sms(session.e164, message)

        self.store.log_message(
            session.id, "out", receipt.body, {"kind": "initial", "message_sid": receipt.sid}
        )
        return receipt

    async def send_initial(self, session: OutreachSession) -> MessageReceipt:
        """Send the opening message. On a send failure the session stays pending and the error propagates."""
        receipt = await self._deliver_initial(session)
        self.store.mark_sent(session.id)
        logger.info("Initial outreach sent", session_id=session.id, channel=session.channel)
        return receipt

    async def resend_initial(self, session: OutreachSession) -> MessageReceipt:
        """Admin resend. Only a pending session moves to sent; other states keep their state."""
        if session.state == "stopped":
            raise BusinessRuleViolationException(
                "Session was cancelled", details={"session_id": session.id}
            )
        if session.state == "pending":
            return await self.send_initial(session)

        receipt = await self._deliver_initial(session)
        self.store.touch_sent(session.id)
        logger.info("Initial outreach resent", session_id=session.id, state=session.state)
        return receipt

    async def _send_text(self, session: OutreachSession, text: str) -> MessageReceipt:
        if session.channel == "whatsapp":
            return await self.messaging.send_whatsapp(session.e164, text)
        return await self.messaging.send_sms(session.e164, text)

    def booking_url(self, e164: str) -> str:
        query = urlencode({"src": self.settings.BOOKING_SOURCE, "n": e164})
        return f"{self.settings.BASE_URL.rstrip('/')}/book?{query}"

    async def handle_reply(self, session: OutreachSession, signal_or_text: str, raw_text: Optional[str] = None) -> str:
        """
        Act on a classified reply and close the automated flow.

        "1" bridges a call to the business, "2" sends the booking link, anything
        else is kept as a note. Returns the recorded reply signal. Errors
        propagate to the caller; the session is then left as it was.
        """
        signal = str(signal_or_text).strip().lower()
        body = raw_text if raw_text is not None else str(signal_or_text)
        self.store.log_message(session.id, "in", body, {"kind": "reply"})

        if signal == "1":
            await self._request_callback(session)
            event = "call_request"
        elif signal == "2":
            await self._send_booking_link(session)
            event = "booking_request"
        else:
            event = "note"

        self.store.log_reply_event(session.id, event)
        self.store.mark_responded(session.id)
        logger.info("Reply handled", session_id=session.id, signal=event)
        return event

    async def _request_callback(self, session: OutreachSession) -> None:
        target = self.settings.BUSINESS_TARGET_E164
        if not target:
            logger.warning("BUSINESS_TARGET_E164 not configured, callback not placed", session_id=session.id)
            return
        handle = await self.telephony.start_outbound(session.e164, bridge_twiml(target))
        logger.info("Callback bridge placed", session_id=session.id, call_sid=handle.sid)

    async def _send_booking_link(self, session: OutreachSession) -> None:
        text = f"Book your appointment here: {self.booking_url(session.e164)}"
        receipt = await self._send_text(session, text)
        self.store.log_message(session.id, "out", text, {"kind": "booking_link", "message_sid": receipt.sid})

    def apply_opt_status(self, e164: str, channel: str, action: str, source: str = "sms_reply"):
        return self.ledger.record_consent(e164, channel, action, source=source)

    async def run_due_followups(self, now=None) -> int:
        """Nudge every due session once and expire it. Returns the number nudged."""
        now = now or self.clock()
        due = self.store.due_for_followup(now)
        nudged = 0

        for session in due:
            try:
                receipt = await self._send_text(session, FOLLOWUP_NUDGE_TEXT)
                self.store.log_message(
                    session.id, "out", FOLLOWUP_NUDGE_TEXT, {"kind": "followup_nudge", "message_sid": receipt.sid}
                )
                self.store.mark_expired(session.id)
                nudged += 1
            except Exception:
                logger.exception("Follow-up failed", session_id=session.id)

        logger.info("Follow-up sweep finished", due=len(due), nudged=nudged)
        return nudged
