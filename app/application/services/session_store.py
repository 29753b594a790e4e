"""Session store — idempotent creation, dedup windows and lifecycle transitions for outreach sessions."""

from datetime import timedelta
from typing import Any, Dict, List, Optional

import structlog

from app.application.services.channel_selector import ChannelSelector
from app.core.clock import Clock, utc_now
from app.core.exceptions import InvalidRequestException
from app.domain.models.outreach_session import ACTIVE_STATES, SESSION_STATES, OutreachSession
from app.domain.models.reply_event import REPLY_SIGNALS
from app.domain.repositories.session_repository import OutreachSessionRepository

logger = structlog.get_logger(__name__)


class SessionStore:
    """
    Lifecycle:
        pending -> sent -> responded
        sent -> expired          (follow-up sweep)
        pending|sent -> stopped  (admin cancel)
    """

    def __init__(
        self,
        repo: OutreachSessionRepository,
        selector: ChannelSelector,
        clock: Clock = utc_now,
        dedup_hours: int = 24,
        reply_window_hours: int = 48,
        followup_delay_hours: int = 2,
    ):
        self.repo = repo
        self.selector = selector
        self.clock = clock
        self.dedup_window = timedelta(hours=dedup_hours)
        self.reply_window = timedelta(hours=reply_window_hours)
        self.followup_delay = timedelta(hours=followup_delay_hours)

    def create_or_get_session(self, call_sid: str, e164: str, meta: Optional[Dict[str, Any]] = None) -> OutreachSession:
        existing = self.repo.get_by_call_sid(call_sid)
        if existing is not None:
            return existing

        channel = self.selector.choose_channel(e164)
        session = self.repo.insert_if_absent(call_sid, e164, channel, meta or {}, self.clock())
        logger.info("Session ready", session_id=session.id, call_sid=call_sid, channel=session.channel)
        return session

    def may_send_initial(self, e164: str) -> bool:
        """No pending/sent session for this number in the dedup window. Check-then-act, not locked."""
        cutoff = self.clock() - self.dedup_window
        return self.repo.latest_for_e164(e164, ACTIVE_STATES, cutoff) is None

    def find_reply_target(self, e164: str) -> Optional[OutreachSession]:
        cutoff = self.clock() - self.reply_window
        return self.repo.latest_for_e164(e164, ACTIVE_STATES, cutoff)

    def get(self, session_id: int) -> Optional[OutreachSession]:
        return self.repo.get_by_id(session_id)

    def list_sessions(
        self, state: Optional[str] = None, e164: Optional[str] = None, limit: int = 50, offset: int = 0
    ) -> List[OutreachSession]:
        if state is not None and state not in SESSION_STATES:
            raise InvalidRequestException(f"Invalid session state: {state}")
        return self.repo.list_with_filters(state, e164, limit, offset)

    def mark_sent(self, session_id: int) -> Optional[OutreachSession]:
        now = self.clock()
        return self.repo.update_fields(
            session_id,
            state="sent",
            last_sent_at=now,
            followup_due_at=now + self.followup_delay,
        )

    def touch_sent(self, session_id: int) -> Optional[OutreachSession]:
        """Record a resend without moving the session through the lifecycle."""
        now = self.clock()
        return self.repo.update_fields(
            session_id,
            last_sent_at=now,
            followup_due_at=now + self.followup_delay,
        )

    def mark_responded(self, session_id: int) -> Optional[OutreachSession]:
        return self.repo.update_fields(session_id, state="responded")

    def mark_expired(self, session_id: int) -> bool:
        return self.repo.update_state_if(session_id, ("sent",), "expired")

    def mark_stopped(self, session_id: int) -> bool:
        return self.repo.update_state_if(session_id, ACTIVE_STATES, "stopped")

    def due_for_followup(self, now=None) -> List[OutreachSession]:
        return self.repo.list_due(now or self.clock())

    def log_message(self, session_id: int, direction: str, body: str, payload: Optional[Dict[str, Any]] = None):
        return self.repo.add_message(session_id, direction, body, payload, self.clock())

    def log_reply_event(self, session_id: int, signal: str):
        if signal not in REPLY_SIGNALS:
            raise ValueError(f"Unknown reply signal: {signal}")
        return self.repo.add_reply_event(session_id, signal, self.clock())

    def timeline(self, session_id: int):
        return self.repo.list_messages(session_id)

    def reply_events(self, session_id: int):
        return self.repo.list_reply_events(session_id)
