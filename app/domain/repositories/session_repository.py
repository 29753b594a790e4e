"""
Outreach Session Repository Interface.
Defines session persistence plus the message and reply-event logs hanging off a session.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from app.domain.repositories.base import BaseRepository
from app.domain.models.outreach_session import OutreachSession
from app.domain.models.outreach_message import OutreachMessage
from app.domain.models.reply_event import ReplyEvent


class OutreachSessionRepository(BaseRepository[OutreachSession]):
    """Interface for session-specific operations."""

    def insert_if_absent(
        self, call_sid: str, e164: str, channel: str, meta: Dict[str, Any], created_at: datetime
    ) -> OutreachSession:
        """Insert keyed by call_sid; on conflict return the existing row untouched."""
        ...

    def get_by_call_sid(self, call_sid: str) -> Optional[OutreachSession]:
        ...

    def latest_for_e164(
        self, e164: str, states: Sequence[str], created_since: datetime
    ) -> Optional[OutreachSession]:
        """Most recently created session for e164 in one of the states, created after the cutoff."""
        ...

    def update_fields(self, session_id: int, **fields: Any) -> Optional[OutreachSession]:
        """Single-row update; returns None when the session does not exist."""
        ...

    def update_state_if(self, session_id: int, from_states: Sequence[str], to_state: str) -> bool:
        """Conditional state transition; True when a row changed."""
        ...

    def list_due(self, now: datetime) -> List[OutreachSession]:
        """Sent sessions whose follow-up is due."""
        ...

    def list_with_filters(
        self, state: Optional[str], e164_contains: Optional[str], limit: int, offset: int
    ) -> List[OutreachSession]:
        """Newest first."""
        ...

    def add_message(
        self, session_id: int, direction: str, body: str, payload: Optional[Dict[str, Any]], created_at: datetime
    ) -> OutreachMessage:
        ...

    def list_messages(self, session_id: int) -> List[OutreachMessage]:
        """Oldest first."""
        ...

    def add_reply_event(self, session_id: int, signal: str, created_at: datetime) -> ReplyEvent:
        ...

    def list_reply_events(self, session_id: int) -> List[ReplyEvent]:
        ...
