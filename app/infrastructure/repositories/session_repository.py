"""
SQLAlchemy Implementation of Outreach Session Repository.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from app.domain.models.outreach_session import OutreachSession
from app.domain.models.outreach_message import OutreachMessage
from app.domain.models.reply_event import ReplyEvent
from app.domain.repositories.session_repository import OutreachSessionRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def escape_like(value: str) -> str:
    """Make LIKE wildcards in user input match literally (escape char: backslash)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLAlchemyOutreachSessionRepository(SQLAlchemyRepository[OutreachSession], OutreachSessionRepository):
    """Session repository implementation using SQLAlchemy."""

    def insert_if_absent(
        self, call_sid: str, e164: str, channel: str, meta: Dict[str, Any], created_at: datetime
    ) -> OutreachSession:
        values = {
            "call_sid": call_sid,
            "e164": e164,
            "channel": channel,
            "state": "pending",
            "meta": meta or {},
            "created_at": created_at,
        }

        dialect_insert = _UPSERT_DIALECTS.get(self.db.get_bind().dialect.name)
        if dialect_insert is not None:
            stmt = dialect_insert(OutreachSession).values(**values).on_conflict_do_nothing(
                index_elements=["call_sid"]
            )
            self.db.execute(stmt)
            self.db.commit()
        else:
            # Other backends: rely on the unique constraint
            try:
                self.db.add(OutreachSession(**values))
                self.db.commit()
            except IntegrityError:
                self.db.rollback()

        return self.get_by_call_sid(call_sid)

    def get_by_call_sid(self, call_sid: str) -> Optional[OutreachSession]:
        return (
            self.db.query(OutreachSession)
            .filter(OutreachSession.call_sid == call_sid)
            .first()
        )

    def latest_for_e164(
        self, e164: str, states: Sequence[str], created_since: datetime
    ) -> Optional[OutreachSession]:
        return (
            self.db.query(OutreachSession)
            .filter(
                OutreachSession.e164 == e164,
                OutreachSession.state.in_(states),
                OutreachSession.created_at > created_since,
            )
            .order_by(OutreachSession.created_at.desc(), OutreachSession.id.desc())
            .first()
        )

    def update_fields(self, session_id: int, **fields: Any) -> Optional[OutreachSession]:
        session = self.get_by_id(session_id)
        if session is None:
            return None
        for field, value in fields.items():
            setattr(session, field, value)
        self.db.commit()
        self.db.refresh(session)
        return session

    def update_state_if(self, session_id: int, from_states: Sequence[str], to_state: str) -> bool:
        changed = (
            self.db.query(OutreachSession)
            .filter(
                OutreachSession.id == session_id,
                OutreachSession.state.in_(from_states),
            )
            .update({OutreachSession.state: to_state}, synchronize_session="fetch")
        )
        self.db.commit()
        return changed > 0

    def list_due(self, now: datetime) -> List[OutreachSession]:
        return (
            self.db.query(OutreachSession)
            .filter(
                OutreachSession.state == "sent",
                OutreachSession.followup_due_at.isnot(None),
                OutreachSession.followup_due_at <= now,
            )
            .order_by(OutreachSession.followup_due_at.asc(), OutreachSession.id.asc())
            .all()
        )

    def list_with_filters(
        self, state: Optional[str], e164_contains: Optional[str], limit: int, offset: int
    ) -> List[OutreachSession]:
        query = self.db.query(OutreachSession)

        if state:
            query = query.filter(OutreachSession.state == state)
        if e164_contains:
            pattern = f"%{escape_like(e164_contains)}%"
            query = query.filter(OutreachSession.e164.ilike(pattern, escape="\\"))

        return (
            query.order_by(OutreachSession.created_at.desc(), OutreachSession.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def add_message(
        self, session_id: int, direction: str, body: str, payload: Optional[Dict[str, Any]], created_at: datetime
    ) -> OutreachMessage:
        message = OutreachMessage(
            session_id=session_id,
            direction=direction,
            body=body,
            payload=payload,
            created_at=created_at,
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def list_messages(self, session_id: int) -> List[OutreachMessage]:
        return (
            self.db.query(OutreachMessage)
            .filter(OutreachMessage.session_id == session_id)
            .order_by(OutreachMessage.created_at.asc(), OutreachMessage.id.asc())
            .all()
        )

    def add_reply_event(self, session_id: int, signal: str, created_at: datetime) -> ReplyEvent:
        event = ReplyEvent(session_id=session_id, signal=signal, created_at=created_at)
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def list_reply_events(self, session_id: int) -> List[ReplyEvent]:
        return (
            self.db.query(ReplyEvent)
            .filter(ReplyEvent.session_id == session_id)
            .order_by(ReplyEvent.created_at.asc(), ReplyEvent.id.asc())
            .all()
        )
