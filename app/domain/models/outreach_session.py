"""Outreach session — one follow-up conversation, keyed to the missed call that started it."""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index

from app.core.clock import utc_now
from app.infrastructure.database import Base

SESSION_STATES = ("pending", "sent", "responded", "expired", "stopped")
ACTIVE_STATES = ("pending", "sent")


class OutreachSession(Base):
    __tablename__ = "outreach_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    call_sid = Column(String(64), unique=True, nullable=False)
    e164 = Column(String(20), nullable=False, index=True)
    channel = Column(String(20), nullable=False)  # sms, whatsapp
    state = Column(String(20), nullable=False, default="pending")
    meta = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    last_sent_at = Column(DateTime, nullable=True)
    followup_due_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_outreach_sessions_e164_state_created", "e164", "state", "created_at"),
        Index("ix_outreach_sessions_state_followup", "state", "followup_due_at"),
    )

    def __repr__(self):
        return f"<OutreachSession {self.id} {self.e164} {self.state}>"
