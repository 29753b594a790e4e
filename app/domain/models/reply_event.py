"""Audit of classified inbound reply signals."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from app.core.clock import utc_now
from app.infrastructure.database import Base

REPLY_SIGNALS = ("call_request", "booking_request", "note")


class ReplyEvent(Base):
    __tablename__ = "reply_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("outreach_sessions.id"), nullable=False, index=True)
    signal = Column(String(30), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return f"<ReplyEvent {self.session_id} {self.signal}>"
