"""Every inbound and outbound message body, tied to its session."""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey

from app.core.clock import utc_now
from app.infrastructure.database import Base


class OutreachMessage(Base):
    __tablename__ = "outreach_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("outreach_sessions.id"), nullable=False, index=True)
    direction = Column(String(3), nullable=False)  # in, out
    body = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)  # provider sid, message kind
    created_at = Column(DateTime, nullable=False, default=utc_now)

    def __repr__(self):
        return f"<OutreachMessage {self.session_id} {self.direction}>"
