"""Consent log — append-only opt-in/opt-out facts per (phone, channel)."""

from sqlalchemy import Column, Integer, String, DateTime, Index

from app.core.clock import utc_now
from app.infrastructure.database import Base

CHANNELS = ("sms", "whatsapp")
CONSENT_STATUSES = ("opt_in", "opt_out")


class ConsentRecord(Base):
    __tablename__ = "consent_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    e164 = Column(String(20), nullable=False)
    channel = Column(String(20), nullable=False)  # sms, whatsapp
    status = Column(String(20), nullable=False)  # opt_in, opt_out
    source = Column(String(50), nullable=False, default="unknown")  # sms_reply, admin
    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_consent_records_e164_channel_created", "e164", "channel", "created_at"),
    )

    def __repr__(self):
        return f"<ConsentRecord {self.e164} {self.channel}={self.status}>"
