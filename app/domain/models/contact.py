"""Contact reference data — callers known to the business, keyed by E.164 number."""

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.sql import func

from app.infrastructure.database import Base


class Contact(Base):
    __tablename__ = "contacts"

    e164 = Column(String(20), primary_key=True)
    first_name = Column(String(100), nullable=True)
    wa_capable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<Contact {self.e164} wa={self.wa_capable}>"
