"""
SQLAlchemy Implementation of Consent Repository.
"""

from datetime import datetime
from typing import Dict

from app.domain.models.consent_record import CHANNELS, ConsentRecord
from app.domain.repositories.consent_repository import ConsentRepository
from app.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyConsentRepository(SQLAlchemyRepository[ConsentRecord], ConsentRepository):
    """Consent log backed by the consent_records table. Rows are only ever inserted."""

    def append(self, e164: str, channel: str, status: str, source: str, created_at: datetime) -> ConsentRecord:
        return self.create({
            "e164": e164,
            "channel": channel,
            "status": status,
            "source": source,
            "created_at": created_at,
        })

    def latest_by_channel(self, e164: str) -> Dict[str, ConsentRecord]:
        """Latest record per channel; ties on created_at are broken by insertion order."""
        latest: Dict[str, ConsentRecord] = {}
        for channel in CHANNELS:
            record = (
                self.db.query(ConsentRecord)
                .filter(ConsentRecord.e164 == e164, ConsentRecord.channel == channel)
                .order_by(ConsentRecord.created_at.desc(), ConsentRecord.id.desc())
                .first()
            )
            if record is not None:
                latest[channel] = record
        return latest
