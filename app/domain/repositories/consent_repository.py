"""Consent Repository Interface."""

from typing import Dict

from app.domain.repositories.base import BaseRepository
from app.domain.models.consent_record import ConsentRecord


class ConsentRepository(BaseRepository[ConsentRecord]):
    """Append-only consent log."""

    def append(self, e164: str, channel: str, status: str, source: str, created_at) -> ConsentRecord:
        """Append a consent fact."""
        ...

    def latest_by_channel(self, e164: str) -> Dict[str, ConsentRecord]:
        """Latest record per channel for a phone number."""
        ...
