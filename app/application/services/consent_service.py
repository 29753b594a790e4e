"""Consent ledger — append-only opt-in/opt-out log and the current consent derived from it."""

from typing import Dict, Optional

import structlog

from app.core.clock import Clock, utc_now
from app.core.exceptions import InvalidRequestException
from app.core.logging import mask_phone
from app.domain.models.consent_record import CHANNELS, CONSENT_STATUSES, ConsentRecord
from app.domain.repositories.consent_repository import ConsentRepository

logger = structlog.get_logger(__name__)


class ConsentLedger:
    def __init__(self, repo: ConsentRepository, clock: Clock = utc_now):
        self.repo = repo
        self.clock = clock

    def record_consent(self, e164: str, channel: str, status: str, source: str = "unknown") -> ConsentRecord:
        if channel not in CHANNELS:
            raise InvalidRequestException(f"Invalid channel: {channel}")
        if status not in CONSENT_STATUSES:
            raise InvalidRequestException(f"Invalid consent status: {status}")

        record = self.repo.append(e164, channel, status, source, self.clock())
        logger.info("Consent recorded", e164=mask_phone(e164), channel=channel, status=status, source=source)
        return record

    def current_consent(self, e164: str) -> Dict[str, Optional[str]]:
        """Status of the latest record per channel; None when the channel has no record."""
        latest = self.repo.latest_by_channel(e164)
        return {channel: (latest[channel].status if channel in latest else None) for channel in CHANNELS}

    def consent_detail(self, e164: str) -> Dict[str, dict]:
        """Latest status and change time for each channel that has a record."""
        return {
            channel: {"status": record.status, "last_change_at": record.created_at}
            for channel, record in self.repo.latest_by_channel(e164).items()
        }
