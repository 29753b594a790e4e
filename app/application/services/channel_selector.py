"""Pick the outreach channel: WhatsApp when the contact can receive it and has not opted out, else SMS."""

import structlog

from app.application.services.consent_service import ConsentLedger
from app.core.logging import mask_phone
from app.domain.repositories.contact_repository import ContactRepository

logger = structlog.get_logger(__name__)


class ChannelSelector:
    def __init__(self, contacts: ContactRepository, ledger: ConsentLedger):
        self.contacts = contacts
        self.ledger = ledger

    def choose_channel(self, e164: str) -> str:
        contact = self.contacts.get_by_e164(e164)
        consent = self.ledger.current_consent(e164)

        if contact is not None and contact.wa_capable and consent["whatsapp"] != "opt_out":
            return "whatsapp"

        # SMS consent is deliberately not consulted here; see DESIGN.md (open questions)
        if consent["sms"] == "opt_out":
            logger.warning("SMS chosen for contact opted out of SMS", e164=mask_phone(e164))
        return "sms"
