"""
Gateway contracts the outreach engine depends on.
The Twilio client implements both; tests substitute recording fakes.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, Union


@dataclass
class WhatsAppOptions:
    """Lightweight "options" message: a body plus quick-reply buttons."""
    body: str
    buttons: list[str] = field(default_factory=list)


@dataclass
class MessageReceipt:
    sid: str
    body: str
    to: str
    status: Optional[str] = None


@dataclass
class CallHandle:
    sid: str
    to: str
    status: Optional[str] = None


class MessagingGateway(Protocol):
    async def send_sms(self, e164: str, text: str) -> MessageReceipt:
        ...

    async def send_whatsapp(self, e164: str, message: Union[WhatsAppOptions, str]) -> MessageReceipt:
        ...


class TelephonyGateway(Protocol):
    async def start_outbound(self, to_e164: str, twiml: str) -> CallHandle:
        """Place an outbound call that executes the given TwiML once answered."""
        ...
