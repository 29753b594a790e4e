"""Twilio REST API HTTP client.

Implements both the messaging gateway (SMS, WhatsApp) and the telephony gateway
(outbound bridge calls) used by the outreach engine.

- Retries connection failures and 429 with linear backoff; never a request Twilio may have acted on
- Raises GatewayError after the last attempt
- Attaches the messaging service sid when configured
"""

import asyncio
import json
import logging
from typing import Optional, Union

import httpx
from twilio.twiml.voice_response import Dial, VoiceResponse

from app.config import Settings, get_settings
from app.core.exceptions import GatewayError
from app.core.logging import mask_phone
from app.domain.gateways import CallHandle, MessageReceipt, WhatsAppOptions

logger = logging.getLogger(__name__)

# Rejected before Twilio acted on the request; safe to send again
RETRYABLE_STATUS = (429,)
UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


def render_options_text(options: WhatsAppOptions) -> str:
    """Plain-text rendering of an options message for senders without a Content template."""
    lines = [f"• {button}: Reply {index}" for index, button in enumerate(options.buttons, 1)]
    return f"{options.body}\n\n" + "\n".join(lines) if lines else options.body


def bridge_twiml(target_e164: str, caller_id: Optional[str] = None) -> str:
    """TwiML that dials the business line and only connects audio once it answers."""
    response = VoiceResponse()
    dial = Dial(answer_on_bridge=True, caller_id=caller_id or None)
    dial.number(target_e164)
    response.append(dial)
    return str(response)


class TwilioAPIClient:
    """Client for the Twilio Messages and Calls resources."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ):
        self.settings = settings or get_settings()
        self.base_url = (
            f"{self.settings.TWILIO_API_URL.rstrip('/')}/Accounts/{self.settings.TWILIO_ACCOUNT_SID}"
        )
        self.auth = (self.settings.TWILIO_ACCOUNT_SID, self.settings.TWILIO_AUTH_TOKEN)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

    async def _post(self, resource: str, data: dict) -> dict:
        """
        POST a form to a Twilio resource.

        Messages and Calls are not idempotent, so only failures where Twilio
        cannot have acted on the request are retried: connection errors and 429.
        A read timeout or 5xx may already have sent the message or placed the
        call and is surfaced as GatewayError on the first occurrence.
        """
        url = f"{self.base_url}/{resource}.json"
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=15, auth=self.auth, transport=self._transport) as client:
                    response = await client.post(url, data=data)
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPStatusError as e:
                last_error = e
                error_text = e.response.text[:200] if e.response.text else "No response body"
                logger.warning(
                    "Twilio API error (attempt %s/%s) on %s: %s - %s",
                    attempt, self.max_retries, resource, e.response.status_code, error_text,
                )
                if e.response.status_code not in RETRYABLE_STATUS:
                    break
            except UNSENT_ERRORS as e:
                last_error = e
                logger.warning(
                    "Twilio API connection error (attempt %s/%s) on %s: %s",
                    attempt, self.max_retries, resource, e,
                )
            except httpx.TransportError as e:
                last_error = e
                logger.warning("Twilio API request on %s may have been delivered, not retrying: %s", resource, e)
                break

            if attempt < self.max_retries:
                await asyncio.sleep(self.retry_delay * attempt)

        raise GatewayError(
            f"Twilio {resource} request failed: {last_error}",
            details={"resource": resource},
        )

    def _message_form(self, to: str, sender: str) -> dict:
        form = {"To": to}
        if sender:
            form["From"] = sender
        if self.settings.TWILIO_MESSAGING_SERVICE_SID:
            form["MessagingServiceSid"] = self.settings.TWILIO_MESSAGING_SERVICE_SID
        return form

    async def send_sms(self, e164: str, text: str) -> MessageReceipt:
        form = self._message_form(e164, self.settings.SMS_FROM)
        form["Body"] = text

        result = await self._post("Messages", form)
        logger.info("SMS sent to %s (sid=%s)", mask_phone(e164), result.get("sid"))
        return MessageReceipt(
            sid=result.get("sid", ""),
            body=result.get("body") or text,
            to=e164,
            status=result.get("status"),
        )

    async def send_whatsapp(self, e164: str, message: Union[WhatsAppOptions, str]) -> MessageReceipt:
        sender = self.settings.WHATSAPP_FROM
        if sender and not sender.startswith("whatsapp:"):
            sender = f"whatsapp:{sender}"
        form = self._message_form(f"whatsapp:{e164}", sender)

        if isinstance(message, WhatsAppOptions):
            text = render_options_text(message)
            if self.settings.WHATSAPP_CONTENT_SID:
                variables = {"1": message.body}
                for index, button in enumerate(message.buttons, 2):
                    variables[str(index)] = button
                form["ContentSid"] = self.settings.WHATSAPP_CONTENT_SID
                form["ContentVariables"] = json.dumps(variables)
            else:
                form["Body"] = text
        else:
            text = message
            form["Body"] = text

        result = await self._post("Messages", form)
        logger.info("WhatsApp message sent to %s (sid=%s)", mask_phone(e164), result.get("sid"))
        return MessageReceipt(
            sid=result.get("sid", ""),
            body=result.get("body") or text,
            to=e164,
            status=result.get("status"),
        )

    async def start_outbound(self, to_e164: str, twiml: str) -> CallHandle:
        caller_id = self.settings.TWILIO_CALLER_ID or self.settings.BUSINESS_TARGET_E164
        form = {"To": to_e164, "From": caller_id, "Twiml": twiml}

        result = await self._post("Calls", form)
        logger.info("Outbound call to %s started (sid=%s)", mask_phone(to_e164), result.get("sid"))
        return CallHandle(sid=result.get("sid", ""), to=to_e164, status=result.get("status"))
