"""Phone number helpers — E.164 normalization and provider address parsing."""

import re

WHATSAPP_PREFIX = "whatsapp:"

_NON_DIGITS = re.compile(r"\D")


def normalize_e164(raw: str | None) -> str:
    """
    Normalize a phone number to E.164.

    10-digit numbers are assumed to be NANP and get a +1 prefix; anything else
    keeps its digits behind a single '+'.
    """
    if not raw:
        return ""
    value = raw.strip()
    if value.lower().startswith(WHATSAPP_PREFIX):
        value = value[len(WHATSAPP_PREFIX):]

    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return ""
    if len(digits) == 10 and not value.startswith("+"):
        return f"+1{digits}"
    return f"+{digits}"


def split_channel_address(address: str | None) -> tuple[str, str]:
    """Split a provider sender address into (e164, channel)."""
    address = (address or "").strip()
    channel = "whatsapp" if address.lower().startswith(WHATSAPP_PREFIX) else "sms"
    return normalize_e164(address), channel
