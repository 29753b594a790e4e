"""Twilio webhook signature verification."""

import structlog
from fastapi import Depends, Request
from twilio.request_validator import RequestValidator

from app.config import Settings, get_settings
from app.core.exceptions import UnauthorizedException

logger = structlog.get_logger(__name__)


def signed_url(request: Request, settings: Settings) -> str:
    """The URL Twilio signed. Behind a proxy the public base URL replaces the internal one."""
    if settings.PUBLIC_BASE_URL:
        url = settings.PUBLIC_BASE_URL.rstrip("/") + request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url
    return str(request.url)


async def verify_twilio_signature(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    Validate X-Twilio-Signature against the form payload.
    Returns the parsed form so handlers do not read the body twice.
    """
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}

    if not settings.TWILIO_VALIDATE_SIGNATURE:
        return params

    signature = request.headers.get("X-Twilio-Signature", "")
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    if not signature or not validator.validate(signed_url(request, settings), params, signature):
        logger.warning("Rejected webhook with invalid signature", path=request.url.path)
        raise UnauthorizedException("Invalid webhook signature")

    return params
