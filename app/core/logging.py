"""
Logging configuration for the outreach service.
Uses structlog for structured logging (JSON in production, console in dev).
"""

import logging
import sys
from typing import Any

import structlog
from asgi_correlation_id import correlation_id

from app.config import get_settings

settings = get_settings()


def add_correlation_id(logger, method_name, event_dict):
    """Attach the current request id, when one is bound to the context."""
    request_id = correlation_id.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def mask_phone(e164: str | None) -> str:
    """Keep the country prefix and last two digits of a phone number for log lines."""
    if not e164:
        return "unknown"
    if len(e164) <= 6:
        return "***"
    return f"{e164[:4]}***{e164[-2:]}"


def configure_logging() -> None:
    """Configure structured logging."""
    shared_processors: list[Any] = [
        add_correlation_id,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    render_processors: list[Any] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if settings.ENVIRONMENT == "production":
        # JSON logs for production (ELK, Datadog compatible)
        render_processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Standard library records (uvicorn, apscheduler, httpx) go through the same renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=render_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.LOG_LEVEL.upper())

    # httpx logs every request at INFO, including Twilio URLs with the account sid
    logging.getLogger("httpx").setLevel(logging.WARNING)
