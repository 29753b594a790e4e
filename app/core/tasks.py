"""Detached work for webhook handlers.

Webhooks acknowledge the provider first and mutate state afterwards. The work is
scheduled on FastAPI's ``BackgroundTasks`` through ``run_detached``, which is the
only place its errors end up: they are logged and never reach the HTTP response.
"""

from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)


async def run_detached(name: str, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> None:
    """Await ``func`` and route any failure to the error log."""
    try:
        await func(*args, **kwargs)
    except Exception:
        logger.exception("Detached task failed", task=name)
