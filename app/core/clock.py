"""Time source for the outreach rules.

Timestamps are stored as naive UTC so SQLite and Postgres compare them the same
way. Services take a ``Clock`` so tests can move time forward.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
