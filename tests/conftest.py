from datetime import datetime, timedelta
from typing import Union

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings, get_settings
from app.core.exceptions import GatewayError
from app.domain.gateways import CallHandle, MessageReceipt, WhatsAppOptions
from app.domain.models.contact import Contact
from app.domain.models.consent_record import ConsentRecord  # noqa: F401
from app.domain.models.outreach_message import OutreachMessage  # noqa: F401
from app.domain.models.outreach_session import OutreachSession  # noqa: F401
from app.domain.models.reply_event import ReplyEvent  # noqa: F401
from app.infrastructure.database import Base
from app.infrastructure.rate_limiter import SlidingWindowRateLimiter
from app.infrastructure.twilio_api import render_options_text
from app.interfaces.deps import (
    build_outreach_engine,
    get_session_factory,
    get_sweep_rate_limiter,
    get_twilio_client,
)

START = datetime(2026, 3, 2, 15, 0, 0)


class FrozenClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeTwilio:
    """Records every send and call; numbers in ``fail_for`` raise GatewayError."""

    def __init__(self):
        self.sms = []
        self.whatsapp = []
        self.calls = []
        self.fail_for = set()
        self._seq = 0

    def _next_sid(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq:04d}"

    def _check(self, e164: str) -> None:
        if e164 in self.fail_for:
            raise GatewayError("provider unavailable", details={"to": e164})

    async def send_sms(self, e164: str, text: str) -> MessageReceipt:
        self._check(e164)
        self.sms.append((e164, text))
        return MessageReceipt(sid=self._next_sid("SM"), body=text, to=e164, status="queued")

    async def send_whatsapp(self, e164: str, message: Union[WhatsAppOptions, str]) -> MessageReceipt:
        self._check(e164)
        self.whatsapp.append((e164, message))
        body = render_options_text(message) if isinstance(message, WhatsAppOptions) else message
        return MessageReceipt(sid=self._next_sid("SM"), body=body, to=e164, status="queued")

    async def start_outbound(self, to_e164: str, twiml: str) -> CallHandle:
        self._check(to_e164)
        self.calls.append((to_e164, twiml))
        return CallHandle(sid=self._next_sid("CA"), to=to_e164, status="queued")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        BUSINESS_NAME="Acme Plumbing",
        BUSINESS_TARGET_E164="+15550002222",
        BASE_URL="https://book.example.com",
        BOOKING_SOURCE="missed_call",
        TWILIO_AUTH_TOKEN="test-auth-token",
        TWILIO_VALIDATE_SIGNATURE=False,
        FOLLOWUP_SCHEDULER_ENABLED=False,
        ADMIN_API_TOKEN="",
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def gateway():
    return FakeTwilio()


@pytest.fixture
def engine(db, gateway, settings, clock):
    return build_outreach_engine(db, gateway, settings, clock=clock)


@pytest.fixture
def add_contact(db):
    def _add(e164: str, wa_capable: bool = False, first_name: str = None) -> Contact:
        contact = Contact(e164=e164, wa_capable=wa_capable, first_name=first_name)
        db.add(contact)
        db.commit()
        return contact

    return _add


@pytest.fixture
def sweep_limiter():
    return SlidingWindowRateLimiter(max_requests=10, window_seconds=60)


@pytest.fixture
def client(session_factory, gateway, settings, sweep_limiter):
    from app.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_twilio_client] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_sweep_rate_limiter] = lambda: sweep_limiter

    # No context manager: the lifespan (create_all on the real engine, scheduler) stays off
    yield TestClient(app)

    app.dependency_overrides.clear()
