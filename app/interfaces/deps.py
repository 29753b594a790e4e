"""
API Dependencies.
"""

from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from app.config import Settings, get_settings
from app.core.clock import Clock, utc_now
from app.infrastructure.database import SessionLocal
from app.domain.models.contact import Contact
from app.domain.models.consent_record import ConsentRecord
from app.domain.models.outreach_session import OutreachSession
from app.infrastructure.repositories.contact_repository import SQLAlchemyContactRepository
from app.infrastructure.repositories.consent_repository import SQLAlchemyConsentRepository
from app.infrastructure.repositories.session_repository import SQLAlchemyOutreachSessionRepository
from app.infrastructure.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from app.infrastructure.twilio_api import TwilioAPIClient
from app.application.services.channel_selector import ChannelSelector
from app.application.services.consent_service import ConsentLedger
from app.application.services.outreach_service import OutreachEngine
from app.application.services.session_store import SessionStore


def get_session_factory() -> sessionmaker:
    """Session factory; background tasks open their own sessions from it."""
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def get_twilio_client(settings: Settings = Depends(get_settings)) -> TwilioAPIClient:
    return TwilioAPIClient(settings)


def build_outreach_engine(db: Session, client, settings: Settings, clock: Clock = utc_now) -> OutreachEngine:
    """Wire repositories, ledger, store and gateways into an engine bound to ``db``."""
    contacts = SQLAlchemyContactRepository(db, Contact)
    ledger = ConsentLedger(SQLAlchemyConsentRepository(db, ConsentRecord), clock=clock)
    store = SessionStore(
        SQLAlchemyOutreachSessionRepository(db, OutreachSession),
        ChannelSelector(contacts, ledger),
        clock=clock,
        dedup_hours=settings.INITIAL_DEDUP_HOURS,
        reply_window_hours=settings.REPLY_WINDOW_HOURS,
        followup_delay_hours=settings.FOLLOWUP_DELAY_HOURS,
    )
    return OutreachEngine(
        store=store,
        ledger=ledger,
        contacts=contacts,
        messaging=client,
        telephony=client,
        settings=settings,
        clock=clock,
    )


def get_outreach_engine(
    db: Session = Depends(get_db),
    client: TwilioAPIClient = Depends(get_twilio_client),
    settings: Settings = Depends(get_settings),
) -> OutreachEngine:
    return build_outreach_engine(db, client, settings)


@lru_cache
def get_sweep_rate_limiter() -> RateLimiter:
    """Process-wide limiter for the follow-up sweep trigger."""
    settings = get_settings()
    return SlidingWindowRateLimiter(
        max_requests=settings.SWEEP_RATE_LIMIT_MAX,
        window_seconds=settings.SWEEP_RATE_LIMIT_WINDOW_SECONDS,
    )
