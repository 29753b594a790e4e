"""FastAPI application — missed-call outreach service entry point."""

import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.infrastructure.database import engine, Base
from app.core.logging import configure_logging
from app.core.middleware import setup_middleware
from app.core.exceptions import register_exception_handlers

# Import all models so SQLAlchemy knows about them
from app.domain.models.contact import Contact
from app.domain.models.consent_record import ConsentRecord
from app.domain.models.outreach_session import OutreachSession
from app.domain.models.outreach_message import OutreachMessage
from app.domain.models.reply_event import ReplyEvent

# Import routers
from app.interfaces.api.outreach_admin import router as outreach_admin_router
from app.interfaces.api.internal import router as internal_router
from app.interfaces.webhooks.twilio import router as twilio_webhooks_router

settings = get_settings()

# Configure logging immediately
configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    logger.info("Starting outreach service", env=settings.ENVIRONMENT)

    # Create DB tables (dev only, use migrations in production)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    if settings.FOLLOWUP_SCHEDULER_ENABLED:
        from app.scheduler.jobs import start_scheduler
        start_scheduler()

    yield

    from app.scheduler.jobs import stop_scheduler
    stop_scheduler()
    logger.info("Outreach service stopped")


app = FastAPI(
    title="Missed-Call Outreach",
    description="Consent-aware SMS/WhatsApp follow-up for missed inbound calls",
    version="1.0.0",
    lifespan=lifespan,
)

# Correlation ID + request logging
setup_middleware(app)

register_exception_handlers(app)

# Admin UI runs on a separate origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(twilio_webhooks_router)
app.include_router(outreach_admin_router)
app.include_router(internal_router)


@app.get("/")
def root():
    return {
        "name": "Missed-Call Outreach",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}
