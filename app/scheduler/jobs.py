"""APScheduler jobs — follow-up sweep for outreach sessions that got no reply."""

import logging
from datetime import datetime

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import get_settings
from app.infrastructure.database import SessionLocal

settings = get_settings()
logger = logging.getLogger(__name__)
tz = pytz.timezone(settings.TIMEZONE)

scheduler = AsyncIOScheduler(timezone=tz)


async def followup_sweep_job():
    """Periodic job: nudge sent sessions whose follow-up is due, then expire them."""
    from app.infrastructure.twilio_api import TwilioAPIClient
    from app.interfaces.deps import build_outreach_engine

    logger.info(f"Running follow-up sweep at {datetime.now(tz).strftime('%Y-%m-%d %H:%M')}")

    db = SessionLocal()
    try:
        engine = build_outreach_engine(db, TwilioAPIClient(settings), settings)
        nudged = await engine.run_due_followups()
        logger.info(f"Follow-up sweep nudged {nudged} session(s)")
    except Exception:
        logger.exception("Follow-up sweep job failed")
    finally:
        db.close()


def start_scheduler():
    """Start the APScheduler with the follow-up sweep job."""
    scheduler.add_job(
        followup_sweep_job,
        trigger=IntervalTrigger(minutes=settings.FOLLOWUP_SWEEP_MINUTES, timezone=tz),
        id="outreach_followup_sweep",
        name=f"Outreach follow-up sweep (every {settings.FOLLOWUP_SWEEP_MINUTES} mins)",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started: follow-up sweep every {settings.FOLLOWUP_SWEEP_MINUTES} mins ({settings.TIMEZONE})")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
