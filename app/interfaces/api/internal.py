"""Follow-up sweep trigger for external schedulers, plus scheduler status."""

import math
from datetime import datetime

import pytz
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from app.config import get_settings
from app.interfaces.api.deps import require_admin_token
from app.interfaces.deps import get_outreach_engine, get_sweep_rate_limiter
from app.application.services.outreach_service import OutreachEngine
from app.domain.schemas.outreach import SweepResult
from app.infrastructure.rate_limiter import RateLimiter

settings = get_settings()
tz = pytz.timezone(settings.TIMEZONE)
logger = structlog.get_logger(__name__)
router = APIRouter(
    prefix="/internal/outreach",
    tags=["Internal"],
    dependencies=[Depends(require_admin_token)],
)


def client_ip(request: Request) -> str:
    """Peer address of the connection. Behind a proxy, run uvicorn with
    --proxy-headers and --forwarded-allow-ips so only trusted hops rewrite it."""
    return request.client.host if request.client else "unknown"


def enforce_sweep_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_sweep_rate_limiter),
) -> None:
    ip = client_ip(request)
    decision = limiter.hit(f"sweep:{ip}")
    if not decision.allowed:
        logger.warning("Sweep trigger rate limited", client_ip=ip)
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": str(max(1, math.ceil(decision.retry_after)))},
        )


@router.post("/run", response_model=SweepResult, dependencies=[Depends(enforce_sweep_rate_limit)])
async def run_followups(engine: OutreachEngine = Depends(get_outreach_engine)):
    """Run the follow-up sweep once."""
    sent = await engine.run_due_followups()
    return SweepResult(sent=sent, timestamp=datetime.now(tz).isoformat())


@router.get("/scheduler-status")
def scheduler_status():
    """Get scheduler status and next run time."""
    from app.scheduler.jobs import scheduler

    jobs = []
    for job in scheduler.get_jobs():
        next_run = job.next_run_time
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_iso": next_run.isoformat() if next_run else None,
        })

    return {
        "running": scheduler.running,
        "current_time": datetime.now(tz).isoformat(),
        "timezone": settings.TIMEZONE,
        "jobs": jobs,
    }
