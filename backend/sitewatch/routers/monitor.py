"""Probe and manual check API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..models import Site
from ..schemas.monitor import (
    ProbeResponse,
    CheckOutcomeResponse,
    NotificationTestRequest,
    NotificationTestResponse,
)
from ..services.incidents import CheckOutcome
from ..services.prober import normalize_url, probe_service
from ..services.scheduler import scheduler_service
from ..services.throttle import notification_throttle
from ..utils.time_utils import utcnow

router = APIRouter(prefix="/api", tags=["monitor"])


def _outcome_response(outcome: CheckOutcome) -> CheckOutcomeResponse:
    return CheckOutcomeResponse(
        site_id=outcome.site_id,
        up=outcome.up,
        was_up=outcome.was_up,
        transition=outcome.transition,
        check_id=outcome.check_id,
        incident_id=outcome.incident_id,
        notification_sent=outcome.notification_sent,
        error=outcome.error,
        details=outcome.details,
        average_response_time_ms=outcome.avg_ms,
        min_response_time_ms=outcome.min_ms,
        max_response_time_ms=outcome.max_ms,
    )


@router.get("/ping", response_model=ProbeResponse)
async def ping(
    url: str = Query(..., min_length=1),
    count: int = Query(default=settings.probe_sample_count, ge=1, le=20),
):
    """Probe an arbitrary URL without recording anything."""
    result = await probe_service.probe(url, count)

    return ProbeResponse(
        url=normalize_url(url),
        up=result.up,
        error=result.error,
        error_code=result.error_code,
        details=result.details,
        average_response_time_ms=result.avg_ms,
        min_response_time_ms=result.min_ms,
        max_response_time_ms=result.max_ms,
        samples=len(result.samples),
    )


@router.post("/check/{site_id}", response_model=CheckOutcomeResponse)
async def check_site(site_id: int, db: AsyncSession = Depends(get_db)):
    """Check a registered site now, same path as a scheduled check."""
    result = await db.execute(select(Site).where(Site.id == site_id))
    site = result.scalar_one_or_none()

    if not site:
        raise HTTPException(status_code=404, detail="Site not found")

    outcome = await scheduler_service.check_site(site)
    return _outcome_response(outcome)


@router.post("/check-all", response_model=List[CheckOutcomeResponse])
async def check_all_sites():
    """Check every registered site now."""
    outcomes = await scheduler_service.check_all()
    return [_outcome_response(outcome) for outcome in outcomes]


@router.post("/notifications/test", response_model=NotificationTestResponse)
async def send_test_notification(request: NotificationTestRequest):
    """Send a message directly, outside throttling and incident bookkeeping."""
    body = request.body or "\n".join([
        "SiteWatch Test Notification",
        "=" * 40,
        "",
        "If you received this message, alert delivery is working correctly.",
        "",
        f"Time: {utcnow().strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
        "--",
        "SiteWatch Uptime Monitoring",
    ])

    success = await notification_throttle.sender.send(request.email, request.subject, body)

    if not success:
        raise HTTPException(status_code=500, detail="Failed to send test notification. Check server logs for details.")
    return NotificationTestResponse(success=True, message=f"Test notification sent to {request.email}")
