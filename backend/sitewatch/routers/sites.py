"""Site registry CRUD API endpoints."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Site, Check
from ..schemas.site import SiteCreate, SiteUpdate, SiteResponse, CheckRecord
from ..services.scheduler import scheduler_service
from ..services.site_events import SiteEvent, site_events
from ..utils.db_utils import retry_on_lock

router = APIRouter(prefix="/api/sites", tags=["sites"])


def _to_response(site: Site) -> SiteResponse:
    return SiteResponse(
        id=site.id,
        url=site.url,
        email=site.email,
        interval=site.interval,
        monitor_type=site.monitor_type,
        created_at=site.created_at,
        scheduled=scheduler_service.is_scheduled(site.id),
    )


async def _get_site_or_404(db: AsyncSession, site_id: int) -> Site:
    result = await db.execute(select(Site).where(Site.id == site_id))
    site = result.scalar_one_or_none()
    if not site:
        raise HTTPException(status_code=404, detail="Site not found")
    return site


@router.get("", response_model=List[SiteResponse])
async def list_sites(db: AsyncSession = Depends(get_db)):
    """List all registered sites."""
    result = await db.execute(select(Site).order_by(Site.id))
    return [_to_response(site) for site in result.scalars().all()]


@router.post("", response_model=SiteResponse, status_code=201)
async def create_site(site: SiteCreate, db: AsyncSession = Depends(get_db)):
    """Register a new site. Subscribers are told so it gets scheduled."""
    db_site = Site(
        url=site.url,
        email=site.email,
        interval=site.interval,
        monitor_type=site.monitor_type,
    )
    db.add(db_site)
    await retry_on_lock(db.commit)
    await db.refresh(db_site)

    await site_events.publish(SiteEvent.ADDED, db_site)
    return _to_response(db_site)


@router.get("/{site_id}", response_model=SiteResponse)
async def get_site(site_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific site by ID."""
    return _to_response(await _get_site_or_404(db, site_id))


@router.put("/{site_id}", response_model=SiteResponse)
async def update_site(site_id: int, update: SiteUpdate, db: AsyncSession = Depends(get_db)):
    """Update a site. Its schedule is restarted with the new values."""
    site = await _get_site_or_404(db, site_id)

    if update.url is not None:
        site.url = update.url
    if update.email is not None:
        site.email = update.email
    if update.interval is not None:
        site.interval = update.interval
    if update.monitor_type is not None:
        site.monitor_type = update.monitor_type

    await retry_on_lock(db.commit)
    await db.refresh(site)

    await site_events.publish(SiteEvent.UPDATED, site)
    return _to_response(site)


@router.delete("/{site_id}", status_code=204)
async def delete_site(site_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a site along with its checks, incidents and notifications."""
    site = await _get_site_or_404(db, site_id)

    await db.delete(site)
    await retry_on_lock(db.commit)

    # Only unschedule once the rows are gone
    await site_events.publish(SiteEvent.REMOVED, site)


@router.get("/{site_id}/checks", response_model=List[CheckRecord])
async def list_site_checks(
    site_id: int,
    limit: int = Query(default=50, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Recent check history for a site, newest first."""
    await _get_site_or_404(db, site_id)

    result = await db.execute(
        select(Check)
        .where(Check.site_id == site_id)
        .order_by(Check.checked_at.desc(), Check.id.desc())
        .limit(limit)
    )
    return [CheckRecord.model_validate(check) for check in result.scalars().all()]
