"""Incident history API endpoints."""
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database import get_db
from ..models import Incident, Site
from ..schemas.incident import IncidentResponse, IncidentDetail, NotificationRecord
from .status import get_latest_checks

router = APIRouter(prefix="/api/incidents", tags=["incidents"])


def _incident_response(incident: Incident) -> IncidentResponse:
    site = incident.site
    return IncidentResponse(
        id=incident.id,
        site_id=incident.site_id,
        start_time=incident.start_time,
        end_time=incident.end_time,
        resolved=bool(incident.resolved),
        error=incident.error,
        details=incident.details,
        up=bool(incident.up),
        url=site.url,
        email=site.email,
        monitor_type=site.monitor_type,
        interval=site.interval,
        notifications=[NotificationRecord.model_validate(n) for n in incident.notifications],
    )


def _incident_query():
    return select(Incident).options(
        selectinload(Incident.site),
        selectinload(Incident.notifications),
    )


@router.get("", response_model=List[IncidentResponse])
async def list_incidents(
    site_id: Optional[int] = None,
    search: Optional[str] = Query(default=None, description="Substring of the site URL"),
    monitor_type: Optional[str] = None,
    status: Optional[Literal["up", "down"]] = Query(default=None, description="Current state of the site"),
    db: AsyncSession = Depends(get_db),
):
    """List incidents, newest first, with optional filters."""
    query = _incident_query().join(Site, Incident.site_id == Site.id)

    if site_id is not None:
        query = query.where(Incident.site_id == site_id)
    if search:
        query = query.where(Site.url.ilike(f"%{search}%"))
    if monitor_type:
        query = query.where(Site.monitor_type == monitor_type)
    if status:
        latest = await get_latest_checks(db)
        wanted_up = status == "up"
        site_ids = [sid for sid, check in latest.items() if bool(check.up) == wanted_up]
        query = query.where(Incident.site_id.in_(site_ids))

    result = await db.execute(query.order_by(Incident.start_time.desc(), Incident.id.desc()))
    return [_incident_response(incident) for incident in result.scalars().all()]


@router.get("/{incident_id}", response_model=IncidentDetail)
async def get_incident(incident_id: int, db: AsyncSession = Depends(get_db)):
    """Get an incident and the other incidents of the same site."""
    result = await db.execute(_incident_query().where(Incident.id == incident_id))
    incident = result.scalar_one_or_none()

    if not incident:
        raise HTTPException(status_code=404, detail="Incident not found")

    related_result = await db.execute(
        _incident_query()
        .where(
            Incident.site_id == incident.site_id,
            Incident.id != incident.id,
        )
        .order_by(Incident.start_time.desc(), Incident.id.desc())
    )

    return IncidentDetail(
        incident=_incident_response(incident),
        related_incidents=[_incident_response(i) for i in related_result.scalars().all()],
    )
