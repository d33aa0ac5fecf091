"""Current status API."""
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import Check
from ..schemas.status import SiteStatus, StatusResponse

router = APIRouter(prefix="/api/status", tags=["status"])


async def get_latest_checks(db: AsyncSession) -> Dict[int, Check]:
    """Most recent check of every site that has been checked, keyed by site id."""
    last_checked = (
        select(Check.site_id, func.max(Check.checked_at).label("last_checked"))
        .group_by(Check.site_id)
        .subquery()
    )
    result = await db.execute(
        select(Check)
        .join(
            last_checked,
            and_(
                Check.site_id == last_checked.c.site_id,
                Check.checked_at == last_checked.c.last_checked,
            ),
        )
        .order_by(Check.site_id, Check.id)
    )

    latest: Dict[int, Check] = {}
    for check in result.scalars().all():
        # Same timestamp twice: the later insert wins
        latest[check.site_id] = check
    return latest


@router.get("", response_model=StatusResponse)
async def get_status(db: AsyncSession = Depends(get_db)):
    """Latest observed state of every checked site."""
    latest = await get_latest_checks(db)
    return StatusResponse(
        sites=[
            SiteStatus(
                id=site_id,
                up=bool(check.up),
                checked_at=check.checked_at,
                error=check.error,
            )
            for site_id, check in sorted(latest.items())
        ]
    )
