"""Incident manager - records checks, detects transitions, drives incidents."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import async_session
from ..models import Site, Check, Incident, NotificationType
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow
from .prober import ProbeResult
from .throttle import notification_throttle

logger = logging.getLogger(__name__)

TRANSITION_DOWN = "down"
TRANSITION_UP = "up"


@dataclass
class CheckOutcome:
    """What happened when a probe result was recorded for a site."""
    site_id: int
    up: bool
    was_up: bool
    transition: Optional[str] = None  # down, up
    check_id: Optional[int] = None  # None if the check could not be stored
    incident_id: Optional[int] = None
    notification_sent: bool = False
    error: Optional[str] = None
    details: Optional[str] = None
    avg_ms: Optional[float] = None
    min_ms: Optional[float] = None
    max_ms: Optional[float] = None


class IncidentManager:
    """Turns probe results into check history and incident state.

    Per site the state is UP or DOWN; an unresolved incident exists exactly
    while the site is DOWN. A brand-new site is assumed to be UP.
    """

    def __init__(self, session_factory=None, throttle=None):
        self.session_factory = session_factory or async_session
        self.throttle = throttle or notification_throttle

    async def get_previous_measurement(self, session: AsyncSession, site_id: int) -> bool:
        """Return the verdict of the latest check, or True if there is none."""
        result = await session.execute(
            select(Check.up)
            .where(Check.site_id == site_id)
            .order_by(Check.checked_at.desc(), Check.id.desc())
            .limit(1)
        )
        last_up = result.scalar_one_or_none()
        return True if last_up is None else bool(last_up)

    async def get_open_incident(self, session: AsyncSession, site_id: int) -> Optional[Incident]:
        result = await session.execute(
            select(Incident)
            .where(
                and_(
                    Incident.site_id == site_id,
                    Incident.resolved.is_(False),
                )
            )
            .order_by(Incident.start_time.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def record_check(self, site: Site, probe_result: ProbeResult) -> CheckOutcome:
        """Persist a check for the site and handle any up/down transition.

        Database failures are logged and never raised; the outcome still
        carries the probe verdict.
        """
        outcome = CheckOutcome(
            site_id=site.id,
            up=probe_result.up,
            was_up=True,
            error=probe_result.error,
            details=probe_result.details,
            avg_ms=probe_result.avg_ms,
            min_ms=probe_result.min_ms,
            max_ms=probe_result.max_ms,
        )

        async with self.session_factory() as session:
            try:
                outcome.was_up = await self.get_previous_measurement(session, site.id)

                check = Check(
                    site_id=site.id,
                    up=probe_result.up,
                    checked_at=utcnow(),
                    error=probe_result.error,
                    details=probe_result.details,
                    avg_ms=probe_result.avg_ms,
                    min_ms=probe_result.min_ms,
                    max_ms=probe_result.max_ms,
                )
                session.add(check)
                await retry_on_lock(session.commit)
                outcome.check_id = check.id
            except SQLAlchemyError as e:
                logger.error(f"Failed to record check for site {site.id}: {e}")
                await session.rollback()
                return outcome

            if outcome.up == outcome.was_up:
                return outcome

            if outcome.up:
                outcome.transition = TRANSITION_UP
                await self._resolve_incident(session, site, outcome)
            else:
                outcome.transition = TRANSITION_DOWN
                await self._open_incident(session, site, probe_result, outcome)

        logger.info(f"Site {site.id} ({site.url}) transitioned {outcome.transition}")
        return outcome

    async def _open_incident(
        self,
        session: AsyncSession,
        site: Site,
        probe_result: ProbeResult,
        outcome: CheckOutcome,
    ):
        try:
            incident = await self.get_open_incident(session, site.id)
            if incident is not None:
                logger.warning(f"Site {site.id} went down but incident {incident.id} is still open, reusing it")
            else:
                incident = Incident(
                    site_id=site.id,
                    start_time=utcnow(),
                    resolved=False,
                    up=False,
                    error=probe_result.error,
                    details=probe_result.details,
                )
                session.add(incident)
                await retry_on_lock(session.commit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to open incident for site {site.id}: {e}")
            await session.rollback()
            return

        outcome.incident_id = incident.id
        notification = await self.throttle.notify(session, site, incident, NotificationType.DOWN)
        outcome.notification_sent = notification is not None

    async def _resolve_incident(self, session: AsyncSession, site: Site, outcome: CheckOutcome):
        try:
            incident = await self.get_open_incident(session, site.id)
            if incident is None:
                logger.warning(f"Site {site.id} is back up but has no open incident to resolve")
                return

            incident.resolved = True
            incident.up = True
            # Never end before the start, even if the clock stepped back
            incident.end_time = max(utcnow(), incident.start_time)
            await retry_on_lock(session.commit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to resolve incident for site {site.id}: {e}")
            await session.rollback()
            return

        outcome.incident_id = incident.id
        notification = await self.throttle.notify(session, site, incident, NotificationType.UP)
        outcome.notification_sent = notification is not None


# Global instance
incident_manager = IncidentManager()
