"""Notification throttle - rate limits DOWN/UP alerts per site."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models import Site, Incident, Notification, NotificationType
from ..utils.db_utils import retry_on_lock
from ..utils.time_utils import utcnow
from .email_sender import email_sender_service

logger = logging.getLogger(__name__)


class NotificationThrottle:
    """Sends at most one notification per (site, type) per window.

    DOWN and UP are tracked independently, so a recent DOWN alert never
    suppresses the matching UP alert.
    """

    def __init__(self, sender=None, window: Optional[timedelta] = None):
        self.sender = sender or email_sender_service
        self.window = window or timedelta(minutes=settings.notification_throttle_minutes)

    async def _get_last_notification(
        self,
        session: AsyncSession,
        site_id: int,
        notification_type: NotificationType,
    ) -> Optional[Notification]:
        result = await session.execute(
            select(Notification)
            .where(
                and_(
                    Notification.site_id == site_id,
                    Notification.type == notification_type.value,
                )
            )
            .order_by(Notification.sent_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def should_notify(
        self,
        session: AsyncSession,
        site_id: int,
        notification_type: NotificationType,
        now: Optional[datetime] = None,
    ) -> bool:
        """True if no notification of this type was sent within the window."""
        last = await self._get_last_notification(session, site_id, notification_type)
        if last is None:
            return True

        elapsed = (now or utcnow()) - last.sent_at
        return elapsed > self.window

    def _build_subject(self, site: Site, notification_type: NotificationType) -> str:
        if notification_type == NotificationType.UP:
            return f"Site is back up - {site.url}"
        return f"Site is down - {site.url}"

    def _build_body(self, site: Site, incident: Incident, notification_type: NotificationType) -> str:
        state = "up" if notification_type == NotificationType.UP else "down"
        lines = [
            f"Your site {site.url} is {state}.",
            "",
            f"Monitor type: {site.monitor_type}",
            f"Check interval: {site.interval} min",
            f"Incident started: {incident.start_time.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]
        if incident.end_time:
            lines.append(f"Incident resolved: {incident.end_time.strftime('%Y-%m-%d %H:%M:%S UTC')}")
        if notification_type == NotificationType.DOWN:
            if incident.error:
                lines.append(f"Error: {incident.error}")
            if incident.details:
                lines.append(f"Details: {incident.details}")
        lines.append("")
        lines.append("--")
        lines.append("SiteWatch Uptime Monitoring")
        return "\n".join(lines)

    async def notify(
        self,
        session: AsyncSession,
        site: Site,
        incident: Incident,
        notification_type: NotificationType,
    ) -> Optional[Notification]:
        """Send a notification for an incident unless throttled.

        The Notification row is written only after the message was delivered.
        Returns the row, or None when suppressed or undelivered.
        """
        try:
            approved = await self.should_notify(session, site.id, notification_type)
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up notification history for site {site.id}: {e}")
            await session.rollback()
            return None

        if not approved:
            logger.info(f"{notification_type.value} notification suppressed for site {site.id}: within throttle window")
            return None

        subject = self._build_subject(site, notification_type)
        body = self._build_body(site, incident, notification_type)

        try:
            delivered = await self.sender.send(site.email, subject, body)
        except Exception as e:
            logger.error(f"Failed to dispatch {notification_type.value} notification for site {site.id}: {e}")
            delivered = False

        if not delivered:
            logger.warning(f"{notification_type.value} notification for site {site.id} was not delivered")
            return None

        notification = Notification(
            site_id=site.id,
            incident_id=incident.id,
            type=notification_type.value,
            sent_at=utcnow(),
        )
        session.add(notification)
        try:
            await retry_on_lock(session.commit)
        except SQLAlchemyError as e:
            logger.error(f"Failed to record notification for site {site.id}: {e}")
            await session.rollback()
            return None

        return notification


# Global instance
notification_throttle = NotificationThrottle()
