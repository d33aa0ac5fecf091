"""Tests for the notification throttle."""
from datetime import timedelta

from sqlalchemy import select, func

from sitewatch.models import Incident, Notification, NotificationType
from sitewatch.services.throttle import NotificationThrottle
from sitewatch.utils.time_utils import utcnow

from tests.fakes import FakeSender, RaisingSender


async def _incident(session, site) -> Incident:
    incident = Incident(site_id=site.id, start_time=utcnow(), resolved=False, up=False, error="HTTP Status: 500")
    session.add(incident)
    await session.commit()
    return incident


async def _notification(session, site, incident, type_: NotificationType, minutes_ago: float):
    session.add(Notification(
        site_id=site.id,
        incident_id=incident.id,
        type=type_.value,
        sent_at=utcnow() - timedelta(minutes=minutes_ago),
    ))
    await session.commit()


async def _count(session) -> int:
    return (await session.execute(select(func.count(Notification.id)))).scalar_one()


class TestShouldNotify:
    async def test_no_history_approves(self, session, site, throttle):
        assert await throttle.should_notify(session, site.id, NotificationType.DOWN) is True

    async def test_recent_same_type_suppresses(self, session, site, throttle):
        incident = await _incident(session, site)
        await _notification(session, site, incident, NotificationType.DOWN, minutes_ago=10)
        assert await throttle.should_notify(session, site.id, NotificationType.DOWN) is False

    async def test_old_same_type_approves(self, session, site, throttle):
        incident = await _incident(session, site)
        await _notification(session, site, incident, NotificationType.DOWN, minutes_ago=31)
        assert await throttle.should_notify(session, site.id, NotificationType.DOWN) is True

    async def test_types_are_independent(self, session, site, throttle):
        incident = await _incident(session, site)
        await _notification(session, site, incident, NotificationType.DOWN, minutes_ago=1)
        assert await throttle.should_notify(session, site.id, NotificationType.UP) is True

    async def test_other_site_does_not_count(self, session, site, throttle):
        incident = await _incident(session, site)
        await _notification(session, site, incident, NotificationType.DOWN, minutes_ago=1)
        assert await throttle.should_notify(session, site.id + 1, NotificationType.DOWN) is True


class TestNotify:
    async def test_sends_and_records(self, session, site, throttle, sender):
        incident = await _incident(session, site)

        notification = await throttle.notify(session, site, incident, NotificationType.DOWN)

        assert notification is not None
        assert notification.incident_id == incident.id
        assert notification.type == "DOWN"
        assert len(sender.sent) == 1
        to_address, subject, body = sender.sent[0]
        assert to_address == "ops@example.com"
        assert subject == "Site is down - example.com"
        assert "Your site example.com is down." in body
        assert "Error: HTTP Status: 500" in body

    async def test_suppressed_sends_nothing(self, session, site, throttle, sender):
        incident = await _incident(session, site)
        await _notification(session, site, incident, NotificationType.UP, minutes_ago=5)

        assert await throttle.notify(session, site, incident, NotificationType.UP) is None
        assert sender.sent == []
        assert await _count(session) == 1

    async def test_second_notify_within_window_suppressed(self, session, site, throttle, sender):
        incident = await _incident(session, site)

        assert await throttle.notify(session, site, incident, NotificationType.DOWN) is not None
        assert await throttle.notify(session, site, incident, NotificationType.DOWN) is None
        assert len(sender.sent) == 1
        assert await _count(session) == 1

    async def test_failed_delivery_is_not_recorded(self, session, site):
        throttle = NotificationThrottle(sender=FakeSender(succeed=False))
        incident = await _incident(session, site)

        assert await throttle.notify(session, site, incident, NotificationType.DOWN) is None
        assert await _count(session) == 0
        # Nothing recorded, so the next transition may try again
        assert await throttle.should_notify(session, site.id, NotificationType.DOWN) is True

    async def test_raising_sender_is_contained(self, session, site):
        throttle = NotificationThrottle(sender=RaisingSender())
        incident = await _incident(session, site)

        assert await throttle.notify(session, site, incident, NotificationType.DOWN) is None
        assert await _count(session) == 0
