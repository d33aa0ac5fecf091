"""Tests for transition detection and the incident lifecycle."""
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitewatch.models import Check, Incident, Notification
from sitewatch.services.incidents import IncidentManager, TRANSITION_DOWN, TRANSITION_UP

from tests.fakes import down_result, up_result


async def _rows(session_factory, model, **filters):
    async with session_factory() as session:
        query = select(model)
        for name, value in filters.items():
            query = query.where(getattr(model, name) == value)
        return list((await session.execute(query.order_by(model.id))).scalars().all())


async def _open_incident_count(session_factory, site_id) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count(Incident.id)).where(Incident.site_id == site_id, Incident.resolved.is_(False))
        )
        return result.scalar_one()


class TestFirstCheck:
    async def test_first_failure_opens_one_incident(self, manager, session_factory, site, sender):
        outcome = await manager.record_check(site, down_result())

        assert outcome.was_up is True
        assert outcome.up is False
        assert outcome.transition == TRANSITION_DOWN
        assert outcome.check_id is not None
        assert outcome.notification_sent is True

        incidents = await _rows(session_factory, Incident, site_id=site.id)
        assert len(incidents) == 1
        assert incidents[0].id == outcome.incident_id
        assert incidents[0].resolved is False
        assert incidents[0].up is False
        assert incidents[0].error == "HTTP Status: 500 Internal Server Error"
        assert incidents[0].details is not None
        assert len(sender.sent) == 1

    async def test_first_success_is_not_a_transition(self, manager, session_factory, site, sender):
        outcome = await manager.record_check(site, up_result(avg=12.5))

        assert outcome.transition is None
        assert outcome.incident_id is None
        checks = await _rows(session_factory, Check, site_id=site.id)
        assert len(checks) == 1
        assert checks[0].up is True
        assert checks[0].avg_ms == 12.5
        assert await _rows(session_factory, Incident) == []
        assert sender.sent == []


class TestTransitions:
    async def test_repeated_failure_keeps_single_incident(self, manager, session_factory, site, sender):
        first = await manager.record_check(site, down_result())
        second = await manager.record_check(site, down_result())

        assert second.was_up is False
        assert second.transition is None
        assert second.incident_id is None
        assert len(await _rows(session_factory, Check, site_id=site.id)) == 2
        incidents = await _rows(session_factory, Incident, site_id=site.id)
        assert [i.id for i in incidents] == [first.incident_id]
        assert len(sender.sent) == 1

    async def test_recovery_resolves_incident(self, manager, session_factory, site, sender):
        down = await manager.record_check(site, down_result())
        up = await manager.record_check(site, up_result())

        assert up.transition == TRANSITION_UP
        assert up.incident_id == down.incident_id
        assert up.notification_sent is True

        incident = (await _rows(session_factory, Incident, id=down.incident_id))[0]
        assert incident.resolved is True
        assert incident.up is True
        assert incident.end_time is not None
        assert incident.end_time >= incident.start_time

        notifications = await _rows(session_factory, Notification, site_id=site.id)
        assert [n.type for n in notifications] == ["DOWN", "UP"]
        assert all(n.incident_id == incident.id for n in notifications)
        assert sender.sent[1][1] == "Site is back up - example.com"

    async def test_flapping_within_window_throttles_second_down(self, manager, session_factory, site, sender):
        first_down = await manager.record_check(site, down_result())
        await manager.record_check(site, up_result())
        second_down = await manager.record_check(site, down_result())

        assert second_down.transition == TRANSITION_DOWN
        assert second_down.incident_id not in (None, first_down.incident_id)
        assert second_down.notification_sent is False

        notifications = await _rows(session_factory, Notification, site_id=site.id)
        assert [n.type for n in notifications] == ["DOWN", "UP"]
        assert await _open_incident_count(session_factory, site.id) == 1
        assert len(await _rows(session_factory, Incident, site_id=site.id)) == 2

    async def test_never_more_than_one_open_incident(self, manager, session_factory, site):
        pattern = [False, False, True, False, True, True, False, False]
        for up in pattern:
            await manager.record_check(site, up_result() if up else down_result())
            assert await _open_incident_count(session_factory, site.id) <= 1

        assert await _open_incident_count(session_factory, site.id) == 1
        for incident in await _rows(session_factory, Incident, site_id=site.id):
            if incident.resolved:
                assert incident.end_time >= incident.start_time


class TestInconsistentState:
    async def test_recovery_without_open_incident_only_records_check(self, manager, session_factory, site, sender):
        async with session_factory() as session:
            session.add(Check(site_id=site.id, up=False, error="HTTP Status: 500"))
            await session.commit()

        outcome = await manager.record_check(site, up_result())

        assert outcome.transition == TRANSITION_UP
        assert outcome.incident_id is None
        assert outcome.notification_sent is False
        assert len(await _rows(session_factory, Check, site_id=site.id)) == 2
        assert sender.sent == []

    async def test_failure_with_leftover_open_incident_reuses_it(self, manager, session_factory, site):
        async with session_factory() as session:
            leftover = Incident(site_id=site.id, resolved=False, up=False)
            session.add(leftover)
            await session.commit()

        outcome = await manager.record_check(site, down_result())

        assert outcome.incident_id == leftover.id
        assert len(await _rows(session_factory, Incident, site_id=site.id)) == 1


class TestPersistenceFailures:
    async def test_database_error_still_returns_verdict(self, broken_engine, throttle, site, sender):
        factory = async_sessionmaker(broken_engine, class_=AsyncSession, expire_on_commit=False)
        manager = IncidentManager(session_factory=factory, throttle=throttle)

        outcome = await manager.record_check(site, down_result())

        assert outcome.up is False
        assert outcome.check_id is None
        assert outcome.transition is None
        assert outcome.error == "HTTP Status: 500 Internal Server Error"
        assert sender.sent == []

    async def test_notification_lookup_failure_still_returns_outcome(self, engine, manager, session_factory, site, sender):
        async with engine.begin() as conn:
            await conn.run_sync(Notification.__table__.drop)

        outcome = await manager.record_check(site, down_result())

        assert outcome.transition == TRANSITION_DOWN
        assert outcome.check_id is not None
        assert outcome.incident_id is not None
        assert outcome.notification_sent is False
        assert sender.sent == []
        assert await _open_incident_count(session_factory, site.id) == 1


class TestOpenIncidentIndex:
    async def test_second_open_incident_rejected(self, session_factory, site):
        async with session_factory() as session:
            session.add(Incident(site_id=site.id, resolved=False, up=False))
            await session.commit()

            session.add(Incident(site_id=site.id, resolved=False, up=False))
            with pytest.raises(IntegrityError):
                await session.commit()

    async def test_resolved_incidents_do_not_conflict(self, session_factory, site):
        async with session_factory() as session:
            session.add_all([
                Incident(site_id=site.id, resolved=True, up=True),
                Incident(site_id=site.id, resolved=True, up=True),
                Incident(site_id=site.id, resolved=False, up=False),
            ])
            await session.commit()

        assert await _open_incident_count(session_factory, site.id) == 1
