"""Shared fixtures: in-memory database and service instances wired to fakes."""
from datetime import timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sitewatch import models  # noqa: F401
from sitewatch.database import Base
from sitewatch.models import Site
from sitewatch.services.incidents import IncidentManager
from sitewatch.services.throttle import NotificationThrottle

from tests.fakes import FakeSender


def _memory_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture
async def engine():
    engine = _memory_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def broken_engine():
    """An engine whose database has no tables, so every query fails."""
    engine = _memory_engine()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def site(session_factory) -> Site:
    async with session_factory() as session:
        site = Site(url="example.com", email="ops@example.com", interval=1, monitor_type="http")
        session.add(site)
        await session.commit()
        await session.refresh(site)
        return site


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def throttle(sender) -> NotificationThrottle:
    return NotificationThrottle(sender=sender, window=timedelta(minutes=30))


@pytest.fixture
def manager(session_factory, throttle) -> IncidentManager:
    return IncidentManager(session_factory=session_factory, throttle=throttle)
