"""Scheduler service - one recurring check job per registered site.

Overlap policy:
- A scheduled firing is skipped while a previous check of the same site is
  still running (per-site lock, plus max_instances=1 on the job)
- Manual checks wait for the in-flight check to finish and then run
- Firings of different sites never wait on each other
"""
import asyncio
import logging
from typing import Dict, List, Optional

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from ..config import settings
from ..database import async_session
from ..models import Site
from ..utils.time_utils import utcnow
from .incidents import CheckOutcome, incident_manager
from .prober import probe_service
from .site_events import SiteEvent, site_events

logger = logging.getLogger(__name__)

MIN_INTERVAL_MINUTES = 1


class InvalidIntervalError(ValueError):
    """Raised when a site's check interval is below the minimum."""


def validate_interval(interval) -> int:
    if interval is None or int(interval) < MIN_INTERVAL_MINUTES:
        raise InvalidIntervalError(
            f"Interval must be at least {MIN_INTERVAL_MINUTES} minute, got {interval}"
        )
    return int(interval)


class SchedulerService:
    """Owns the per-site check jobs and runs probe + incident handling."""

    def __init__(self, prober=None, manager=None, session_factory=None, events=None):
        self.prober = prober or probe_service
        self.manager = manager or incident_manager
        self.session_factory = session_factory or async_session
        self.events = events or site_events
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._jobs: Dict[int, Job] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler and listen for site registry events."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.start()
        self.events.subscribe(self._on_site_event)
        self._running = True
        logger.info("Scheduler started")

    def stop(self):
        """Stop the scheduler. Checks already running finish on their own."""
        if not self._running:
            return

        self.events.unsubscribe(self._on_site_event)
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self._jobs.clear()
        # Locks held by running checks stay so later manual checks still queue
        self._locks = {site_id: lock for site_id, lock in self._locks.items() if lock.locked()}
        self._running = False
        logger.info("Scheduler stopped")

    async def initialize_schedules(self) -> int:
        """Schedule every registered site. Returns the number scheduled.

        Jobs live only in memory, so this restores monitoring after a restart.
        """
        async with self.session_factory() as session:
            result = await session.execute(select(Site).order_by(Site.id))
            sites = result.scalars().all()

        scheduled = 0
        for site in sites:
            try:
                self.schedule_site_check(site)
                scheduled += 1
            except InvalidIntervalError as e:
                logger.error(f"Not scheduling site {site.id} ({site.url}): {e}")

        logger.info(f"Scheduled checks for {scheduled}/{len(sites)} sites")
        return scheduled

    def schedule_site_check(self, site: Site, run_now: bool = False) -> Job:
        """Start the recurring check for a site, replacing any existing job."""
        interval = validate_interval(site.interval)
        if self.scheduler is None:
            raise RuntimeError("Scheduler is not running")

        self.stop_site_check(site.id)

        job_kwargs = {}
        if run_now:
            job_kwargs["next_run_time"] = utcnow()

        job = self.scheduler.add_job(
            self._run_scheduled_check,
            trigger=IntervalTrigger(minutes=interval, timezone="UTC"),
            args=[site.id],
            id=f"site-check-{site.id}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
            **job_kwargs,
        )
        self._jobs[site.id] = job
        logger.info(f"Scheduled site {site.id} ({site.url}) every {interval} min")
        return job

    def stop_site_check(self, site_id: int) -> bool:
        """Cancel a site's job. Returns False if none was scheduled."""
        job = self._jobs.pop(site_id, None)
        if job is None:
            return False

        try:
            job.remove()
        except JobLookupError:
            pass
        logger.info(f"Stopped checks for site {site_id}")
        return True

    def is_scheduled(self, site_id: int) -> bool:
        return site_id in self._jobs

    @property
    def scheduled_site_ids(self) -> List[int]:
        return sorted(self._jobs)

    def _get_lock(self, site_id: int) -> asyncio.Lock:
        lock = self._locks.get(site_id)
        if lock is None:
            lock = self._locks[site_id] = asyncio.Lock()
        return lock

    async def _probe_and_record(self, site: Site) -> CheckOutcome:
        probe_result = await self.prober.probe(site.url)
        return await self.manager.record_check(site, probe_result)

    async def check_site(self, site: Site) -> CheckOutcome:
        """Check a site now, waiting for any in-flight check of it first."""
        async with self._get_lock(site.id):
            return await self._probe_and_record(site)

    async def check_all(self) -> List[CheckOutcome]:
        """Check every registered site now with bounded concurrency."""
        async with self.session_factory() as session:
            result = await session.execute(select(Site).order_by(Site.id))
            sites = result.scalars().all()

        semaphore = asyncio.Semaphore(settings.max_concurrent_checks)

        async def check_with_limit(site: Site) -> CheckOutcome:
            async with semaphore:
                return await self.check_site(site)

        return list(await asyncio.gather(*[check_with_limit(site) for site in sites]))

    async def _load_site(self, site_id: int) -> Optional[Site]:
        async with self.session_factory() as session:
            result = await session.execute(select(Site).where(Site.id == site_id))
            return result.scalar_one_or_none()

    async def _run_scheduled_check(self, site_id: int):
        """Job body. Failures only reach the logs."""
        if site_id not in self._jobs:
            logger.debug(f"Site {site_id} was unscheduled, dropping firing")
            return

        lock = self._get_lock(site_id)
        if lock.locked():
            logger.warning(f"Skipping check for site {site_id}: previous check still running")
            return

        async with lock:
            try:
                site = await self._load_site(site_id)
                if site is None:
                    logger.info(f"Site {site_id} no longer exists, unscheduling")
                    self.stop_site_check(site_id)
                    return

                logger.info(f"Running check for site: {site.url}")
                outcome = await self._probe_and_record(site)
                logger.debug(f"Site {site_id}: up={outcome.up} transition={outcome.transition}")
            except Exception as e:
                logger.error(f"Error checking site {site_id}: {e}")

    async def _on_site_event(self, event: SiteEvent, site: Site):
        if event == SiteEvent.REMOVED:
            self.stop_site_check(site.id)
            lock = self._locks.get(site.id)
            if lock is not None and not lock.locked():
                del self._locks[site.id]
        elif event == SiteEvent.ADDED:
            # New sites get their first check right away
            self.schedule_site_check(site, run_now=True)
        elif event == SiteEvent.UPDATED:
            self.schedule_site_check(site)


# Global instance
scheduler_service = SchedulerService()
