"""Scheduler service - manages periodic monitoring checks.

Design:
- One APScheduler driver ticks at a fixed cadence (once per minute by default)
- Each tick selects due monitors and spawns one asyncio task per monitor
- The tick does not wait for its tasks; a semaphore bounds concurrent probes
- Monitors with a task still in flight are skipped by later ticks
- Heartbeat and retention pruning run as separate jobs
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..config import settings
from ..database import async_session
from ..models import Monitor
from ..utils.clock import utcnow
from .check_service import check_service, CheckService
from .heartbeat import heartbeat_recorder, HeartbeatRecorder
from .pruner import retention_pruner, RetentionPruner

logger = logging.getLogger(__name__)


def is_monitor_due(
    check_interval_minutes: int,
    last_checked_at: Optional[datetime],
    now: datetime,
) -> bool:
    """A monitor is due if never checked or its interval has fully elapsed."""
    if last_checked_at is None:
        return True
    return last_checked_at + timedelta(minutes=check_interval_minutes) <= now


class SchedulerService:
    """Service for scheduling and running periodic checks."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        checks: Optional[CheckService] = None,
        heartbeat: Optional[HeartbeatRecorder] = None,
        pruner: Optional[RetentionPruner] = None,
        max_concurrent_checks: Optional[int] = None,
        tick_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory or async_session
        self.checks = checks or check_service
        self.heartbeat = heartbeat or heartbeat_recorder
        self.pruner = pruner or retention_pruner
        self.max_concurrent_checks = max_concurrent_checks or settings.max_concurrent_checks
        self.tick_seconds = tick_seconds or settings.scheduler_tick_seconds

        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._semaphore: Optional[asyncio.Semaphore] = None
        # monitor_id -> task currently checking it
        self._in_flight: Dict[int, asyncio.Task] = {}

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self.run_checks,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="run_checks",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=self.tick_seconds,
            next_run_time=datetime.now(),
        )

        self.scheduler.add_job(
            self.record_heartbeat,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id="scheduler_heartbeat",
            replace_existing=True,
            max_instances=1,
            next_run_time=datetime.now(),
        )

        self.scheduler.add_job(
            self.prune_checks,
            trigger=CronTrigger(hour=settings.prune_hour_utc, minute=0, timezone="UTC"),
            id="prune_checks",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={self.tick_seconds}s, max_concurrent={self.max_concurrent_checks})")

    def stop(self):
        """Stop the scheduler. In-flight checks are left to finish."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def in_flight(self) -> Set[int]:
        return set(self._in_flight)

    async def find_due_monitors(self, now: datetime) -> List[int]:
        """IDs of monitors whose next check time has arrived."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(Monitor.id, Monitor.check_interval_minutes, Monitor.last_checked_at)
                .order_by(Monitor.id)
            )
            rows = result.fetchall()

        return [
            monitor_id
            for monitor_id, interval, last_checked in rows
            if is_monitor_due(interval, last_checked, now)
        ]

    async def tick(self, now: Optional[datetime] = None) -> List[int]:
        """Schedule a check task for every due monitor and return their IDs.

        Returns as soon as the tasks are created.
        """
        now = now or utcnow()
        due = await self.find_due_monitors(now)

        scheduled = []
        for monitor_id in due:
            if monitor_id in self._in_flight:
                logger.debug(f"Monitor {monitor_id} still being checked, skipping")
                continue
            task = asyncio.create_task(self._run_check(monitor_id), name=f"check-monitor-{monitor_id}")
            self._in_flight[monitor_id] = task
            task.add_done_callback(lambda _t, mid=monitor_id: self._in_flight.pop(mid, None))
            scheduled.append(monitor_id)

        if scheduled:
            logger.info(f"Dispatched {len(scheduled)} check(s) out of {len(due)} due monitor(s)")
        return scheduled

    async def wait_for_checks(self):
        """Wait until every in-flight check has finished."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def run_checks(self):
        """Scheduler job: one tick. Errors are logged so the job keeps firing."""
        try:
            await self.tick()
        except Exception:
            logger.exception("Error scheduling monitor checks")

    async def _run_check(self, monitor_id: int):
        """Run one monitor's pipeline; nothing escapes this boundary."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent_checks)
        try:
            async with self._semaphore:
                await self.checks.perform_check(monitor_id)
        except Exception:
            logger.exception(f"Error checking monitor {monitor_id}")

    async def record_heartbeat(self):
        """Scheduler job: write the heartbeat."""
        await self.heartbeat.beat()

    async def prune_checks(self):
        """Scheduler job: apply the retention window."""
        try:
            await self.pruner.prune()
        except Exception:
            logger.exception("Error pruning check history")


# Global instance
scheduler_service = SchedulerService()
