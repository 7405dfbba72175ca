"""Scheduled housekeeping for a running MyKhata service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import SchedulerConfig
    from .service import MyKhata

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Runs cache purges and category profile refreshes in the background.

    Uses APScheduler's asyncio scheduler, so it must be started from within
    a running event loop.
    """

    def __init__(self, service: MyKhata, config: SchedulerConfig) -> None:
        """Initialize scheduler for a service.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
            from apscheduler.triggers.interval import IntervalTrigger
        except ImportError:
            raise ImportError(
                "apscheduler is required: pip install 'mykhata[scheduler]'"
            )

        self._service = service
        self._config = config
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._IntervalTrigger = IntervalTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        if self._config.purge_interval > 0:
            self._scheduler.add_job(
                self._job_purge_cache,
                trigger=self._IntervalTrigger(seconds=self._config.purge_interval),
                id="purge_cache",
                name="Purge expired cache entries",
                replace_existing=True,
            )
            logger.info(
                "Registered cache purge job: every %ds", self._config.purge_interval
            )

        if self._config.profile_refresh_schedule:
            trigger = self._parse_cron(self._config.profile_refresh_schedule)
            self._scheduler.add_job(
                self._job_refresh_profiles,
                trigger=trigger,
                id="refresh_profiles",
                name="Rebuild category profiles",
                replace_existing=True,
            )
            logger.info(
                "Registered profile refresh job: %s",
                self._config.profile_refresh_schedule,
            )

    def start(self) -> None:
        """Start the scheduler."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Maintenance scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Maintenance scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"Invalid cron expression: {expr}")

    async def _job_purge_cache(self) -> None:
        try:
            removed = self._service.purge_expired_cache()
            if removed:
                logger.info("Purged %d expired cache entries", removed)
        except Exception:
            logger.exception("Cache purge job failed")

    async def _job_refresh_profiles(self) -> None:
        logger.info("Refreshing category profiles...")
        try:
            self._service.refresh_profiles()
        except Exception:
            logger.exception("Profile refresh job failed")
