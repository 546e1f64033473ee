"""APScheduler-based monitor scheduler.

Registers one periodic job per frequency tier. Each job asks the monitor
runner for the monitors due in that tier and runs them as one batch. A
daily job removes old archived offers.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from priceradar.config import settings
from priceradar.core.exceptions import ConfigurationMissingError
from priceradar.scrapers.monitor_runner import BatchResult, MonitorRunner
from priceradar.services.offer_service import OfferService

logger = structlog.get_logger(__name__)

CLEANUP_JOB_ID = "cleanup_offers"


def _next_run(job: Job) -> Optional[str]:
    # Jobs added before start() have no next_run_time yet
    next_run_time = getattr(job, "next_run_time", None)
    return next_run_time.isoformat() if next_run_time else None


class MonitorScheduler:
    """Manages the periodic monitor batches using APScheduler.

    This scheduler:
    - Runs one batch job per frequency tier (e.g., 3 and 30 minutes)
    - Staggers the first run of each tier
    - Never lets two batches of the same tier overlap
    - Logs failures without stopping the scheduler
    """

    def __init__(
        self,
        db_session_factory: async_sessionmaker[AsyncSession],
        runner_factory: Optional[Callable[[], MonitorRunner]] = None,
    ):
        """Initialize monitor scheduler.

        Args:
            db_session_factory: Async session factory for database access
            runner_factory: Builds the MonitorRunner for each batch (defaults
                to wiring one from settings)
        """
        self.db_session_factory = db_session_factory
        self.runner_factory = runner_factory or (
            lambda: MonitorRunner.from_settings(db_session_factory, settings)
        )
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="monitor_scheduler")
        self._job_ids: Dict[int, str] = {}  # frequency_minutes -> job_id

    def start(self) -> None:
        """Start the scheduler.

        Jobs are not added automatically. Call load_tier_jobs() to register them.
        """
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        """Stop the scheduler, waiting for running batches to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def load_tier_jobs(self, tiers: Optional[List[int]] = None) -> int:
        """Schedule a batch job for every frequency tier plus the cleanup job.

        Args:
            tiers: Frequency tiers in minutes (defaults to SCHEDULER_FREQUENCY_TIERS)

        Returns:
            Number of tier jobs scheduled
        """
        tiers = settings.get_frequency_tiers() if tiers is None else tiers

        jobs_added = 0
        for idx, frequency_minutes in enumerate(tiers):
            # Stagger tiers by 20 seconds so they don't fire together
            if self.add_tier_job(frequency_minutes, offset_seconds=idx * 20):
                jobs_added += 1

        self.add_cleanup_job()

        self.logger.info("tier_jobs_loaded", count=jobs_added, tiers=tiers)
        return jobs_added

    def add_tier_job(self, frequency_minutes: int, offset_seconds: int = 0) -> Optional[Job]:
        """Add the periodic batch job for one frequency tier.

        Args:
            frequency_minutes: Tier interval, also used as the due threshold
            offset_seconds: Initial delay before the first run

        Returns:
            APScheduler Job instance or None if the tier is already scheduled
        """
        if frequency_minutes in self._job_ids:
            self.logger.warning("job_already_exists", frequency_minutes=frequency_minutes)
            return None

        trigger = IntervalTrigger(
            minutes=frequency_minutes,
            start_date=datetime.now(timezone.utc),
            timezone="UTC",
        )

        job = self.scheduler.add_job(
            func=self._run_batch_wrapper,
            trigger=trigger,
            args=[frequency_minutes],
            id=f"monitors_{frequency_minutes}m",
            name=f"Run {frequency_minutes}-minute monitors",
            replace_existing=True,
            max_instances=1,  # A slow batch must not overlap the next one
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=offset_seconds),
        )
        self._job_ids[frequency_minutes] = job.id

        self.logger.info(
            "tier_job_added",
            frequency_minutes=frequency_minutes,
            offset_seconds=offset_seconds,
            next_run=_next_run(job),
        )
        return job

    def remove_tier_job(self, frequency_minutes: int) -> bool:
        """Remove the batch job for a tier.

        Returns:
            True if job was removed, False if not found
        """
        job_id = self._job_ids.pop(frequency_minutes, None)
        if not job_id:
            self.logger.warning("job_not_found", frequency_minutes=frequency_minutes)
            return False

        self.scheduler.remove_job(job_id)
        self.logger.info("tier_job_removed", frequency_minutes=frequency_minutes)
        return True

    def add_cleanup_job(self, interval_hours: int = 24) -> Job:
        """Add the job that deletes archived offers past the retention window."""
        return self.scheduler.add_job(
            func=self._run_cleanup_wrapper,
            trigger=IntervalTrigger(hours=interval_hours, timezone="UTC"),
            id=CLEANUP_JOB_ID,
            name="Delete old archived offers",
            replace_existing=True,
            max_instances=1,
        )

    async def _run_batch_wrapper(self, frequency_minutes: int) -> None:
        """Called by APScheduler. Catches everything so the job keeps firing."""
        try:
            await self.run_batch(frequency_minutes)
        except ConfigurationMissingError as e:
            self.logger.error(
                "batch_skipped_missing_configuration",
                frequency_minutes=frequency_minutes,
                setting=e.setting,
            )
        except Exception as e:
            self.logger.error(
                "batch_job_failed",
                frequency_minutes=frequency_minutes,
                error=str(e),
                exc_info=True,
            )

    async def run_batch(self, frequency_minutes: int) -> BatchResult:
        """Run one batch for a tier with a freshly wired runner, closed afterwards.

        Raises:
            ConfigurationMissingError: If the runner cannot be wired
        """
        runner = self.runner_factory()
        try:
            return await runner.run_batch(frequency_minutes)
        finally:
            await runner.aclose()

    async def _run_cleanup_wrapper(self) -> None:
        try:
            await self.run_cleanup()
        except Exception as e:
            self.logger.error("cleanup_job_failed", error=str(e), exc_info=True)

    async def run_cleanup(self, days_old: Optional[int] = None) -> int:
        """Delete archived offers older than the retention window.

        Returns:
            Number of offers deleted
        """
        days_old = settings.OFFER_RETENTION_DAYS if days_old is None else days_old
        async with self.db_session_factory() as db:
            return await OfferService(db).delete_older_than(days_old)

    def get_jobs_status(self) -> dict:
        """Get status of all scheduled tier jobs.

        Returns:
            Dict with job information keyed by frequency in minutes
        """
        jobs = {}
        for frequency_minutes, job_id in self._job_ids.items():
            job = self.scheduler.get_job(job_id)
            if job:
                jobs[frequency_minutes] = {
                    "job_id": job_id,
                    "next_run": _next_run(job),
                    "trigger": str(job.trigger),
                }
        return jobs

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running
