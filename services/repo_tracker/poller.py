"""
Scheduler for periodic commit polling of the tracked repository.

Each run probes the most recent commits and inserts the ones missing from the
store. Polling never backfills; that only happens when tracking starts.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from shared.exceptions import GitHubAPIError, PollError
from shared.models import SyncResult
from services.repo_tracker.reconciler import Reconciler
from services.repo_tracker.tracking import TrackingSession

logger = logging.getLogger(__name__)

POLL_JOB_ID = "commit_polling_job"


class CommitPoller:
    """Recurring top-up of the tracked repository."""

    def __init__(
        self,
        reconciler: Reconciler,
        session: TrackingSession,
        interval_seconds: Optional[float] = None,
    ):
        self.reconciler = reconciler
        self.session = session
        self.interval_seconds = interval_seconds or settings.sync.poll_interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def run_once(self) -> Optional[SyncResult]:
        """
        Poll the tracked repository once.

        Returns None when nothing is tracked. Commits inserted before a failure
        stay stored.

        Raises:
            PollError: listing, payload or store failure during this run.
        """
        if self.session.tracked is None:
            return None

        async with self.session.lock:
            repository = self.session.tracked
            owner, name = repository.split("/", 1)
            try:
                result = await self.reconciler.top_up(owner, name)
            except (GitHubAPIError, SQLAlchemyError, ValidationError) as e:
                raise PollError(repository, e) from e

        if result.inserted:
            logger.info(f"[{repository}] Poll inserted {result.inserted} commits")
        return result

    async def poll_job(self) -> None:
        """Scheduler entry point; a failed run is logged and the schedule continues."""
        try:
            await self.run_once()
        except PollError as e:
            logger.error(f"Polling error for {e.repository}: {e.cause}")

    def start(self) -> AsyncIOScheduler:
        """
        Start the async scheduler for periodic polling.

        Must be called from a running event loop.
        """
        if self._scheduler is not None:
            logger.warning("Scheduler already running")
            return self._scheduler

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.poll_job,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=POLL_JOB_ID,
            name="Tracked Repository Polling",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Scheduler started. Polling interval: {self.interval_seconds} seconds")
        return self._scheduler

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is None:
            logger.warning("No scheduler running")
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    def status(self) -> dict:
        """Current scheduler status."""
        next_run = None
        running = False
        if self._scheduler is not None:
            running = self._scheduler.running
            job = self._scheduler.get_job(POLL_JOB_ID)
            if job is not None and job.next_run_time:
                next_run = job.next_run_time.isoformat()

        return {
            "running": running,
            "next_run": next_run,
            "poll_interval": self.interval_seconds,
            "tracked_repository": self.session.tracked,
        }
