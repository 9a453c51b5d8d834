"""
Scheduling service for periodic order status reconciliation.

Runs the status sync job on a fixed interval with APScheduler. Runs never
overlap; missed runs are coalesced into one.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cj_fulfillment.utils.config import get_config
from cj_fulfillment.utils.exceptions import SchedulingError
from cj_fulfillment.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_SYNC_JOB_ID = "order_status_sync"

SyncJob = Callable[[], Awaitable[Dict[str, Any]]]


class StatusSyncScheduler:
    """
    Periodic runner for the order status sync job.

    Args:
        job: Coroutine function performing one sync pass
        interval_minutes: Minutes between runs (defaults to configuration)
    """

    def __init__(self, job: SyncJob, interval_minutes: Optional[int] = None):
        self.job = job
        self.interval_minutes = interval_minutes or get_config().app.status_sync_interval_minutes
        self.last_stats: Optional[Dict[str, Any]] = None
        self.history: List[Dict[str, Any]] = []
        self.scheduler = self._create_scheduler()

        logger.info(f"StatusSyncScheduler initialized (every {self.interval_minutes} min)")

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure APScheduler instance."""
        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            executors={'default': AsyncIOExecutor()},
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 60,
            },
            timezone='UTC',
        )

        scheduler.add_listener(self._job_executed_listener, EVENT_JOB_EXECUTED)
        scheduler.add_listener(self._job_error_listener, EVENT_JOB_ERROR)

        return scheduler

    async def _run_job(self) -> Dict[str, Any]:
        logger.info("Running scheduled order status sync")
        stats = await self.job()
        self.last_stats = stats
        self.history.append(stats)
        del self.history[:-50]
        return stats

    def start(self, run_immediately: bool = False) -> None:
        """
        Register the sync job and start the scheduler.

        Must be called with a running asyncio event loop.

        Raises:
            SchedulingError: If the scheduler cannot be started
        """
        try:
            self.scheduler.add_job(
                self._run_job,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                id=STATUS_SYNC_JOB_ID,
                name="Order status sync",
                replace_existing=True,
            )
            if run_immediately:
                # One-off run now, in addition to the interval schedule
                self.scheduler.add_job(self._run_job, id=f"{STATUS_SYNC_JOB_ID}_initial",
                                       replace_existing=True)

            self.scheduler.start()
            logger.info(f"Scheduler started, status sync every {self.interval_minutes} min")
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise SchedulingError(f"Scheduler start failed: {e}")

    def stop(self) -> None:
        """Stop the scheduler, waiting for a running job to finish."""
        if self.scheduler.running:
            logger.info("Stopping scheduler")
            self.scheduler.shutdown(wait=True)

    def _job_executed_listener(self, event: JobExecutionEvent):
        """Handle job execution events."""
        logger.debug(f"Job executed: {event.job_id}")

    def _job_error_listener(self, event: JobExecutionEvent):
        """Handle job error events."""
        logger.error(f"Job error: {event.job_id} - {event.exception}")

    def get_status(self) -> Dict[str, Any]:
        """
        Get current scheduler status.

        Returns:
            Dict with scheduler status information
        """
        job = self.scheduler.get_job(STATUS_SYNC_JOB_ID)
        return {
            "running": self.scheduler.running,
            "interval_minutes": self.interval_minutes,
            "next_run": str(job.next_run_time) if job else None,
            "runs": len(self.history),
            "last_stats": self.last_stats,
        }
