"""APScheduler wrapper for periodic maintenance.

Provides:
- Async-compatible scheduler
- Job management (add, remove, list)
- Graceful shutdown handling
- Integration with Prometheus metrics

Usage:
    scheduler = MaintenanceScheduler()

    scheduler.add_job(
        CacheHealthCheckJob(cache),
        job_id="media_cache_health",
        trigger="interval",
        seconds=600,
    )

    scheduler.start()
    ...
    await scheduler.shutdown()
"""

from typing import Any, Callable, Dict, List

from apscheduler.events import (
    EVENT_JOB_ERROR,
    EVENT_JOB_EXECUTED,
    EVENT_JOB_MISSED,
    JobExecutionEvent,
)
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from eventhub.observability.logging import get_logger
from eventhub.observability.metrics import SCHEDULER_JOBS

logger = get_logger("scheduler")


class MaintenanceScheduler:
    """Async scheduler for cache and job-registry maintenance.

    Wraps APScheduler's AsyncIOScheduler with job bookkeeping, logging
    of execution events and scheduler gauges. Unlike a standalone daemon
    it runs inside the API server's event loop, so start() returns
    immediately.
    """

    def __init__(
        self,
        timezone: str = "UTC",
        max_instances: int = 1,
        coalesce: bool = True,
        misfire_grace_time: int = 60,
    ):
        """Initialize maintenance scheduler.

        Args:
            timezone: Timezone for job scheduling
            max_instances: Max concurrent instances per job
            coalesce: Coalesce missed executions
            misfire_grace_time: Grace time for missed jobs (seconds)
        """
        self.scheduler = AsyncIOScheduler(
            timezone=timezone,
            job_defaults={
                "max_instances": max_instances,
                "coalesce": coalesce,
                "misfire_grace_time": misfire_grace_time,
            },
        )

        self._running = False
        self._jobs: Dict[str, Any] = {}

        self.scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)

        logger.info("scheduler_initialized", timezone=timezone)

    def add_job(
        self,
        func: Callable,
        job_id: str,
        trigger: str = "interval",
        **trigger_args: Any,
    ) -> str:
        """Add a job to the scheduler.

        Args:
            func: Async callable to execute
            job_id: Unique job identifier
            trigger: Trigger type ('interval' or 'cron')
            **trigger_args: Trigger-specific arguments

        Returns:
            Job ID
        """
        if trigger == "cron":
            trigger_obj = CronTrigger(**trigger_args)
        elif trigger == "interval":
            trigger_obj = IntervalTrigger(**trigger_args)
        else:
            raise ValueError(f"Unsupported trigger: {trigger}")

        job = self.scheduler.add_job(
            func,
            trigger=trigger_obj,
            id=job_id,
            name=job_id,
            replace_existing=True,
        )
        self._jobs[job_id] = job

        next_run = getattr(job, "next_run_time", None)
        logger.info(
            "scheduled_job_added",
            job_id=job_id,
            trigger=trigger,
            next_run=str(next_run) if next_run else "not scheduled",
        )

        self._update_metrics()
        return job_id

    def remove_job(self, job_id: str) -> bool:
        """Remove a job from the scheduler.

        Returns:
            True if job was removed, False if not found
        """
        try:
            self.scheduler.remove_job(job_id)
        except Exception as e:
            logger.warning("scheduled_job_remove_failed", job_id=job_id, error=str(e))
            return False

        self._jobs.pop(job_id, None)
        logger.info("scheduled_job_removed", job_id=job_id)
        self._update_metrics()
        return True

    def get_jobs(self) -> List[Dict[str, Any]]:
        """Get list of all scheduled jobs."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append(
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run_time": str(next_run) if next_run else None,
                    "pending": getattr(job, "pending", False),
                }
            )
        return jobs

    def start(self) -> None:
        """Start executing jobs on the running event loop."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self.scheduler.start()
        self._running = True
        logger.info("scheduler_started", jobs=len(self._jobs))
        self._update_metrics()

    async def shutdown(self, wait: bool = False) -> None:
        """Shutdown the scheduler.

        Args:
            wait: Wait for running jobs to complete
        """
        if not self._running:
            return

        self.scheduler.shutdown(wait=wait)
        self._running = False
        logger.info("scheduler_stopped")

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        logger.debug(
            "scheduled_job_executed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time),
        )
        self._update_metrics()

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        logger.error(
            "scheduled_job_failed",
            job_id=event.job_id,
            exception=str(event.exception),
            traceback=event.traceback,
        )
        self._update_metrics()

    def _on_job_missed(self, event: JobExecutionEvent) -> None:
        logger.warning(
            "scheduled_job_missed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time),
        )
        self._update_metrics()

    def _update_metrics(self) -> None:
        jobs = self.scheduler.get_jobs()
        pending = sum(1 for j in jobs if getattr(j, "pending", False))

        SCHEDULER_JOBS.labels(status="pending").set(pending)
        SCHEDULER_JOBS.labels(status="scheduled").set(len(jobs) - pending)

    @property
    def is_running(self) -> bool:
        return self._running
