"""Scheduled maintenance jobs.

Provides:
- CacheHealthCheckJob: Periodic media cache corruption and expiry sweep
- JobHistoryReportJob: Periodic summary of the background job registry

Usage:
    from eventhub.scheduling.jobs import CacheHealthCheckJob

    job = CacheHealthCheckJob(cache)
    await job()
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from eventhub.observability.context import correlation_id_context
from eventhub.observability.logging import get_logger, log_context
from eventhub.services.job_tracker import JobTracker
from eventhub.services.media_cache_service import MediaCacheService

logger = get_logger("scheduled_jobs")


class BaseJob(ABC):
    """Base class for scheduled jobs.

    Provides common functionality:
    - Correlation ID management
    - Error handling and logging
    - Execution timing
    """

    def __init__(self, name: str):
        self.name = name
        self.last_run: Optional[datetime] = None
        self.last_success: Optional[datetime] = None
        self.run_count: int = 0
        self.error_count: int = 0

    async def __call__(self) -> Any:
        """Execute the job with correlation ID and error handling."""
        start = time.time()
        corr_id = f"{self.name}-{datetime.utcnow().strftime('%Y%m%d-%H%M%S')}"

        with correlation_id_context(corr_id), log_context(job_name=self.name):
            logger.debug("scheduled_job_starting")

            try:
                result = await self.run()
            except Exception as e:
                self.last_run = datetime.utcnow()
                self.error_count += 1
                logger.error(
                    "scheduled_job_error",
                    error=str(e),
                    exc_info=True,
                )
                raise

            self.last_run = datetime.utcnow()
            self.last_success = self.last_run
            self.run_count += 1

            logger.debug(
                "scheduled_job_finished",
                duration_seconds=round(time.time() - start, 3),
            )
            return result

    @abstractmethod
    async def run(self) -> Any:
        """Execute the job logic."""

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_success": (
                self.last_success.isoformat() if self.last_success else None
            ),
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class CacheHealthCheckJob(BaseJob):
    """Sweep the media cache for corrupted and expired entries."""

    def __init__(self, cache: MediaCacheService):
        super().__init__("media_cache_health")
        self.cache = cache

    async def run(self) -> Dict[str, Any]:
        report = self.cache.perform_health_check()
        return report.model_dump(mode="json")


class JobHistoryReportJob(BaseJob):
    """Log a summary of active and finished background jobs."""

    def __init__(self, tracker: JobTracker):
        super().__init__("job_history_report")
        self.tracker = tracker

    async def run(self) -> Dict[str, Any]:
        summary = self.tracker.stats()
        logger.info("job_registry_report", **summary)
        return summary
