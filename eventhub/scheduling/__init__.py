"""Scheduling module.

Provides:
- APScheduler wrapper running inside the API server's event loop
- Maintenance jobs (media cache health check, job registry report)

Usage:
    from eventhub.scheduling import MaintenanceScheduler, CacheHealthCheckJob

    scheduler = MaintenanceScheduler()
    scheduler.add_job(
        CacheHealthCheckJob(cache),
        job_id="media_cache_health",
        trigger="interval",
        seconds=600,
    )
    scheduler.start()
"""

from eventhub.scheduling.jobs import (
    BaseJob,
    CacheHealthCheckJob,
    JobHistoryReportJob,
)
from eventhub.scheduling.scheduler import MaintenanceScheduler

__all__ = [
    "MaintenanceScheduler",
    "BaseJob",
    "CacheHealthCheckJob",
    "JobHistoryReportJob",
]
