"""Health check implementations for the media cache and job registry.

Provides checks for:
- Media cache utilization (warns when nearly full)
- Media cache integrity (warns when the last sweep found corruption)
- Job registry load (warns when too many jobs are active)

Usage:
    checker = HealthChecker(cache, tracker)

    report = await checker.check_all()
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

from eventhub.observability.logging import get_logger
from eventhub.services.job_tracker import JobTracker
from eventhub.services.media_cache_service import MediaCacheService

logger = get_logger("health")


class HealthStatus(str, Enum):
    """Overall health status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class CheckStatus(str, Enum):
    """Individual check status."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass
class CheckResult:
    """Result of a single health check."""

    name: str
    status: CheckStatus
    message: str
    duration_ms: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "duration_ms": round(self.duration_ms, 2),
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class HealthReport:
    """Complete health report with all check results."""

    status: HealthStatus
    checks: List[CheckResult]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "checks": [c.to_dict() for c in self.checks],
            "timestamp": self.timestamp.isoformat(),
        }


class HealthChecker:
    """Health checker for the media cache and background job registry."""

    def __init__(
        self,
        cache: MediaCacheService,
        tracker: JobTracker,
        utilization_warning_percent: float = 90.0,
        active_jobs_warning: int = 50,
    ):
        """Initialize health checker.

        Args:
            cache: Media cache to inspect
            tracker: Job registry to inspect
            utilization_warning_percent: Cache fill level that triggers a warning
            active_jobs_warning: Active job count that triggers a warning
        """
        self.cache = cache
        self.tracker = tracker
        self.utilization_warning_percent = utilization_warning_percent
        self.active_jobs_warning = active_jobs_warning

    async def check_all(self) -> HealthReport:
        """Run all health checks and return comprehensive report."""
        checks: List[CheckResult] = []

        results = await asyncio.gather(
            self.check_cache_utilization(),
            self.check_cache_integrity(),
            self.check_job_tracker(),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, Exception):
                checks.append(
                    CheckResult(
                        name="unknown",
                        status=CheckStatus.FAIL,
                        message=f"Check failed: {str(result)}",
                    )
                )
            elif isinstance(result, CheckResult):
                checks.append(result)

        return HealthReport(status=self._determine_overall_status(checks), checks=checks)

    def _determine_overall_status(self, checks: List[CheckResult]) -> HealthStatus:
        if any(c.status == CheckStatus.FAIL for c in checks):
            return HealthStatus.UNHEALTHY
        if any(c.status == CheckStatus.WARN for c in checks):
            return HealthStatus.DEGRADED
        return HealthStatus.HEALTHY

    async def check_cache_utilization(self) -> CheckResult:
        start = time.time()
        name = "media_cache_utilization"

        if not self.cache.enabled:
            return CheckResult(
                name=name,
                status=CheckStatus.WARN,
                message="Media cache disabled",
                duration_ms=(time.time() - start) * 1000,
            )

        stats = self.cache.stats()
        details = {
            "current_size": stats.current_size,
            "max_size": stats.max_size,
            "item_count": stats.item_count,
            "utilization_percent": stats.utilization_percent,
            "hit_rate": stats.hit_rate,
        }
        duration_ms = (time.time() - start) * 1000

        if stats.utilization_percent > self.utilization_warning_percent:
            return CheckResult(
                name=name,
                status=CheckStatus.WARN,
                message=f"Media cache nearly full: {stats.utilization_percent}%",
                duration_ms=duration_ms,
                details=details,
            )
        return CheckResult(
            name=name,
            status=CheckStatus.PASS,
            message=f"Media cache OK: {stats.utilization_percent}% used",
            duration_ms=duration_ms,
            details=details,
        )

    async def check_cache_integrity(self) -> CheckResult:
        start = time.time()
        name = "media_cache_integrity"
        report = self.cache.last_health_report

        if report is None:
            return CheckResult(
                name=name,
                status=CheckStatus.PASS,
                message="No health sweep has run yet",
                duration_ms=(time.time() - start) * 1000,
            )

        details = {
            "corrupted": report.corrupted,
            "expired_purged": report.expired_purged,
            "checked_at": report.checked_at.isoformat(),
        }
        duration_ms = (time.time() - start) * 1000

        if report.corrupted > 0:
            return CheckResult(
                name=name,
                status=CheckStatus.WARN,
                message=f"Last sweep removed {report.corrupted} corrupted entries",
                duration_ms=duration_ms,
                details=details,
            )
        return CheckResult(
            name=name,
            status=CheckStatus.PASS,
            message="Last sweep found no corruption",
            duration_ms=duration_ms,
            details=details,
        )

    async def check_job_tracker(self) -> CheckResult:
        start = time.time()
        name = "job_tracker"

        summary = self.tracker.stats()
        active = summary["active"]
        duration_ms = (time.time() - start) * 1000

        if active > self.active_jobs_warning:
            return CheckResult(
                name=name,
                status=CheckStatus.WARN,
                message=f"{active} background jobs active",
                duration_ms=duration_ms,
                details=summary,
            )
        return CheckResult(
            name=name,
            status=CheckStatus.PASS,
            message=f"Job registry OK: {active} active",
            duration_ms=duration_ms,
            details=summary,
        )

    async def is_ready(self) -> bool:
        """Ready when no check fails outright."""
        try:
            report = await self.check_all()
        except Exception as e:
            logger.warning("readiness_check_failed", error=str(e))
            return False
        return report.status != HealthStatus.UNHEALTHY

    async def is_alive(self) -> bool:
        return True
