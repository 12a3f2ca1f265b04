"""
Background job registry.

Tracks long-running bulk operations (email sends, bulk notifications,
cache warming) from creation through a single terminal transition, then
keeps a bounded history of finished jobs, newest first.

Lifecycle events are delivered synchronously to registered listeners
after each mutation, in registration order. A failing listener is logged
and never affects the job.
"""

import random
import string
import threading
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from eventhub.models.jobs import (
    Job,
    JobCompleteEvent,
    JobError,
    JobEvent,
    JobProgressEvent,
    JobStatus,
    JobTrackerConfig,
)
from eventhub.observability.logging import get_logger
from eventhub.observability.metrics import ACTIVE_JOBS, JOBS_COMPLETED, JOBS_CREATED
from eventhub.utils.exceptions import (
    InvalidJobTotalError,
    JobAlreadyCompletedError,
    JobStateError,
)

logger = get_logger("job_tracker")

JobListener = Callable[[JobEvent], Any]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def compute_progress(completed: int, total: int) -> int:
    """Integer percent of total, rounded half up and capped at 100."""
    if total <= 0:
        return 0
    # floor(x + 0.5) in integer arithmetic
    percent = (200 * completed + total) // (2 * total)
    return max(0, min(100, percent))


class JobTracker:
    """Registry of active and recently finished background jobs."""

    def __init__(
        self,
        config: Optional[JobTrackerConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize job tracker.

        Args:
            config: Registry configuration (history capacity, limits)
            clock: Wall-clock source for job timestamps (injectable for tests)
        """
        self.config = config or JobTrackerConfig()
        self._clock = clock
        self._lock = threading.RLock()

        self._active: Dict[str, Job] = {}
        self._history: Deque[Job] = deque(maxlen=self.config.history_size)
        self._listeners: List[JobListener] = []

    # ==================== Listeners ====================

    def add_listener(self, callback: JobListener) -> Callable[[], None]:
        """
        Register a lifecycle listener.

        Returns:
            A zero-argument function that unregisters the listener
        """
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            self.remove_listener(callback)

        return unsubscribe

    def remove_listener(self, callback: JobListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

    def _emit(self, event: JobEvent) -> None:
        # Caller holds the lock; listeners may call back into the tracker
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "job_listener_failed",
                    job_id=event.job_id,
                    job_event=event.event,
                    error=str(e),
                    exc_info=True,
                )

    # ==================== Lifecycle ====================

    def _generate_id(self, job_type: str) -> str:
        epoch_ms = int(self._clock().timestamp() * 1000)
        suffix = "".join(random.choices(_ID_ALPHABET, k=9))
        return f"{job_type}_{epoch_ms}_{suffix}"

    def create_job(
        self, job_type: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Job:
        """
        Register a new pending job.

        Args:
            job_type: Kind of work, e.g. "email_notification"
            metadata: Opaque caller data, fixed at creation

        Returns:
            Snapshot of the created job
        """
        now = self._clock()
        with self._lock:
            job_id = self._generate_id(job_type)
            while job_id in self._active:
                job_id = self._generate_id(job_type)

            job = Job(
                id=job_id,
                type=job_type,
                metadata=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
            self._active[job_id] = job
            ACTIVE_JOBS.set(len(self._active))
            snapshot = job.model_copy(deep=True)

        JOBS_CREATED.labels(job_type=job_type).inc()
        logger.info("job_created", job_id=job_id, job_type=job_type)
        return snapshot

    def set_total(self, job_id: str, total: int) -> Optional[Job]:
        """
        Set the work denominator and move the job to running.

        Returns:
            Updated snapshot, or None if the job is not active

        Raises:
            InvalidJobTotalError: If total is negative
        """
        if total < 0:
            raise InvalidJobTotalError(job_id, total)

        with self._lock:
            job = self._active.get(job_id)
            if job is None:
                logger.debug("job_set_total_ignored", job_id=job_id)
                return None

            job.total = total
            job.status = JobStatus.RUNNING
            job.progress = compute_progress(job.completed, total)
            job.updated_at = self._clock()
            return job.model_copy(deep=True)

    def update_progress(
        self, job_id: str, completed: int, failed: int = 0
    ) -> Optional[Job]:
        """
        Record cumulative progress and notify listeners.

        Args:
            job_id: Active job ID
            completed: Total items succeeded so far
            failed: Total items failed so far

        Returns:
            Updated snapshot, or None if the job is not active or the
            update would move the counters backwards
        """
        with self._lock:
            job = self._active.get(job_id)
            if job is None:
                logger.debug("job_progress_ignored", job_id=job_id)
                return None

            if completed < job.completed or failed < job.failed:
                logger.warning(
                    "job_progress_regressed",
                    job_id=job_id,
                    previous_completed=job.completed,
                    previous_failed=job.failed,
                    completed=completed,
                    failed=failed,
                )
                return None

            job.completed = completed
            job.failed = failed
            job.progress = compute_progress(completed, job.total)
            job.updated_at = self._clock()
            snapshot = job.model_copy(deep=True)

            # Emitted under the lock so events follow mutation order across threads
            self._emit(
                JobProgressEvent(
                    job_id=snapshot.id,
                    type=snapshot.type,
                    progress=snapshot.progress,
                    completed=snapshot.completed,
                    failed=snapshot.failed,
                    total=snapshot.total,
                    metadata=snapshot.metadata,
                )
            )
        return snapshot

    def add_error(self, job_id: str, error: Any) -> None:
        """Append an error to an active job; status is unchanged."""
        message = str(error)
        with self._lock:
            job = self._active.get(job_id)
            if job is None:
                logger.debug("job_error_ignored", job_id=job_id, error=message)
                return

            now = self._clock()
            job.errors.append(JobError(message=message, timestamp=now))
            job.updated_at = now

    def complete_job(
        self, job_id: str, status: JobStatus = JobStatus.COMPLETED
    ) -> Optional[Job]:
        """
        Move a job to its terminal status and into history.

        Args:
            job_id: Active job ID
            status: Terminal status (completed, partial, failed, cancelled)

        Returns:
            Final snapshot, or None if the job is unknown

        Raises:
            JobStateError: If status is not terminal
            JobAlreadyCompletedError: If the job already finished
        """
        status = JobStatus(status)
        if not status.is_terminal:
            raise JobStateError(
                f"Cannot complete job {job_id} with non-terminal status '{status.value}'"
            )

        with self._lock:
            job = self._active.pop(job_id, None)
            if job is None:
                finished = self._find_in_history(job_id)
                if finished is not None:
                    raise JobAlreadyCompletedError(job_id, finished.status.value)
                logger.warning("job_complete_unknown", job_id=job_id)
                return None

            now = self._clock()
            job.status = status
            job.progress = 100
            job.completed_at = now
            job.updated_at = now
            self._history.appendleft(job)
            ACTIVE_JOBS.set(len(self._active))
            snapshot = job.model_copy(deep=True)
            duration_ms = snapshot.duration_ms or 0.0

            self._emit(
                JobCompleteEvent(
                    job_id=snapshot.id,
                    type=snapshot.type,
                    status=status,
                    completed=snapshot.completed,
                    failed=snapshot.failed,
                    total=snapshot.total,
                    duration_ms=duration_ms,
                    metadata=snapshot.metadata,
                )
            )

        JOBS_COMPLETED.labels(job_type=snapshot.type, status=status.value).inc()
        logger.info(
            "job_completed",
            job_id=job_id,
            job_type=snapshot.type,
            status=status.value,
            completed=snapshot.completed,
            failed=snapshot.failed,
            total=snapshot.total,
            duration_ms=round(duration_ms, 2),
        )
        return snapshot

    # ==================== Queries ====================

    def _find_in_history(self, job_id: str) -> Optional[Job]:
        for job in self._history:
            if job.id == job_id:
                return job
        return None

    def get_job(self, job_id: str) -> Optional[Job]:
        """Look up a job, active first, then history."""
        with self._lock:
            job = self._active.get(job_id) or self._find_in_history(job_id)
            return job.model_copy(deep=True) if job is not None else None

    def get_active_jobs(self) -> List[Job]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._active.values()]

    def get_history(self, limit: Optional[int] = None) -> List[Job]:
        """Finished jobs, newest first."""
        if limit is None:
            limit = self.config.default_history_limit
        limit = max(0, limit)
        with self._lock:
            return [job.model_copy(deep=True) for job in list(self._history)[:limit]]

    def stats(self) -> Dict[str, Any]:
        """Summary of registry contents for status reporting."""
        with self._lock:
            by_status: Dict[str, int] = {}
            for job in self._history:
                by_status[job.status.value] = by_status.get(job.status.value, 0) + 1
            return {
                "active": len(self._active),
                "history": len(self._history),
                "history_capacity": self.config.history_size,
                "history_by_status": by_status,
            }
