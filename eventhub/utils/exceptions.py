"""Custom exceptions for the EventHub media cache and background jobs.

This module defines the exception hierarchy:
- Base exception for all EventHub errors
- Job tracker contract violations
- Configuration errors

Expected outcomes (cache misses, unknown job IDs, individual delivery
failures) are never raised. Only caller-contract violations and truly
unexpected conditions surface as exceptions.
"""


class EventHubError(Exception):
    """Base exception for all EventHub errors

    Use this to catch any error raised by the subsystem:
    ```python
    try:
        tracker.complete_job(job_id)
    except EventHubError as e:
        logger.error("job_completion_failed", error=str(e))
    ```
    """

    pass


class JobStateError(EventHubError):
    """Job lifecycle transition is not allowed

    Raised when:
    - complete_job is called with a non-terminal status
    - A terminal job is asked to transition again
    """

    pass


class JobAlreadyCompletedError(JobStateError):
    """complete_job called for a job that already reached a terminal state

    The job stays in history unchanged.
    """

    def __init__(self, job_id: str, status: str) -> None:
        super().__init__(f"Job {job_id} already completed with status '{status}'")
        self.job_id = job_id
        self.status = status


class InvalidJobTotalError(EventHubError, ValueError):
    """set_total called with a negative total"""

    def __init__(self, job_id: str, total: int) -> None:
        super().__init__(f"Invalid total {total} for job {job_id}: must be >= 0")
        self.job_id = job_id
        self.total = total


class ConfigValidationError(EventHubError):
    """Configuration validation failed"""

    pass
