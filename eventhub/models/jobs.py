"""Background job models.

Defines job state, lifecycle events emitted by the job tracker and the
result returned by batch dispatches.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.PARTIAL, JobStatus.FAILED, JobStatus.CANCELLED}
)


class JobError(BaseModel):
    """Error recorded against a job"""

    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class Job(BaseModel):
    """A tracked long-running operation"""

    id: str
    type: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    total: int = 0
    completed: int = 0
    failed: int = 0
    errors: List[JobError] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def duration_ms(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.created_at).total_seconds() * 1000


class JobProgressEvent(BaseModel):
    """Emitted after every accepted progress update"""

    event: Literal["job_progress"] = "job_progress"
    job_id: str
    type: str
    progress: int
    completed: int
    failed: int
    total: int
    metadata: Dict[str, Any] = Field(default_factory=dict)


class JobCompleteEvent(BaseModel):
    """Emitted once when a job reaches its terminal status"""

    event: Literal["job_complete"] = "job_complete"
    job_id: str
    type: str
    status: JobStatus
    completed: int
    failed: int
    total: int
    duration_ms: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


JobEvent = Union[JobProgressEvent, JobCompleteEvent]


class JobTrackerConfig(BaseModel):
    """Job registry configuration"""

    history_size: int = Field(default=100, ge=1, le=10000)
    default_history_limit: int = Field(default=20, ge=1)
    # Health check warns above this many concurrently active jobs
    active_jobs_warning: int = Field(default=50, ge=1)


class DispatchResult(BaseModel):
    """Outcome of one batch dispatch"""

    job_id: str
    completed: int
    failed: int
    total: int
    status: JobStatus
    cancelled: bool = False
