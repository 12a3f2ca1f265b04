"""Batched bulk-operation dispatcher.

Runs one async operation over many targets in contiguous batches:
- Items in a batch run concurrently and all settle before moving on
- Batches run strictly in order with an optional pause between them
- Progress is tracked through the JobTracker and pushed to the
  initiating user over an optional live-update channel

Item failures are recorded on the job and counted; they never abort the
batch or the job, and nothing is retried.
"""

import asyncio
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
)

from eventhub.models.dispatch import DispatchConfig, DispatchProfile
from eventhub.models.jobs import DispatchResult, JobStatus
from eventhub.observability.context import correlation_id_context
from eventhub.observability.logging import get_logger, log_context
from eventhub.observability.metrics import BATCH_DURATION, DISPATCH_ITEMS
from eventhub.services.job_tracker import JobTracker, compute_progress

logger = get_logger("batch_dispatcher")

T = TypeVar("T")

ItemOperation = Callable[[Any, Any], Awaitable[Any]]
Sleeper = Callable[[float], Awaitable[Any]]

EVENT_STARTED = "backgroundJobStarted"
EVENT_PROGRESS = "backgroundJobProgress"
EVENT_COMPLETE = "backgroundJobComplete"


class LiveUpdateChannel(Protocol):
    """Push channel to connected clients.

    Matches python-socketio's ``AsyncServer.emit(event, data, room=...)``.
    """

    async def emit(self, event: str, data: Dict[str, Any], room: str) -> Any: ...


def partition(items: Sequence[T], size: int) -> List[Sequence[T]]:
    """Split items into contiguous batches of at most size elements."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    return [items[i : i + size] for i in range(0, len(items), size)]


def final_status(completed: int, failed: int, total: int) -> JobStatus:
    if total > 0 and failed == total:
        return JobStatus.FAILED
    if failed > 0:
        return JobStatus.PARTIAL
    return JobStatus.COMPLETED


class BatchDispatcher:
    """Executes bulk operations in batches with job tracking."""

    def __init__(
        self,
        tracker: JobTracker,
        config: Optional[DispatchConfig] = None,
        channel: Optional[LiveUpdateChannel] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initialize dispatcher.

        Args:
            tracker: Job registry that owns all job state
            config: Dispatch profiles per use case
            channel: Optional live-update channel (e.g. Socket.IO server)
            sleep: Async sleep used between batches (injectable for tests)
        """
        self.tracker = tracker
        self.config = config or DispatchConfig()
        self.channel = channel
        self._sleep = sleep

    async def _notify(
        self, initiator_id: Optional[str], event: str, data: Dict[str, Any]
    ) -> None:
        if self.channel is None or not initiator_id:
            return

        room = f"{self.config.room_prefix}{initiator_id}"
        try:
            await self.channel.emit(event, data, room=room)
        except Exception as e:
            logger.warning(
                "live_update_failed",
                live_event=event,
                room=room,
                job_id=data.get("jobId"),
                error=str(e),
            )

    async def dispatch(
        self,
        targets: Sequence[Any],
        operation: ItemOperation,
        *,
        profile: DispatchProfile,
        payload: Any = None,
        metadata: Optional[Mapping[str, Any]] = None,
        initiator_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        """Run operation(target, payload) for every target in batches.

        Args:
            targets: Items to process, in order
            operation: Async per-item callable; raising marks the item failed
            profile: Batch size, pacing and messages for this job type
            payload: Shared argument passed to every operation call
            metadata: Extra job metadata
            initiator_id: User to receive live updates
            cancel_event: When set, no further batch is started

        Returns:
            DispatchResult with final counters and status
        """
        total = len(targets)
        job_metadata: Dict[str, Any] = dict(metadata or {})
        job_metadata["initiator_id"] = initiator_id
        job_metadata["target_count"] = total

        job = self.tracker.create_job(profile.job_type, job_metadata)
        self.tracker.set_total(job.id, total)

        with correlation_id_context(job.id), log_context(
            job_type=profile.job_type, initiator_id=initiator_id
        ):
            try:
                return await self._run(
                    job.id,
                    targets,
                    operation,
                    profile,
                    payload,
                    initiator_id,
                    cancel_event,
                )
            except BaseException as e:
                self._abort(job.id, e)
                raise

    def _abort(self, job_id: str, error: BaseException) -> None:
        """Close out a job whose dispatch loop died unexpectedly."""
        current = self.tracker.get_job(job_id)
        if current is None or current.status.is_terminal:
            return
        self.tracker.add_error(job_id, error)
        self.tracker.complete_job(job_id, JobStatus.FAILED)
        logger.error(
            "dispatch_aborted",
            job_id=job_id,
            error=str(error) or type(error).__name__,
        )

    @staticmethod
    async def _settle(operation: ItemOperation, target: Any, payload: Any) -> Any:
        # Synchronous raises surface as a settled failure, not out of gather()
        return await operation(target, payload)

    async def _run(
        self,
        job_id: str,
        targets: Sequence[Any],
        operation: ItemOperation,
        profile: DispatchProfile,
        payload: Any,
        initiator_id: Optional[str],
        cancel_event: Optional[asyncio.Event],
    ) -> DispatchResult:
        total = len(targets)
        job_type = profile.job_type
        batches = partition(targets, profile.batch_size)

        logger.info(
            "dispatch_started",
            job_id=job_id,
            total=total,
            batches=len(batches),
            batch_size=profile.batch_size,
        )

        await self._notify(
            initiator_id,
            EVENT_STARTED,
            {
                "jobId": job_id,
                "type": job_type,
                "total": total,
                "message": profile.render(profile.started_message, 0, 0, total),
            },
        )

        completed = 0
        failed = 0
        cancelled = False

        for index, batch in enumerate(batches):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                logger.info(
                    "dispatch_cancelled",
                    job_id=job_id,
                    batches_done=index,
                    remaining=total - completed - failed,
                )
                break

            batch_start = time.perf_counter()
            results = await asyncio.gather(
                *(self._settle(operation, target, payload) for target in batch),
                return_exceptions=True,
            )
            BATCH_DURATION.labels(job_type=job_type).observe(
                time.perf_counter() - batch_start
            )

            for result in results:
                if isinstance(result, BaseException):
                    self.tracker.add_error(job_id, result)
                    failed += 1
                    DISPATCH_ITEMS.labels(job_type=job_type, outcome="failure").inc()
                else:
                    completed += 1
                    DISPATCH_ITEMS.labels(job_type=job_type, outcome="success").inc()

            self.tracker.update_progress(job_id, completed, failed)

            logger.debug(
                "dispatch_batch_complete",
                job_id=job_id,
                batch=index + 1,
                batches=len(batches),
                completed=completed,
                failed=failed,
            )

            await self._notify(
                initiator_id,
                EVENT_PROGRESS,
                {
                    "jobId": job_id,
                    "type": job_type,
                    "progress": compute_progress(completed, total),
                    "completed": completed,
                    "failed": failed,
                    "total": total,
                    "message": profile.render(
                        profile.progress_message, completed, failed, total
                    ),
                },
            )

            if index < len(batches) - 1 and profile.inter_batch_delay_seconds > 0:
                await self._sleep(profile.inter_batch_delay_seconds)

        if cancelled:
            status = JobStatus.CANCELLED
        else:
            status = final_status(completed, failed, total)

        self.tracker.complete_job(job_id, status)

        template = profile.partial_message if failed > 0 else profile.success_message
        await self._notify(
            initiator_id,
            EVENT_COMPLETE,
            {
                "jobId": job_id,
                "type": job_type,
                "status": status.value,
                "completed": completed,
                "failed": failed,
                "total": total,
                "message": profile.render(template, completed, failed, total),
            },
        )

        logger.info(
            "dispatch_complete",
            job_id=job_id,
            status=status.value,
            completed=completed,
            failed=failed,
            total=total,
        )

        return DispatchResult(
            job_id=job_id,
            completed=completed,
            failed=failed,
            total=total,
            status=status,
            cancelled=cancelled,
        )

    # ==================== Use cases ====================

    async def send_emails(
        self,
        recipients: Sequence[Mapping[str, Any]],
        send_email: Callable[[str, Optional[str], Any], Awaitable[Any]],
        email_data: Any,
        initiator_id: Optional[str] = None,
        job_type: str = "email_notification",
        metadata: Optional[Mapping[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        """Send one email per recipient ({"email": ..., "name": ...})."""
        profile = self.config.email
        if job_type != profile.job_type:
            profile = profile.model_copy(update={"job_type": job_type})

        job_metadata = dict(metadata or {})
        job_metadata["recipient_count"] = len(recipients)

        async def deliver(recipient: Mapping[str, Any], data: Any) -> Any:
            return await send_email(recipient["email"], recipient.get("name"), data)

        return await self.dispatch(
            recipients,
            deliver,
            profile=profile,
            payload=email_data,
            metadata=job_metadata,
            initiator_id=initiator_id,
            cancel_event=cancel_event,
        )

    async def send_notifications(
        self,
        users: Sequence[str],
        notify_user: Callable[[str, str, str, Any], Awaitable[Any]],
        notification_type: str,
        message: str,
        data: Any = None,
        initiator_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        """Deliver an in-app notification to each user ID."""

        async def deliver(user_id: str, payload: Any) -> Any:
            return await notify_user(user_id, notification_type, message, payload)

        return await self.dispatch(
            users,
            deliver,
            profile=self.config.notification,
            payload=data,
            metadata={
                "user_count": len(users),
                "notification_type": notification_type,
            },
            initiator_id=initiator_id,
            cancel_event=cancel_event,
        )

    async def warm_cache(
        self,
        tasks: Sequence[Callable[[], Awaitable[Any]]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        """Run zero-argument warm-up callables, e.g. media pre-fetches."""

        async def run_task(task: Callable[[], Awaitable[Any]], _: Any) -> Any:
            return await task()

        return await self.dispatch(
            tasks,
            run_task,
            profile=self.config.cache_warming,
            metadata={"task_count": len(tasks)},
            cancel_event=cancel_event,
        )
