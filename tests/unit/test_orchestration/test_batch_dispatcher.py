"""Tests for the batched bulk-operation dispatcher"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from eventhub.models.dispatch import DispatchConfig, DispatchProfile
from eventhub.models.jobs import JobStatus
from eventhub.orchestration.batch_dispatcher import (
    BatchDispatcher,
    final_status,
    partition,
)
from eventhub.services.job_tracker import JobTracker


@pytest.fixture
def tracker():
    return JobTracker()


@pytest.fixture
def channel():
    channel = AsyncMock()
    channel.emit = AsyncMock()
    return channel


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def dispatcher(tracker, channel, sleep):
    return BatchDispatcher(tracker, DispatchConfig(), channel=channel, sleep=sleep)


def profile(batch_size: int, delay: float = 0.0) -> DispatchProfile:
    return DispatchProfile(
        job_type="test_job",
        batch_size=batch_size,
        inter_batch_delay_seconds=delay,
    )


def events_named(channel, name):
    return [c.args[1] for c in channel.emit.call_args_list if c.args[0] == name]


class TestHelpers:
    def test_partition(self):
        assert partition([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert partition([], 3) == []

    def test_partition_rejects_zero(self):
        with pytest.raises(ValueError):
            partition([1], 0)

    @pytest.mark.parametrize(
        "completed,failed,total,expected",
        [
            (5, 0, 5, JobStatus.COMPLETED),
            (3, 2, 5, JobStatus.PARTIAL),
            (0, 5, 5, JobStatus.FAILED),
            (0, 0, 0, JobStatus.COMPLETED),
        ],
    )
    def test_final_status(self, completed, failed, total, expected):
        assert final_status(completed, failed, total) == expected


class TestDispatch:
    @pytest.mark.asyncio
    async def test_partial_failure_single_batch(self, dispatcher, tracker):
        """25 notifications, batch size 50, items 5 and 17 fail"""
        users = [f"user{i}" for i in range(25)]

        async def notify(user_id, notification_type, message, data):
            if user_id in ("user5", "user17"):
                raise RuntimeError(f"offline: {user_id}")

        result = await dispatcher.send_notifications(
            users, notify, "event_update", "Event moved"
        )

        assert result.completed == 23
        assert result.failed == 2
        assert result.total == 25
        assert result.status == JobStatus.PARTIAL
        assert result.cancelled is False

        job = tracker.get_job(result.job_id)
        assert job.status == JobStatus.PARTIAL
        assert job.progress == 100
        assert len(job.errors) == 2
        assert {e.message for e in job.errors} == {"offline: user5", "offline: user17"}
        assert job.metadata["user_count"] == 25
        assert job.metadata["notification_type"] == "event_update"

    @pytest.mark.asyncio
    async def test_all_items_fail(self, dispatcher):
        operation = AsyncMock(side_effect=RuntimeError("down"))

        result = await dispatcher.dispatch(range(4), operation, profile=profile(2))

        assert result.status == JobStatus.FAILED
        assert result.completed == 0
        assert result.failed == 4

    @pytest.mark.asyncio
    async def test_no_failures(self, dispatcher):
        operation = AsyncMock(return_value="ok")

        result = await dispatcher.dispatch(
            list(range(7)), operation, profile=profile(3), payload={"k": "v"}
        )

        assert result.status == JobStatus.COMPLETED
        assert result.completed == 7
        assert operation.await_count == 7
        operation.assert_any_await(0, {"k": "v"})

    @pytest.mark.asyncio
    async def test_empty_targets_complete(self, dispatcher, tracker):
        operation = AsyncMock()

        result = await dispatcher.dispatch([], operation, profile=profile(5))

        assert result.status == JobStatus.COMPLETED
        assert result.total == 0
        operation.assert_not_awaited()
        assert tracker.get_job(result.job_id).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_batches_run_in_order(self, dispatcher):
        started = []
        in_flight = 0
        max_in_flight = 0

        async def operation(target, payload):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            started.append(target)
            await asyncio.sleep(0)
            in_flight -= 1

        await dispatcher.dispatch(list(range(10)), operation, profile=profile(4))

        assert max_in_flight == 4
        batches = [sorted(started[0:4]), sorted(started[4:8]), sorted(started[8:10])]
        assert batches == [[0, 1, 2, 3], [4, 5, 6, 7], [8, 9]]

    @pytest.mark.asyncio
    async def test_batch_settles_before_next_starts(self, dispatcher):
        events = []

        async def operation(target, payload):
            events.append(("start", target))
            # Later items in a batch finish first
            await asyncio.sleep(0.001 * (3 - target % 3))
            events.append(("end", target))

        result = await dispatcher.dispatch(list(range(6)), operation, profile=profile(3))

        assert result.completed == 6
        assert [t for kind, t in events[3:6]] == [2, 1, 0]
        assert all(kind == "end" for kind, _ in events[3:6])
        first_batch_done = max(events.index(("end", t)) for t in (0, 1, 2))
        second_batch_start = min(events.index(("start", t)) for t in (3, 4, 5))
        assert first_batch_done < second_batch_start

    @pytest.mark.asyncio
    async def test_synchronous_raise_is_item_failure(self, dispatcher, tracker):
        async def send(target):
            return target

        def operation(target, payload):
            if target == 1:
                raise KeyError("email")
            return send(target)

        result = await dispatcher.dispatch([0, 1, 2], operation, profile=profile(3))

        assert result.completed == 2
        assert result.failed == 1
        assert result.status == JobStatus.PARTIAL
        assert tracker.get_active_jobs() == []
        assert tracker.get_job(result.job_id).errors[0].message == "'email'"

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_job(self, tracker, channel):
        sleep = AsyncMock(side_effect=RuntimeError("loop closed"))
        dispatcher = BatchDispatcher(tracker, channel=channel, sleep=sleep)

        with pytest.raises(RuntimeError, match="loop closed"):
            await dispatcher.dispatch(
                list(range(4)), AsyncMock(), profile=profile(2, delay=0.5)
            )

        assert tracker.get_active_jobs() == []
        job = tracker.get_history()[0]
        assert job.status == JobStatus.FAILED
        assert job.completed == 2
        assert job.errors[-1].message == "loop closed"

    @pytest.mark.asyncio
    async def test_progress_after_each_batch(self, dispatcher, tracker):
        progress = []
        tracker.add_listener(
            lambda e: progress.append((e.completed, e.failed))
            if e.event == "job_progress"
            else None
        )

        async def operation(target, payload):
            if target == 2:
                raise ValueError("bad")

        await dispatcher.dispatch(list(range(5)), operation, profile=profile(2))

        assert progress == [(2, 0), (3, 1), (4, 1)]

    @pytest.mark.asyncio
    async def test_delay_between_batches_only(self, dispatcher, sleep):
        operation = AsyncMock()

        await dispatcher.dispatch(
            list(range(25)), operation, profile=profile(10, delay=0.1)
        )

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.1)

    @pytest.mark.asyncio
    async def test_single_batch_skips_delay(self, dispatcher, sleep):
        await dispatcher.dispatch(
            list(range(3)), AsyncMock(), profile=profile(10, delay=0.1)
        )

        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_metadata_merged(self, dispatcher, tracker):
        result = await dispatcher.dispatch(
            ["a"],
            AsyncMock(),
            profile=profile(1),
            metadata={"event_id": "event42"},
            initiator_id="u1",
        )

        metadata = tracker.get_job(result.job_id).metadata
        assert metadata == {
            "event_id": "event42",
            "initiator_id": "u1",
            "target_count": 1,
        }


class TestLiveUpdates:
    @pytest.mark.asyncio
    async def test_email_messages(self, dispatcher, channel):
        recipients = [{"email": f"u{i}@example.com", "name": f"U{i}"} for i in range(12)]
        send_email = AsyncMock()

        result = await dispatcher.send_emails(
            recipients, send_email, {"subject": "Hi"}, initiator_id="42"
        )

        send_email.assert_any_await("u0@example.com", "U0", {"subject": "Hi"})
        rooms = {c.kwargs["room"] for c in channel.emit.call_args_list}
        assert rooms == {"user_42"}

        started = events_named(channel, "backgroundJobStarted")
        assert started == [
            {
                "jobId": result.job_id,
                "type": "email_notification",
                "total": 12,
                "message": "Sending emails to 12 recipients...",
            }
        ]

        progress = events_named(channel, "backgroundJobProgress")
        assert [p["message"] for p in progress] == [
            "Sent 10/12 emails",
            "Sent 12/12 emails",
        ]
        assert progress[0]["progress"] == 83

        complete = events_named(channel, "backgroundJobComplete")
        assert complete[0]["status"] == "completed"
        assert complete[0]["message"] == "Successfully sent 12 emails"

    @pytest.mark.asyncio
    async def test_partial_email_message(self, dispatcher, channel):
        recipients = [{"email": "a@x.io"}, {"email": "b@x.io"}]

        async def send_email(email, name, data):
            if email == "b@x.io":
                raise ConnectionError("refused")

        result = await dispatcher.send_emails(
            recipients, send_email, {}, initiator_id="7", job_type="announcement"
        )

        assert result.status == JobStatus.PARTIAL
        complete = events_named(channel, "backgroundJobComplete")[0]
        assert complete["type"] == "announcement"
        assert complete["message"] == "Sent 1 emails, 1 failed"

    @pytest.mark.asyncio
    async def test_no_initiator_no_events(self, dispatcher, channel):
        await dispatcher.dispatch(["a"], AsyncMock(), profile=profile(1))

        channel.emit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_channel_errors_ignored(self, tracker, sleep):
        channel = AsyncMock()
        channel.emit = AsyncMock(side_effect=RuntimeError("socket closed"))
        dispatcher = BatchDispatcher(tracker, channel=channel, sleep=sleep)

        result = await dispatcher.dispatch(
            ["a", "b"], AsyncMock(), profile=profile(1), initiator_id="u1"
        )

        assert result.status == JobStatus.COMPLETED
        assert channel.emit.await_count == 4


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_at_batch_boundary(self, dispatcher, tracker):
        cancel = asyncio.Event()
        seen = []

        async def operation(target, payload):
            seen.append(target)
            if target == 1:
                cancel.set()

        result = await dispatcher.dispatch(
            list(range(6)), operation, profile=profile(2), cancel_event=cancel
        )

        assert sorted(seen) == [0, 1]
        assert result.cancelled is True
        assert result.status == JobStatus.CANCELLED
        assert result.completed == 2
        assert tracker.get_job(result.job_id).status == JobStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_unset_event_runs_everything(self, dispatcher):
        result = await dispatcher.dispatch(
            list(range(4)),
            AsyncMock(),
            profile=profile(2),
            cancel_event=asyncio.Event(),
        )

        assert result.cancelled is False
        assert result.completed == 4


class TestWarmCache:
    @pytest.mark.asyncio
    async def test_runs_tasks(self, dispatcher, tracker):
        tasks = [AsyncMock(), AsyncMock(side_effect=OSError("gone")), AsyncMock()]

        result = await dispatcher.warm_cache(tasks)

        for task in tasks:
            task.assert_awaited_once_with()
        assert result.completed == 2
        assert result.failed == 1
        job = tracker.get_job(result.job_id)
        assert job.type == "cache_warming"
        assert job.metadata["task_count"] == 3
