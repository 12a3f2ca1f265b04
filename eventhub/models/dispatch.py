"""Batch dispatch configuration models.

Defines batch sizes, inter-batch pacing and live-update message templates
for each bulk operation (email, notification, cache warming).
"""

from pydantic import BaseModel, Field


class DispatchProfile(BaseModel):
    """Tuning and messages for one kind of bulk operation.

    Message templates may reference {completed}, {failed} and {total}.
    """

    job_type: str
    batch_size: int = Field(default=10, ge=1, le=1000)
    inter_batch_delay_seconds: float = Field(default=0.1, ge=0.0, le=60.0)

    started_message: str = "Processing {total} items..."
    progress_message: str = "Processed {completed}/{total} items"
    success_message: str = "Successfully processed {completed} items"
    partial_message: str = "Processed {completed} items, {failed} failed"

    def render(self, template: str, completed: int, failed: int, total: int) -> str:
        return template.format(completed=completed, failed=failed, total=total)


def _email_profile() -> DispatchProfile:
    return DispatchProfile(
        job_type="email_notification",
        batch_size=10,
        inter_batch_delay_seconds=0.1,
        started_message="Sending emails to {total} recipients...",
        progress_message="Sent {completed}/{total} emails",
        success_message="Successfully sent {completed} emails",
        partial_message="Sent {completed} emails, {failed} failed",
    )


def _notification_profile() -> DispatchProfile:
    return DispatchProfile(
        job_type="bulk_notification",
        batch_size=50,
        inter_batch_delay_seconds=0.0,
        started_message="Notifying {total} users...",
        progress_message="Notified {completed}/{total} users",
        success_message="Successfully notified {completed} users",
        partial_message="Notified {completed} users, {failed} failed",
    )


def _cache_warming_profile() -> DispatchProfile:
    return DispatchProfile(
        job_type="cache_warming",
        batch_size=5,
        inter_batch_delay_seconds=0.0,
        started_message="Warming {total} cache entries...",
        progress_message="Warmed {completed}/{total} cache entries",
        success_message="Warmed {completed} cache entries",
        partial_message="Warmed {completed} cache entries, {failed} failed",
    )


class DispatchConfig(BaseModel):
    """Dispatch profiles per use case"""

    email: DispatchProfile = Field(default_factory=_email_profile)
    notification: DispatchProfile = Field(default_factory=_notification_profile)
    cache_warming: DispatchProfile = Field(default_factory=_cache_warming_profile)

    # Live-update room naming, e.g. user_<id>
    room_prefix: str = "user_"
