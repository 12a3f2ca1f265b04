import pytest

from eventhub.utils.exceptions import (
    ConfigValidationError,
    EventHubError,
    InvalidJobTotalError,
    JobAlreadyCompletedError,
    JobStateError,
)


def test_hierarchy():
    assert issubclass(JobStateError, EventHubError)
    assert issubclass(JobAlreadyCompletedError, JobStateError)
    assert issubclass(InvalidJobTotalError, EventHubError)
    assert issubclass(ConfigValidationError, EventHubError)


def test_already_completed_message():
    error = JobAlreadyCompletedError("email_1_abc", "partial")

    assert error.job_id == "email_1_abc"
    assert error.status == "partial"
    assert "already completed" in str(error)


def test_invalid_total_is_value_error():
    with pytest.raises(ValueError, match="must be >= 0"):
        raise InvalidJobTotalError("job1", -3)
