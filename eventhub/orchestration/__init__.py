"""Background job orchestration."""

from eventhub.orchestration.batch_dispatcher import (
    BatchDispatcher,
    LiveUpdateChannel,
    final_status,
    partition,
)

__all__ = [
    "BatchDispatcher",
    "LiveUpdateChannel",
    "final_status",
    "partition",
]
