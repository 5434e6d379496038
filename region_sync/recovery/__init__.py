"""Recovery for Region Sync.

Handles re-establishment of remote notification streams that errored or
closed unexpectedly.

This package provides:
- resubscribe: Retry budget, backoff and scheduling for re-listening
"""

from region_sync.recovery.resubscribe import ResubscribePolicy, schedule

__all__ = [
    "ResubscribePolicy",
    "schedule",
]
