"""Synchronization core for Region Sync.

This module provides:
- SyncLink: one region paired with one remote slot, two lanes
- sequences_equal: ordered structural equality, the anti-loop guard
- RecordConverter / ElementCodec: region <-> slot record mapping
- FailureChannel and the SyncError hierarchy

Remote snapshots replace the region only when they differ from it; local
changes are written only when they differ from what the slot holds.
"""

from region_sync.sync.equality import sequences_equal
from region_sync.sync.failures import (
    DecodeFailure,
    FailureChannel,
    FailureKind,
    SubscriptionFailure,
    SyncError,
    SyncFailure,
    WriteFailure,
)
from region_sync.sync.records import ElementCodec, RecordConverter
from region_sync.sync.link import LinkStats, SyncLink

__all__ = [
    "sequences_equal",
    "DecodeFailure",
    "FailureChannel",
    "FailureKind",
    "SubscriptionFailure",
    "SyncError",
    "SyncFailure",
    "WriteFailure",
    "ElementCodec",
    "RecordConverter",
    "LinkStats",
    "SyncLink",
]
