"""Failure reporting for Region Sync.

Synchronization is best effort: nothing that goes wrong on the remote side
is raised back into the code that mutated a region. Every problem is turned
into a ``SyncFailure`` event and published on a ``FailureChannel``, which the
application observes.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from region_sync.subscription import Subscription

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Base class for synchronization errors."""


class DecodeFailure(SyncError):
    """A remote record could not be decoded into elements."""


class WriteFailure(SyncError):
    """An overwrite of a remote slot did not complete."""


class SubscriptionFailure(SyncError):
    """A remote notification stream errored or closed unexpectedly."""


class FailureKind(Enum):
    """Kind of synchronization failure."""
    DECODE = "decode"
    WRITE = "write"
    SUBSCRIPTION = "subscription"


@dataclass
class SyncFailure:
    """A failure event published on the failure channel."""

    kind: FailureKind
    region: str
    slot_path: str
    message: str
    error: Optional[BaseException] = None
    occurred_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert failure to dictionary."""
        return {
            "kind": self.kind.value,
            "region": self.region,
            "slot_path": self.slot_path,
            "message": self.message,
            "error": repr(self.error) if self.error else None,
            "occurred_at": self.occurred_at,
        }


class FailureChannel:
    """Observable channel of SyncFailure events.

    Keeps the most recent failures in a bounded history so that failures
    published before anyone subscribed are still inspectable.
    """

    def __init__(self, max_history: int = 100):
        self._listeners: List[Callable[[SyncFailure], None]] = []
        self._history: Deque[SyncFailure] = deque(maxlen=max_history)
        self._lock = threading.Lock()
        self.counts: Dict[FailureKind, int] = {kind: 0 for kind in FailureKind}

    def subscribe(self, callback: Callable[[SyncFailure], None]) -> Subscription:
        """Register a failure listener."""
        with self._lock:
            self._listeners.append(callback)

        def release() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return Subscription(release, description="failures")

    def publish(self, failure: SyncFailure) -> None:
        """Record a failure and hand it to every listener."""
        with self._lock:
            self._history.append(failure)
            self.counts[failure.kind] += 1
            listeners = list(self._listeners)

        logger.warning(
            f"{failure.kind.value} failure on '{failure.region}' "
            f"({failure.slot_path}): {failure.message}"
        )

        for listener in listeners:
            try:
                listener(failure)
            except Exception as cb_error:
                logger.error(f"Failure listener error: {cb_error}")

    def recent(self, count: int = 50, kind: Optional[FailureKind] = None) -> List[SyncFailure]:
        """Return the most recent failures, oldest first."""
        with self._lock:
            failures = list(self._history)
        if kind is not None:
            failures = [f for f in failures if f.kind is kind]
        return failures[-count:]

    def clear(self) -> None:
        """Forget the failure history (counts are kept)."""
        with self._lock:
            self._history.clear()
