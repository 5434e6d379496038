"""Abstract base classes for remote document stores.

The controller treats the store as a black box offering, per slot path:
real-time change notification, point-in-time reads and last-writer-wins
overwrites. Every store implementation provides those through
``DocumentStore.slot()`` and the returned ``SlotReference``.
"""

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from region_sync.subscription import Subscription
from region_sync.sync.records import RecordConverter


class StoreError(Exception):
    """Raised by a store for failed writes, reads or broken streams."""


@dataclass(frozen=True)
class DocumentSnapshot:
    """Full contents of a slot at one point in time.

    Attributes:
        path: Slot path
        data: Stored record, or None if the slot was never written
        update_time: When the stored record was written (0.0 if absent)
        read_time: When this snapshot was taken
    """
    path: str
    data: Optional[Any] = None
    update_time: float = 0.0
    read_time: float = field(default_factory=time.time)

    @property
    def exists(self) -> bool:
        return self.data is not None


SnapshotCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class SlotReference(ABC):
    """Handle to one remote slot, bound to a record converter.

    Attributes:
        path: Slot path
        converter: Encode/decode pair between records and element sequences
    """

    def __init__(self, path: str, converter: RecordConverter):
        self.path = path
        self.converter = converter

    @abstractmethod
    def listen(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        """Subscribe to changes of this slot.

        The current snapshot (possibly with ``exists == False``) is delivered
        first, then one snapshot per change, in order, one at a time. After
        the returned subscription is cancelled nothing more is delivered.

        Args:
            on_snapshot: Receives each DocumentSnapshot
            on_error: Receives the error if the stream breaks; the stream is
                      closed afterwards

        Returns:
            Subscription
        """
        pass

    @abstractmethod
    def set(self, record: Dict[str, Any]) -> "Future[DocumentSnapshot]":
        """Overwrite the slot with a full record.

        Returns:
            Future resolving to the written snapshot, or failing with
            StoreError
        """
        pass

    @abstractmethod
    def get(self) -> DocumentSnapshot:
        """Read the slot once."""
        pass

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.path}>"


class DocumentStore(ABC):
    """Abstract remote document store.

    Example:
        store = MemoryDocumentStore()
        slot = store.slot("matches/match_1/areas/area_one", converter)
        sub = slot.listen(print, print)
        slot.set({"elements": []}).result()
        sub.cancel()
    """

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def slot(self, path: str, converter: RecordConverter) -> SlotReference:
        """Resolve a stable slot path to a slot reference."""
        pass

    def close(self) -> None:
        """Release threads and other resources held by the store."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def completed(snapshot: DocumentSnapshot) -> "Future[DocumentSnapshot]":
    """Return an already resolved future."""
    future: "Future[DocumentSnapshot]" = Future()
    future.set_result(snapshot)
    return future


def failed(error: BaseException) -> "Future[DocumentSnapshot]":
    """Return an already failed future."""
    future: "Future[DocumentSnapshot]" = Future()
    future.set_exception(error)
    return future
