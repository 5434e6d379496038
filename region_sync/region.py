"""Observable local regions.

A region is an ordered sequence of elements owned by the application (the
UI layer in a card game). The synchronization controller only needs three
things from it, captured by the ``Region`` protocol: read the contents,
subscribe to change notifications, and replace the contents wholesale.

``ObservableRegion`` is the reference implementation. Contents are held as
an immutable tuple that is swapped in one assignment, so a reader sees either
the old or the new contents, never a half-applied update. Listeners are
notified after the swap, outside the lock, with no payload: they re-read.
"""

import logging
import threading
from typing import Any, Callable, Iterable, List, Protocol, Tuple

from region_sync.subscription import Subscription

logger = logging.getLogger(__name__)


class Region(Protocol):
    """Interface the controller consumes from a local region."""

    def snapshot(self) -> List[Any]:
        ...

    def subscribe(self, callback: Callable[[], None]) -> Subscription:
        ...

    def replace(self, elements: Iterable[Any]) -> None:
        ...


class ObservableRegion:
    """Thread-safe ordered collection with change notification.

    Attributes:
        name: Label used in logs (e.g. "area_one")
        version: Incremented on every change
    """

    def __init__(self, name: str = "region", elements: Iterable[Any] = ()):
        self.name = name
        self._items: Tuple[Any, ...] = tuple(elements)
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.RLock()
        self.version = 0

    # ------------------------------------------------------------------
    # Region protocol
    # ------------------------------------------------------------------

    def snapshot(self) -> List[Any]:
        """Return a copy of the current contents."""
        return list(self._items)

    def subscribe(self, callback: Callable[[], None]) -> Subscription:
        """Register a change listener.

        Args:
            callback: Called with no arguments after every change

        Returns:
            Subscription whose cancel() removes the listener
        """
        with self._lock:
            self._listeners.append(callback)

        def release() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return Subscription(release, description=f"region:{self.name}")

    def replace(self, elements: Iterable[Any]) -> None:
        """Replace the whole contents in one step and notify listeners."""
        self._commit(tuple(elements))

    # ------------------------------------------------------------------
    # Owner-side mutations
    # ------------------------------------------------------------------

    def append(self, element: Any) -> None:
        self.mutate(lambda items: items + [element])

    def insert(self, index: int, element: Any) -> None:
        def apply(items: List[Any]) -> List[Any]:
            items.insert(index, element)
            return items
        self.mutate(apply)

    def remove(self, element: Any) -> None:
        """Remove the first element equal to ``element``.

        Raises:
            ValueError: If no such element exists
        """
        def apply(items: List[Any]) -> List[Any]:
            items.remove(element)
            return items
        self.mutate(apply)

    def pop(self, index: int = -1) -> Any:
        """Remove and return the element at ``index``."""
        with self._lock:
            items = list(self._items)
            element = items.pop(index)
            listeners = self._swap(tuple(items))
        self._notify(listeners)
        return element

    def move(self, source: int, target: int) -> None:
        """Move the element at ``source`` to position ``target``."""
        def apply(items: List[Any]) -> List[Any]:
            items.insert(target, items.pop(source))
            return items
        self.mutate(apply)

    def clear(self) -> None:
        self._commit(())

    def mutate(self, change: Callable[[List[Any]], List[Any]]) -> None:
        """Apply ``change`` to a copy of the contents and commit the result.

        Args:
            change: Receives a list copy, returns the new contents
        """
        with self._lock:
            listeners = self._swap(tuple(change(list(self._items))))
        self._notify(listeners)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _commit(self, items: Tuple[Any, ...]) -> None:
        with self._lock:
            listeners = self._swap(items)
        self._notify(listeners)

    def _swap(self, items: Tuple[Any, ...]) -> List[Callable[[], None]]:
        # Caller holds the lock
        self._items = items
        self.version += 1
        return list(self._listeners)

    def _notify(self, listeners: List[Callable[[], None]]) -> None:
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.error(f"Region '{self.name}' listener error: {e}")

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __repr__(self) -> str:
        return f"ObservableRegion({self.name!r}, {list(self._items)!r})"
