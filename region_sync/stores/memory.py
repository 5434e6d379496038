"""In-process document store.

Behaves like a real-time cloud document store shared by every controller in
the process: slots hold full records, writes overwrite (last writer wins),
and every listener of a slot receives each new snapshot.

Two delivery modes:

- inline (default): writes commit and listeners run on the calling thread.
  Deliveries are queued and drained by the outermost call, so listeners see
  snapshots in commit order even when a listener writes again. Intended for
  deterministic single-threaded use such as tests.
- threaded: writes run on a thread pool and each listener has its own
  delivery thread and queue, so one slow listener never blocks another.
  ``drain()`` waits until all queued work has finished.
"""

import copy
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Queue
from typing import Any, Deque, Dict, List, Optional, Tuple

from region_sync.stores.base import (
    DocumentSnapshot,
    DocumentStore,
    ErrorCallback,
    SlotReference,
    SnapshotCallback,
    StoreError,
    completed,
    failed,
)
from region_sync.subscription import Subscription
from region_sync.sync.records import RecordConverter

_STOP = object()


class _Listener:
    """One registered listener of one slot."""

    def __init__(
        self,
        store: "MemoryDocumentStore",
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ):
        self.store = store
        self.path = path
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True
        # Held while a callback runs so cancel() from another thread waits
        # for an in-flight delivery to finish.
        self._call_lock = threading.RLock()
        self._queue: Optional[Queue] = None
        self._thread: Optional[threading.Thread] = None

        if store.threaded:
            self._queue = Queue()
            self._thread = threading.Thread(
                target=self._run, name=f"slot-listener:{path}", daemon=True
            )
            self._thread.start()

    def dispatch(self, kind: str, payload: Any) -> None:
        """Run or enqueue one delivery ("snapshot" or "error")."""
        if self._queue is not None:
            self._queue.put((kind, payload))
        else:
            self.invoke(kind, payload)

    def invoke(self, kind: str, payload: Any) -> None:
        with self._call_lock:
            if not self.active:
                return
            try:
                if kind == "snapshot":
                    self.on_snapshot(payload)
                else:
                    # Stream is closed after an error
                    self.active = False
                    self.store._remove_listener(self)
                    if self._queue is not None:
                        self._queue.put(_STOP)
                    self.on_error(payload)
            except Exception as e:
                self.store.logger.error(f"Listener on '{self.path}' raised: {e}")

    def stop(self) -> None:
        with self._call_lock:
            self.active = False
        if self._queue is not None:
            self._queue.put(_STOP)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            try:
                self.invoke(*item)
            finally:
                self.store._work_done()


class MemorySlotReference(SlotReference):
    """Slot in a MemoryDocumentStore."""

    def __init__(self, store: "MemoryDocumentStore", path: str, converter: RecordConverter):
        super().__init__(path, converter)
        self.store = store

    def listen(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        return self.store._listen(self.path, on_snapshot, on_error)

    def set(self, record: Dict[str, Any]) -> "Future[DocumentSnapshot]":
        return self.store._set(self.path, record)

    def get(self) -> DocumentSnapshot:
        return self.store._get(self.path)


class MemoryDocumentStore(DocumentStore):
    """Document store kept in process memory.

    Attributes:
        threaded: Deliver and write on background threads
        write_delay_s: Artificial latency applied to threaded writes
    """

    def __init__(self, threaded: bool = False, max_workers: int = 4, write_delay_s: float = 0.0):
        super().__init__()
        self.threaded = threaded
        self.write_delay_s = write_delay_s

        self._lock = threading.RLock()
        self._documents: Dict[str, DocumentSnapshot] = {}
        self._listeners: Dict[str, List[_Listener]] = {}
        self._history: Dict[str, List[Any]] = {}
        self._write_failures: Dict[str, Tuple[Optional[int], Exception]] = {}

        # Outstanding deliveries and writes, for drain()
        self._pending = 0
        self._idle = threading.Condition()

        # Inline delivery trampoline
        self._inline_queue: Deque[Tuple[_Listener, str, Any]] = deque()
        self._inline_draining = False

        self._executor: Optional[ThreadPoolExecutor] = None
        if threaded:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="memory-store-write"
            )
        self._closed = False

    # ------------------------------------------------------------------
    # DocumentStore
    # ------------------------------------------------------------------

    def slot(self, path: str, converter: RecordConverter) -> MemorySlotReference:
        return MemorySlotReference(self, path, converter)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            listeners = [l for group in self._listeners.values() for l in group]
            self._listeners.clear()

        for listener in listeners:
            listener.stop()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self.logger.debug(f"Memory store closed ({len(listeners)} listeners stopped)")

    # ------------------------------------------------------------------
    # Test and simulation helpers
    # ------------------------------------------------------------------

    def put(self, path: str, data: Any) -> DocumentSnapshot:
        """Store ``data`` synchronously, as if another process wrote it."""
        return self._commit(path, copy.deepcopy(data))

    def history(self, path: str) -> List[Any]:
        """Records written to ``path``, oldest first."""
        with self._lock:
            return copy.deepcopy(self._history.get(path, []))

    def write_count(self, path: str) -> int:
        with self._lock:
            return len(self._history.get(path, []))

    def listener_count(self, path: Optional[str] = None) -> int:
        with self._lock:
            if path is not None:
                return len(self._listeners.get(path, []))
            return sum(len(group) for group in self._listeners.values())

    def fail_writes(self, path: str, error: Optional[Exception] = None, count: Optional[int] = None) -> None:
        """Make the next ``count`` writes to ``path`` fail (all if None)."""
        with self._lock:
            self._write_failures[path] = (count, error or StoreError(f"Write to {path} rejected"))

    def restore_writes(self, path: str) -> None:
        with self._lock:
            self._write_failures.pop(path, None)

    def break_stream(self, path: str, error: Optional[Exception] = None) -> int:
        """Deliver a stream error to every listener of ``path``.

        Returns:
            Number of listeners that received the error
        """
        error = error or StoreError(f"Notification stream for {path} closed")
        with self._lock:
            listeners = list(self._listeners.get(path, []))
            for listener in listeners:
                self._dispatch(listener, "error", error)
        self._drain_inline()
        return len(listeners)

    def drain(self, timeout: float = 5.0) -> bool:
        """Wait until all queued deliveries and writes have finished.

        Returns:
            True if the store went idle within ``timeout``
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _listen(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        listener = _Listener(self, path, on_snapshot, on_error)
        with self._lock:
            if self._closed:
                raise StoreError("Store is closed")
            self._listeners.setdefault(path, []).append(listener)
            current = self._documents.get(path) or DocumentSnapshot(path=path)
            self._dispatch(listener, "snapshot", current)
        self._drain_inline()

        def release() -> None:
            self._remove_listener(listener)
            listener.stop()

        return Subscription(release, description=f"slot:{path}")

    def _remove_listener(self, listener: _Listener) -> None:
        with self._lock:
            group = self._listeners.get(listener.path, [])
            if listener in group:
                group.remove(listener)

    def _get(self, path: str) -> DocumentSnapshot:
        with self._lock:
            current = self._documents.get(path)
        if current is None:
            return DocumentSnapshot(path=path)
        return DocumentSnapshot(
            path=path,
            data=copy.deepcopy(current.data),
            update_time=current.update_time,
        )

    def _set(self, path: str, record: Dict[str, Any]) -> "Future[DocumentSnapshot]":
        record = copy.deepcopy(record)

        with self._lock:
            if self._closed:
                return failed(StoreError("Store is closed"))
            error = self._take_write_failure(path)

        if not self.threaded:
            if error is not None:
                return failed(error)
            return completed(self._commit(path, record))

        self._work_started()
        try:
            future = self._executor.submit(self._write_task, path, record, error)
        except RuntimeError as e:
            self._work_done()
            return failed(StoreError(f"Store is closed: {e}"))
        future.add_done_callback(lambda _: self._work_done())
        return future

    def _write_task(self, path: str, record: Any, error: Optional[Exception]) -> DocumentSnapshot:
        if self.write_delay_s:
            time.sleep(self.write_delay_s)
        if error is not None:
            raise error
        return self._commit(path, record)

    def _take_write_failure(self, path: str) -> Optional[Exception]:
        # Caller holds the lock
        if path not in self._write_failures:
            return None
        count, error = self._write_failures[path]
        if count is not None:
            if count <= 1:
                del self._write_failures[path]
            else:
                self._write_failures[path] = (count - 1, error)
        return error

    def _commit(self, path: str, data: Any) -> DocumentSnapshot:
        with self._lock:
            snapshot = DocumentSnapshot(path=path, data=data, update_time=time.time())
            self._documents[path] = snapshot
            self._history.setdefault(path, []).append(copy.deepcopy(data))
            # Enqueue under the lock so every listener sees commit order
            for listener in self._listeners.get(path, []):
                self._dispatch(listener, "snapshot", snapshot)
        self._drain_inline()
        return snapshot

    def _dispatch(self, listener: _Listener, kind: str, payload: Any) -> None:
        if self.threaded:
            self._work_started()
            listener.dispatch(kind, payload)
        else:
            self._inline_queue.append((listener, kind, payload))

    def _drain_inline(self) -> None:
        if self.threaded:
            return
        with self._lock:
            if self._inline_draining:
                return
            self._inline_draining = True
        try:
            while True:
                with self._lock:
                    if not self._inline_queue:
                        self._inline_draining = False
                        return
                    listener, kind, payload = self._inline_queue.popleft()
                listener.invoke(kind, payload)
        except BaseException:
            with self._lock:
                self._inline_draining = False
            raise

    def _work_started(self) -> None:
        with self._idle:
            self._pending += 1

    def _work_done(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()
