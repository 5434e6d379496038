"""JSON-file document store.

Each slot is one JSON file under a root directory::

    <root>/matches/match_1/areas/area_one.json

Several processes pointing at the same directory share the slots. Writes go
to a temporary file that is then renamed over the slot file, so readers
never see a partial record. Listeners poll the file and compare content
fingerprints to detect changes; the last rename wins.
"""

import json
import os
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Union

from region_sync.stores.base import (
    DocumentSnapshot,
    DocumentStore,
    ErrorCallback,
    SlotReference,
    SnapshotCallback,
    StoreError,
    failed,
)
from region_sync.subscription import Subscription
from region_sync.sync.records import RecordConverter
from region_sync.utils.hashing import fast_hash_file

DEFAULT_POLL_INTERVAL = 0.2


class _Watcher:
    """Polling thread delivering snapshots of one slot file."""

    def __init__(
        self,
        store: "FileDocumentStore",
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ):
        self.store = store
        self.path = path
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self._stop = threading.Event()
        self._call_lock = threading.RLock()
        self._fingerprint: Optional[str] = None
        self._thread = threading.Thread(
            target=self._run, name=f"slot-watcher:{path}", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        with self._call_lock:
            pass

    def _current_fingerprint(self) -> Optional[str]:
        try:
            return fast_hash_file(self.store.file_for(self.path), self.store.algorithm)
        except FileNotFoundError:
            return None

    def _deliver(self, snapshot: DocumentSnapshot) -> None:
        with self._call_lock:
            if self._stop.is_set():
                return
            try:
                self.on_snapshot(snapshot)
            except Exception as e:
                self.store.logger.error(f"Listener on '{self.path}' raised: {e}")

    def _fail(self, error: Exception) -> None:
        with self._call_lock:
            if self._stop.is_set():
                return
            self._stop.set()
            try:
                self.on_error(error)
            except Exception as e:
                self.store.logger.error(f"Error listener on '{self.path}' raised: {e}")

    def _run(self) -> None:
        try:
            self._fingerprint = self._current_fingerprint()
            self._deliver(self.store.read(self.path))

            while not self._stop.wait(self.store.poll_interval):
                fingerprint = self._current_fingerprint()
                if fingerprint == self._fingerprint:
                    continue
                self._fingerprint = fingerprint
                self._deliver(self.store.read(self.path))
        except (OSError, ValueError) as e:
            self._fail(StoreError(f"Watching {self.path} failed: {e}"))
        finally:
            self.store._remove_watcher(self)


class FileSlotReference(SlotReference):
    """Slot stored as a JSON file."""

    def __init__(self, store: "FileDocumentStore", path: str, converter: RecordConverter):
        super().__init__(path, converter)
        self.store = store

    def listen(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        return self.store._listen(self.path, on_snapshot, on_error)

    def set(self, record: Dict[str, Any]) -> "Future[DocumentSnapshot]":
        return self.store._set(self.path, record)

    def get(self) -> DocumentSnapshot:
        return self.store.read(self.path)


class FileDocumentStore(DocumentStore):
    """Document store backed by JSON files in a shared directory.

    Attributes:
        root: Directory holding the slot files
        poll_interval: Seconds between change checks per listener
        algorithm: Fingerprint algorithm for change detection
    """

    def __init__(
        self,
        root: Union[str, Path],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        algorithm: str = "xxhash",
        max_workers: int = 2,
    ):
        super().__init__()
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.poll_interval = poll_interval
        self.algorithm = algorithm

        self._lock = threading.Lock()
        self._watchers: List[_Watcher] = []
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="file-store-write"
        )
        self._closed = False

    def slot(self, path: str, converter: RecordConverter) -> FileSlotReference:
        self.file_for(path)
        return FileSlotReference(self, path, converter)

    def file_for(self, path: str) -> Path:
        """Map a slot path to its JSON file.

        Raises:
            ValueError: If the path is empty, absolute or escapes the root
        """
        parts = PurePosixPath(path).parts
        if not parts or path.startswith("/") or any(p in ("..", ".") for p in parts):
            raise ValueError(f"Invalid slot path: {path!r}")
        return self.root.joinpath(*parts[:-1], f"{parts[-1]}.json")

    def read(self, path: str) -> DocumentSnapshot:
        """Point-in-time read of a slot.

        A file that is not valid JSON is returned as its raw text so the
        caller's decoder reports it.
        """
        file_path = self.file_for(path)
        try:
            text = file_path.read_text(encoding="utf-8")
            update_time = file_path.stat().st_mtime
        except FileNotFoundError:
            return DocumentSnapshot(path=path)

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            self.logger.warning(f"Slot file is not valid JSON: {file_path}")
            data = text

        return DocumentSnapshot(path=path, data=data, update_time=update_time)

    def slot_paths(self) -> List[str]:
        """List the slot paths that currently have a file."""
        return sorted(
            file.relative_to(self.root).with_suffix("").as_posix()
            for file in self.root.rglob("*.json")
            if file.is_file()
        )

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            watchers = list(self._watchers)

        for watcher in watchers:
            watcher.stop()
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _listen(self, path: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Subscription:
        self.file_for(path)
        watcher = _Watcher(self, path, on_snapshot, on_error)
        with self._lock:
            if self._closed:
                raise StoreError("Store is closed")
            self._watchers.append(watcher)
        watcher.start()
        return Subscription(watcher.stop, description=f"file:{path}")

    def _remove_watcher(self, watcher: _Watcher) -> None:
        with self._lock:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

    def _set(self, path: str, record: Dict[str, Any]) -> "Future[DocumentSnapshot]":
        try:
            payload = json.dumps(record, indent=2, sort_keys=True)
        except (TypeError, ValueError) as e:
            return failed(StoreError(f"Record for {path} is not JSON serializable: {e}"))

        try:
            return self._executor.submit(self._write, path, payload)
        except RuntimeError as e:
            return failed(StoreError(f"Store is closed: {e}"))

    def _write(self, path: str, payload: str) -> DocumentSnapshot:
        file_path = self.file_for(path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=file_path.parent, prefix=f".{file_path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, file_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StoreError(f"Write to {path} failed: {e}") from e

        self.logger.debug(f"Wrote {len(payload)} bytes to {file_path}")
        return self.read(path)
