"""Synchronization link between one local region and one remote slot.

A link owns exactly two subscriptions:

- remote lane: slot snapshots -> decode -> compare -> replace the region
- local lane: region change -> compare -> encode -> overwrite the slot

Both lanes compare against the contents last known to be in the slot. The
remote lane replaces the region only when the snapshot differs from it; the
local lane writes only when the region differs from what the slot is known
to hold. The write-back triggered by an applied snapshot therefore finds
equality and stops, instead of echoing between the replicas forever.

Writes are fire-and-forget full overwrites with no version guard: the store
resolves concurrent writers as last writer wins.
"""

import logging
import threading
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Tuple

from region_sync.config import LinkState
from region_sync.recovery.resubscribe import ResubscribePolicy, schedule
from region_sync.sync.equality import sequences_equal
from region_sync.sync.failures import (
    DecodeFailure,
    FailureChannel,
    FailureKind,
    SubscriptionFailure,
    SyncFailure,
    WriteFailure,
)
from region_sync.utils.hashing import fingerprint_record

if TYPE_CHECKING:
    from region_sync.region import Region
    from region_sync.stores.base import DocumentSnapshot, SlotReference
    from region_sync.subscription import Subscription

logger = logging.getLogger(__name__)


@dataclass
class LinkStats:
    """Counters for one link."""

    snapshots_received: int = 0
    snapshots_applied: int = 0
    snapshots_unchanged: int = 0
    writes_issued: int = 0
    writes_skipped: int = 0
    writes_completed: int = 0
    writes_failed: int = 0
    decode_failures: int = 0
    subscription_failures: int = 0
    resubscribes: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert stats to dictionary."""
        return {
            "snapshots_received": self.snapshots_received,
            "snapshots_applied": self.snapshots_applied,
            "snapshots_unchanged": self.snapshots_unchanged,
            "writes_issued": self.writes_issued,
            "writes_skipped": self.writes_skipped,
            "writes_completed": self.writes_completed,
            "writes_failed": self.writes_failed,
            "decode_failures": self.decode_failures,
            "subscription_failures": self.subscription_failures,
            "resubscribes": self.resubscribes,
        }


class SyncLink:
    """Live pairing of a region with a remote slot.

    Attributes:
        name: Region name (e.g. "area_one")
        region: Local region
        slot: Remote slot reference, carrying the record converter
        failures: Channel receiving DecodeFailure/WriteFailure/SubscriptionFailure
        policy: Re-listen policy for broken remote streams
        stats: LinkStats counters
    """

    def __init__(
        self,
        name: str,
        region: "Region",
        slot: "SlotReference",
        failures: FailureChannel,
        policy: Optional[ResubscribePolicy] = None,
        fingerprint_algorithm: str = "xxhash",
    ):
        self.name = name
        self.region = region
        self.slot = slot
        self.failures = failures
        self.policy = policy or ResubscribePolicy()
        self.fingerprint_algorithm = fingerprint_algorithm
        self.stats = LinkStats()

        # Guards state, _known_remote and the subscription handles. Never
        # held while calling into the region or the store.
        self._lock = threading.RLock()
        self._state = LinkState.CONSTRUCTED
        self._known_remote: Optional[Tuple[Any, ...]] = None
        self._remote_sub: Optional["Subscription"] = None
        self._local_sub: Optional["Subscription"] = None
        self._retry_timer: Optional[threading.Timer] = None
        self._attempts = 0
        self._remote_errors = 0
        self._relistening = False

    def _count(self, counter: str) -> None:
        with self._lock:
            setattr(self.stats, counter, getattr(self.stats, counter) + 1)

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def slot_path(self) -> str:
        return self.slot.path

    @property
    def active(self) -> bool:
        return self._state is LinkState.ACTIVE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Subscribe the remote lane, then the local lane.

        The first remote snapshot may arrive before or after this returns.
        If the local subscription fails the remote one is cancelled again, so
        a link never holds only one of its subscriptions.

        Raises:
            RuntimeError: If the link is not in the constructed state
        """
        with self._lock:
            if self._state is not LinkState.CONSTRUCTED:
                raise RuntimeError(f"Link '{self.name}' cannot be opened from state {self._state.value}")
            # Accept the initial snapshot even if it is delivered inline
            self._state = LinkState.ACTIVE

        try:
            self._listen_remote()
        except Exception:
            self.dispose()
            raise

        try:
            local_sub = self.region.subscribe(self._on_local_change)
        except Exception:
            self.dispose()
            raise

        with self._lock:
            disposed = self._state is LinkState.DISPOSED
            if not disposed:
                self._local_sub = local_sub

        if disposed:
            local_sub.cancel()
            return

        logger.debug(f"Link '{self.name}' open on {self.slot_path}")

    def dispose(self) -> bool:
        """Cancel both subscriptions and any pending re-listen.

        Idempotent. Once this returns, no notification reaches the link's
        handlers.

        Returns:
            True if this call disposed the link, False if it already was
        """
        with self._lock:
            if self._state is LinkState.DISPOSED:
                return False
            self._state = LinkState.DISPOSED
            timer, self._retry_timer = self._retry_timer, None
            subs = [self._remote_sub, self._local_sub]
            self._remote_sub = None
            self._local_sub = None

        if timer is not None:
            timer.cancel()

        for sub in subs:
            if sub is None:
                continue
            try:
                sub.cancel()
            except Exception as e:
                logger.error(f"Link '{self.name}': cancelling {sub!r} failed: {e}")

        logger.debug(f"Link '{self.name}' disposed")
        return True

    # ------------------------------------------------------------------
    # Remote lane
    # ------------------------------------------------------------------

    def _on_remote_snapshot(self, snapshot: "DocumentSnapshot") -> None:
        if not self.active:
            return
        self._count("snapshots_received")

        try:
            decoded = self.slot.converter.from_record(snapshot.data)
        except DecodeFailure as e:
            self._count("decode_failures")
            with self._lock:
                # The slot no longer holds what we last knew
                self._known_remote = None
            self._report(FailureKind.DECODE, f"Snapshot not applied: {e}", e)
            return

        with self._lock:
            if self._state is not LinkState.ACTIVE:
                return
            self._known_remote = tuple(decoded)
            self._attempts = 0

        if sequences_equal(decoded, self.region.snapshot()):
            self._count("snapshots_unchanged")
            logger.debug(f"Link '{self.name}': snapshot matches local contents")
            return

        logger.info(f"Link '{self.name}': applying remote snapshot ({len(decoded)} elements)")
        self._count("snapshots_applied")
        self.region.replace(decoded)

    def _listen_remote(self) -> bool:
        """Listen to the slot and keep the subscription if it is still live.

        The stream may fail while listen() is still running (stores that
        deliver inline). Such a subscription is already dead and is dropped;
        the error handler has scheduled its replacement.

        Returns:
            True if the new subscription was kept
        """
        with self._lock:
            errors_before = self._remote_errors

        sub = self.slot.listen(self._on_remote_snapshot, self._on_remote_error)

        with self._lock:
            keep = self._state is LinkState.ACTIVE and self._remote_errors == errors_before
            if keep:
                old, self._remote_sub = self._remote_sub, sub
            else:
                old = None

        if old is not None and old is not sub:
            old.cancel()
        if not keep:
            sub.cancel()
        return keep

    def _on_remote_error(self, error: Exception) -> None:
        # An error raised while a re-listen is on the stack is retried from
        # a timer thread, so repeated failures never nest.
        self._stream_failed(error, inline=not self._relistening)

    def _stream_failed(self, error: BaseException, inline: bool) -> None:
        with self._lock:
            if self._state is not LinkState.ACTIVE:
                return
            self._remote_sub = None
            self._remote_errors += 1
            self._attempts += 1
            attempt = self._attempts

        self._count("subscription_failures")
        failure = SubscriptionFailure(f"Notification stream failed: {error}")
        failure.__cause__ = error

        if not self.policy.should_retry(attempt):
            self._report(
                FailureKind.SUBSCRIPTION,
                f"Stream failed, giving up after {attempt - 1} re-listen attempt(s): {error}",
                failure,
            )
            self.dispose()
            return

        delay = self.policy.delay_for(attempt)
        self._report(
            FailureKind.SUBSCRIPTION,
            f"Stream failed, re-listening in {delay:.2f}s (attempt {attempt}): {error}",
            failure,
        )

        timer = schedule(delay, self._resubscribe, inline=inline)
        if timer is None:
            return
        with self._lock:
            if self._state is LinkState.ACTIVE:
                self._retry_timer = timer
                return
        timer.cancel()

    def _resubscribe(self) -> None:
        with self._lock:
            self._retry_timer = None
            if self._state is not LinkState.ACTIVE:
                return
            self._relistening = True

        try:
            kept = self._listen_remote()
        except Exception as e:
            with self._lock:
                self._relistening = False
            self._stream_failed(e, inline=False)
            return

        with self._lock:
            self._relistening = False

        if not kept:
            return

        self._count("resubscribes")
        logger.info(f"Link '{self.name}': re-listening on {self.slot_path}")

    # ------------------------------------------------------------------
    # Local lane
    # ------------------------------------------------------------------

    def _on_local_change(self) -> None:
        if not self.active:
            return

        contents = tuple(self.region.snapshot())
        with self._lock:
            if self._state is not LinkState.ACTIVE:
                return
            if self._known_remote is not None and sequences_equal(contents, self._known_remote):
                self._count("writes_skipped")
                logger.debug(f"Link '{self.name}': local contents already in slot")
                return
            self._known_remote = contents

        try:
            record = self.slot.converter.to_record(contents)
        except Exception as e:
            self._forget_pending(contents)
            self._count("writes_failed")
            self._report(FailureKind.WRITE, f"Could not encode region: {e}", WriteFailure(str(e)))
            return

        self._count("writes_issued")
        logger.info(f"Link '{self.name}': writing {len(contents)} elements to {self.slot_path}")

        try:
            future = self.slot.set(record)
        except Exception as e:
            self._write_done(contents, None, error=e)
            return

        future.add_done_callback(partial(self._write_done, contents))

    def _write_done(self, contents: Tuple[Any, ...], future: Optional[Future], error: Optional[BaseException] = None) -> None:
        if future is not None:
            if future.cancelled():
                error = CancelledError(f"Overwrite of {self.slot_path} was cancelled")
            else:
                error = future.exception()

        if error is None:
            self._count("writes_completed")
            return

        self._count("writes_failed")
        self._forget_pending(contents)
        failure = WriteFailure(f"Overwrite of {self.slot_path} failed: {error}")
        failure.__cause__ = error
        self._report(FailureKind.WRITE, str(failure), failure)

    def _forget_pending(self, contents: Sequence[Any]) -> None:
        # A failed write must not count as known remote contents
        with self._lock:
            if self._known_remote is not None and sequences_equal(self._known_remote, contents):
                self._known_remote = None

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _report(self, kind: FailureKind, message: str, error: Optional[BaseException]) -> None:
        self.failures.publish(SyncFailure(
            kind=kind,
            region=self.name,
            slot_path=self.slot_path,
            message=message,
            error=error,
        ))

    def in_sync(self) -> Optional[bool]:
        """Whether the region equals the last known slot contents.

        Returns:
            None if nothing is known about the slot yet
        """
        with self._lock:
            known = self._known_remote
        if known is None:
            return None
        return sequences_equal(self.region.snapshot(), known)

    def status(self) -> Dict[str, Any]:
        """Get link status."""
        contents = self.region.snapshot()
        try:
            fingerprint = fingerprint_record(
                self.slot.converter.to_record(contents), self.fingerprint_algorithm
            )
        except Exception as e:
            fingerprint = None
            logger.debug(f"Link '{self.name}': no fingerprint: {e}")

        with self._lock:
            stats = self.stats.to_dict()

        return {
            "region": self.name,
            "slot_path": self.slot_path,
            "state": self._state.value,
            "remote_listening": self._remote_sub is not None and self._remote_sub.active,
            "local_listening": self._local_sub is not None and self._local_sub.active,
            "elements": len(contents),
            "in_sync": self.in_sync(),
            "fingerprint": fingerprint,
            "stats": stats,
        }
