"""Tests for region_sync.sync.link.SyncLink.

Uses the inline memory store so every write and snapshot is delivered
before the call that caused it returns.
"""

import threading
from concurrent.futures import Future

import pytest

from conftest import AREA_ONE, enc, wait_until
from region_sync.config import LinkState
from region_sync.recovery import ResubscribePolicy
from region_sync.region import ObservableRegion
from region_sync.stores.base import SlotReference, StoreError
from region_sync.sync.failures import FailureChannel, FailureKind, SubscriptionFailure, WriteFailure
from region_sync.sync.link import SyncLink


class FlakySlot(SlotReference):
    """Wraps a store slot; listen() can be made to fail and set() to hang."""

    def __init__(self, inner, failing_listens=0):
        super().__init__(inner.path, inner.converter)
        self.inner = inner
        self.failing_listens = failing_listens
        self.listen_calls = 0
        self.pending = []
        self.hold_writes = False

    def listen(self, on_snapshot, on_error):
        self.listen_calls += 1
        if self.failing_listens:
            self.failing_listens -= 1
            raise StoreError("listen refused")
        return self.inner.listen(on_snapshot, on_error)

    def set(self, record):
        if self.hold_writes:
            future = Future()
            self.pending.append(future)
            return future
        return self.inner.set(record)

    def get(self):
        return self.inner.get()


@pytest.fixture
def failures():
    return FailureChannel()


@pytest.fixture
def region():
    return ObservableRegion("area_one")


@pytest.fixture
def make_link(store, converter, region, failures):
    links = []

    def factory(policy=None, slot=None):
        link = SyncLink(
            name="area_one",
            region=region,
            slot=slot or store.slot(AREA_ONE, converter),
            failures=failures,
            policy=policy or ResubscribePolicy(max_attempts=3, delay_s=0.0),
        )
        links.append(link)
        return link

    yield factory
    for link in links:
        link.dispose()


class TestLifecycle:

    def test_open_activates_both_lanes(self, make_link, store):
        link = make_link()
        assert link.state is LinkState.CONSTRUCTED
        link.open()
        assert link.state is LinkState.ACTIVE
        status = link.status()
        assert status["remote_listening"] and status["local_listening"]
        assert store.listener_count(AREA_ONE) == 1

    def test_open_twice_raises(self, make_link):
        link = make_link()
        link.open()
        with pytest.raises(RuntimeError):
            link.open()

    def test_dispose_idempotent(self, make_link, store):
        link = make_link()
        link.open()
        assert link.dispose() is True
        assert link.dispose() is False
        assert link.state is LinkState.DISPOSED
        assert store.listener_count(AREA_ONE) == 0

    def test_no_handling_after_dispose(self, make_link, store, region, card7):
        link = make_link()
        link.open()
        link.dispose()

        region.append(card7)
        store.put(AREA_ONE, {"elements": []})

        assert store.write_count(AREA_ONE) == 1
        assert region.snapshot() == [card7]
        assert link.stats.writes_issued == 0
        assert link.stats.snapshots_received == 1

    def test_failed_local_subscribe_releases_remote(self, store, converter, failures):
        class BrokenRegion(ObservableRegion):
            def subscribe(self, callback):
                raise RuntimeError("no listeners allowed")

        link = SyncLink("area_one", BrokenRegion(), store.slot(AREA_ONE, converter), failures)
        with pytest.raises(RuntimeError):
            link.open()
        assert link.state is LinkState.DISPOSED
        assert store.listener_count(AREA_ONE) == 0


class TestLanes:

    def test_initial_remote_applied(self, make_link, store, region, card7):
        store.put(AREA_ONE, {"elements": [enc(card7)]})
        link = make_link()
        link.open()
        assert region.snapshot() == [card7]
        assert link.stats.snapshots_applied == 1
        assert link.stats.writes_issued == 0

    def test_local_change_written(self, make_link, store, region, card7, card2):
        make_link().open()
        region.replace([card7, card2])
        assert store.history(AREA_ONE) == [{"elements": [enc(card7), enc(card2)]}]

    def test_own_write_not_reapplied(self, make_link, region, card7):
        link = make_link()
        link.open()
        region.append(card7)
        assert link.stats.snapshots_applied == 0
        assert link.stats.snapshots_unchanged == 2
        assert region.version == 1

    def test_applied_snapshot_not_written_back(self, make_link, store, region, card9):
        link = make_link()
        link.open()
        store.put(AREA_ONE, {"elements": [enc(card9)]})
        assert region.snapshot() == [card9]
        assert store.write_count(AREA_ONE) == 1
        assert link.stats.writes_issued == 0
        assert link.stats.writes_skipped == 1

    def test_unchanged_local_notification_skipped(self, make_link, store, region, card7):
        make_link().open()
        region.replace([card7])
        region.replace([card7])
        assert store.write_count(AREA_ONE) == 1

    def test_in_sync(self, make_link, region, card7):
        link = make_link()
        assert link.in_sync() is None
        link.open()
        assert link.in_sync() is True
        region.append(card7)
        assert link.in_sync() is True

    def test_status_fingerprint(self, make_link, region, card7):
        link = make_link()
        link.open()
        before = link.status()["fingerprint"]
        region.append(card7)
        status = link.status()
        assert status["fingerprint"] != before
        assert status["elements"] == 1
        assert status["state"] == "active"


class TestFailures:

    def test_decode_failure_leaves_region(self, make_link, store, region, failures, card7):
        link = make_link()
        link.open()
        region.append(card7)

        store.put(AREA_ONE, {"elements": [{"suit": "hearts"}]})

        assert region.snapshot() == [card7]
        assert link.stats.decode_failures == 1
        assert failures.counts[FailureKind.DECODE] == 1
        assert failures.recent()[-1].region == "area_one"

    def test_missing_field_is_decode_failure(self, make_link, store, failures):
        make_link().open()
        store.put(AREA_ONE, {"cards": []})
        assert failures.counts[FailureKind.DECODE] == 1

    def test_write_failure_reported(self, make_link, store, region, failures, card7):
        link = make_link()
        link.open()
        store.fail_writes(AREA_ONE, count=1)

        region.append(card7)

        assert failures.counts[FailureKind.WRITE] == 1
        failure = failures.recent(kind=FailureKind.WRITE)[0]
        assert isinstance(failure.error, WriteFailure)
        assert isinstance(failure.error.__cause__, StoreError)
        assert link.stats.writes_failed == 1
        assert region.snapshot() == [card7]

    def test_write_failure_forgets_pending(self, make_link, store, region, card7):
        """After a failed write the same contents are written again on the next change."""
        link = make_link()
        link.open()
        store.fail_writes(AREA_ONE, count=1)
        region.append(card7)
        assert link.in_sync() is None

        region.replace([card7])

        assert store.history(AREA_ONE) == [{"elements": [enc(card7)]}]

    def test_set_raising_is_write_failure(self, make_link, store, converter, failures, region, card7):
        class RaisingSlot(SlotReference):
            def __init__(self, inner):
                super().__init__(inner.path, inner.converter)
                self.inner = inner

            def listen(self, on_snapshot, on_error):
                return self.inner.listen(on_snapshot, on_error)

            def set(self, record):
                raise StoreError("connection reset")

            def get(self):
                return self.inner.get()

        make_link(slot=RaisingSlot(store.slot(AREA_ONE, converter))).open()
        region.append(card7)
        assert failures.counts[FailureKind.WRITE] == 1

    def test_stream_failure_relistens(self, make_link, store, failures, region, card9):
        link = make_link()
        link.open()

        store.break_stream(AREA_ONE)

        assert failures.counts[FailureKind.SUBSCRIPTION] == 1
        assert isinstance(failures.recent()[-1].error, SubscriptionFailure)
        assert link.stats.resubscribes == 1
        assert store.listener_count(AREA_ONE) == 1

        store.put(AREA_ONE, {"elements": [enc(card9)]})
        assert region.snapshot() == [card9]

    def test_repeated_failures_within_budget(self, make_link, store):
        """A delivered snapshot resets the attempt count."""
        link = make_link(policy=ResubscribePolicy(max_attempts=1, delay_s=0.0))
        link.open()
        for _ in range(3):
            store.break_stream(AREA_ONE)
        assert link.active
        assert link.stats.resubscribes == 3

    def test_gives_up_and_disposes(self, make_link, store, region, failures, card7):
        link = make_link(policy=ResubscribePolicy(max_attempts=0))
        link.open()

        store.break_stream(AREA_ONE)

        assert link.state is LinkState.DISPOSED
        assert "giving up" in failures.recent()[-1].message
        region.append(card7)
        assert store.write_count(AREA_ONE) == 0
        assert store.listener_count(AREA_ONE) == 0

    def test_delayed_relisten_cancelled_by_dispose(self, make_link, store):
        link = make_link(policy=ResubscribePolicy(delay_s=10.0))
        link.open()
        store.break_stream(AREA_ONE)
        assert link.status()["remote_listening"] is False

        link.dispose()

        assert link._retry_timer is None
        assert store.listener_count(AREA_ONE) == 0

    def test_decode_failure_forgets_known_contents(self, make_link, store, region, card7):
        """A malformed slot is overwritten by the next local change, even an unchanged one."""
        link = make_link()
        link.open()
        region.append(card7)

        store.put(AREA_ONE, {"elements": [{"suit": "bogus"}]})
        assert link.in_sync() is None

        region.replace([card7])

        assert store.history(AREA_ONE)[-1] == {"elements": [enc(card7)]}
        assert link.stats.writes_issued == 2
        assert link.in_sync() is True

    def test_refused_relisten_gives_up_without_nesting(self, make_link, store, converter, failures):
        """listen() failing on every re-listen ends in disposal, not recursion."""
        slot = FlakySlot(store.slot(AREA_ONE, converter))
        link = make_link(policy=ResubscribePolicy(max_attempts=3, delay_s=0.0), slot=slot)
        link.open()
        slot.failing_listens = 1000

        store.break_stream(AREA_ONE)

        assert wait_until(lambda: link.state is LinkState.DISPOSED)
        assert slot.listen_calls == 4
        assert failures.counts[FailureKind.SUBSCRIPTION] == 4
        assert "giving up" in failures.recent()[-1].message
        status = link.status()
        assert not status["remote_listening"] and not status["local_listening"]

    def test_refused_relisten_retried(self, make_link, store, converter, region, card9):
        slot = FlakySlot(store.slot(AREA_ONE, converter))
        link = make_link(policy=ResubscribePolicy(max_attempts=3, delay_s=0.0), slot=slot)
        link.open()
        slot.failing_listens = 1

        store.break_stream(AREA_ONE)

        assert wait_until(lambda: link.stats.resubscribes == 1)
        assert link.active
        assert store.listener_count(AREA_ONE) == 1
        store.put(AREA_ONE, {"elements": [enc(card9)]})
        assert region.snapshot() == [card9]

    def test_cancelled_write_reported(self, make_link, store, converter, failures, region, card7):
        slot = FlakySlot(store.slot(AREA_ONE, converter))
        link = make_link(slot=slot)
        link.open()
        slot.hold_writes = True

        region.append(card7)
        assert slot.pending[0].cancel()

        assert failures.counts[FailureKind.WRITE] == 1
        assert isinstance(failures.recent()[-1].error, WriteFailure)
        assert link.stats.writes_failed == 1
        assert link.in_sync() is None


class TestStats:

    def test_counters_safe_across_threads(self, make_link):
        link = make_link()

        def bump():
            for _ in range(2000):
                link._count("snapshots_received")

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert link.stats.snapshots_received == 16000
        assert link.status()["stats"]["snapshots_received"] == 16000
