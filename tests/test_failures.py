"""Tests for region_sync.sync.failures."""

from region_sync.sync.failures import (
    DecodeFailure,
    FailureChannel,
    FailureKind,
    SyncError,
    SyncFailure,
    WriteFailure,
)


def make_failure(kind=FailureKind.WRITE, region="area_one"):
    return SyncFailure(
        kind=kind,
        region=region,
        slot_path=f"matches/match_1/areas/{region}",
        message="boom",
        error=WriteFailure("boom"),
    )


class TestFailureTypes:

    def test_hierarchy(self):
        assert issubclass(DecodeFailure, SyncError)
        assert issubclass(WriteFailure, SyncError)

    def test_to_dict(self):
        d = make_failure().to_dict()
        assert d["kind"] == "write"
        assert d["region"] == "area_one"
        assert "WriteFailure" in d["error"]
        assert d["occurred_at"] > 0


class TestFailureChannel:

    def test_publish_reaches_listeners(self):
        channel = FailureChannel()
        seen = []
        channel.subscribe(seen.append)
        failure = make_failure()
        channel.publish(failure)
        assert seen == [failure]

    def test_counts_per_kind(self):
        channel = FailureChannel()
        channel.publish(make_failure(FailureKind.DECODE))
        channel.publish(make_failure(FailureKind.DECODE))
        channel.publish(make_failure(FailureKind.SUBSCRIPTION))
        assert channel.counts[FailureKind.DECODE] == 2
        assert channel.counts[FailureKind.SUBSCRIPTION] == 1
        assert channel.counts[FailureKind.WRITE] == 0

    def test_history_before_subscribe(self):
        channel = FailureChannel()
        channel.publish(make_failure())
        assert len(channel.recent()) == 1

    def test_history_bounded(self):
        channel = FailureChannel(max_history=3)
        for i in range(5):
            channel.publish(make_failure(region=f"r{i}"))
        assert [f.region for f in channel.recent()] == ["r2", "r3", "r4"]

    def test_recent_by_kind(self):
        channel = FailureChannel()
        channel.publish(make_failure(FailureKind.DECODE))
        channel.publish(make_failure(FailureKind.WRITE))
        recent = channel.recent(kind=FailureKind.DECODE)
        assert [f.kind for f in recent] == [FailureKind.DECODE]

    def test_unsubscribe(self):
        channel = FailureChannel()
        seen = []
        sub = channel.subscribe(seen.append)
        sub.cancel()
        channel.publish(make_failure())
        assert seen == []

    def test_listener_error_isolated(self):
        channel = FailureChannel()
        seen = []

        def broken(failure):
            raise RuntimeError("listener broke")

        channel.subscribe(broken)
        channel.subscribe(seen.append)
        channel.publish(make_failure())
        assert len(seen) == 1

    def test_clear_keeps_counts(self):
        channel = FailureChannel()
        channel.publish(make_failure())
        channel.clear()
        assert channel.recent() == []
        assert channel.counts[FailureKind.WRITE] == 1
