#!/usr/bin/env python3
"""Failure handling example for Region Sync.

Synchronization is best effort: problems on the remote side are published
on the controller's failure channel instead of being raised.

This example demonstrates:
1. A malformed record that is reported and not applied
2. A rejected write
3. A broken notification stream that is listened to again

Run this example:
    python failure_handling.py
"""

from region_sync import (
    Card,
    ElementCodec,
    ObservableRegion,
    ResubscribePolicy,
    SyncConfig,
    SyncController,
)
from region_sync.stores.memory import MemoryDocumentStore


def main():
    store = MemoryDocumentStore()
    config = SyncConfig(
        dispose_on_exit=False,
        resubscribe=ResubscribePolicy(max_attempts=3, delay_s=0.0),
    )
    areas = {name: ObservableRegion(name) for name in config.regions}
    path = config.slot_path("area_one")

    def report(failure):
        print(f"    ! {failure.kind.value}: {failure.message}")

    with SyncController(store, areas, ElementCodec.for_type(Card), config=config,
                        on_failure=report) as controller:
        areas["area_one"].append(Card.parse("KS"))

        print("\n[1] Another writer stores a malformed record...")
        store.put(path, {"elements": [{"suit": "hearts"}]})
        print(f"    area_one keeps {[str(c) for c in areas['area_one'].snapshot()]}")

        print("\n[2] The store rejects the next write...")
        store.fail_writes(path, count=1)
        areas["area_one"].append(Card.parse("QS"))

        print("\n[3] The notification stream breaks...")
        store.break_stream(path)
        store.put(path, {"elements": [Card.parse("AH").to_record()]})
        print(f"    area_one now {[str(c) for c in areas['area_one'].snapshot()]}")

        counts = controller.status()["failures"]
        print(f"\n    failure counts: {counts}")

    store.close()


if __name__ == "__main__":
    main()
