#!/usr/bin/env python3
"""Basic usage example for Region Sync.

This example demonstrates:
1. Creating a store shared by two players
2. Binding each player's areas with a SyncController
3. A local change written once to the store
4. A remote change applied to the other player without echo
5. Disposing the controllers

Run this example:
    python basic_usage.py
"""

from region_sync import Card, ElementCodec, ObservableRegion, SyncConfig, SyncController
from region_sync.stores import get_store


def show(label, players):
    for player, areas in players.items():
        cards = ", ".join(str(card) for card in areas["area_one"].snapshot())
        print(f"    {label} {player}.area_one = [{cards}]")


def main():
    print("=" * 60)
    print("Region Sync - Basic Usage Example")
    print("=" * 60)

    # -------------------------------------------------------------------------
    # Step 1: One store stands in for the shared real-time database
    # -------------------------------------------------------------------------
    print("\n[1] Creating an in-memory store (inline delivery)...")
    store = get_store("memory")

    config = SyncConfig(match_id="match_1", dispose_on_exit=False)
    codec = ElementCodec.for_type(Card)

    # -------------------------------------------------------------------------
    # Step 2: Each player binds their own areas
    # -------------------------------------------------------------------------
    print("\n[2] Binding areas for two players...")
    players = {
        player: {name: ObservableRegion(f"{player}.{name}") for name in config.regions}
        for player in ("alice", "bob")
    }
    controllers = {
        player: SyncController(store, areas, codec, config=config)
        for player, areas in players.items()
    }
    for region, link in controllers["alice"].links.items():
        print(f"    {region} -> {link.slot_path}")

    # -------------------------------------------------------------------------
    # Step 3: Alice lays two cards
    # -------------------------------------------------------------------------
    print("\n[3] alice lays 7H, 2H...")
    players["alice"]["area_one"].replace([Card.parse("7H"), Card.parse("2H")])
    show("after:", players)
    print(f"    writes to area_one: {store.write_count(config.slot_path('area_one'))}")

    # -------------------------------------------------------------------------
    # Step 4: Bob replaces the area
    # -------------------------------------------------------------------------
    print("\n[4] bob replaces area_one with 9H...")
    players["bob"]["area_one"].replace([Card.parse("9H")])
    show("after:", players)
    print(f"    writes to area_one: {store.write_count(config.slot_path('area_one'))}")

    # -------------------------------------------------------------------------
    # Step 5: Status and disposal
    # -------------------------------------------------------------------------
    print("\n[5] Status...")
    for player, controller in controllers.items():
        stats = controller.status()["regions"]["area_one"]["stats"]
        print(
            f"    {player}: writes={stats['writes_issued']} "
            f"applied={stats['snapshots_applied']} skipped={stats['writes_skipped']}"
        )

    for controller in controllers.values():
        controller.dispose()
    store.close()

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
