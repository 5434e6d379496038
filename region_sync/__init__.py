"""Region Sync - keep local ordered collections in sync with a document store.

Built for multiplayer card games where each player's process holds the
table areas in memory and a shared real-time document store carries them
between players.

Key Features:
    - One controller per process, one link per region, fixed at construction
    - Full-record overwrites, last writer wins
    - Ordered structural equality on both lanes, so replicas never echo
      each other's writes
    - Best-effort: decode, write and stream failures go to a failure
      channel, never into the code that mutated a region
    - Automatic re-listen after a notification stream breaks
    - In-memory and JSON-file document stores

Quick Start:
    from region_sync import create_controller, ObservableRegion, Card
    from region_sync.stores import get_store

    store = get_store("memory")
    areas = {"area_one": ObservableRegion("area_one"),
             "area_two": ObservableRegion("area_two")}
    controller = create_controller(store, areas, match_id="match_1")

    areas["area_one"].append(Card("hearts", 7))   # written to the store
    controller.dispose()

Classes:
    SyncController: Binds regions to remote slots
    SyncConfig: Controller configuration
    ObservableRegion: Thread-safe observable ordered collection
    Card: Playing card element
    ElementCodec: Encode/decode pair for an element type
"""

__version__ = "1.0.0"
__license__ = "MIT"

from typing import Mapping, Optional

from .config import SyncConfig, StoreKind, LinkState
from .recovery import ResubscribePolicy
from .subscription import Subscription
from .region import ObservableRegion, Region
from .cards import Card, standard_deck, shuffled_deck
from .sync import (
    sequences_equal,
    ElementCodec,
    RecordConverter,
    FailureChannel,
    FailureKind,
    SyncFailure,
    SyncError,
    DecodeFailure,
    WriteFailure,
    SubscriptionFailure,
    SyncLink,
    LinkStats,
)
from .stores import DocumentStore, DocumentSnapshot, StoreError, get_store
from .controller import SyncController

__all__ = [
    "__version__",
    "__license__",
    # Main classes
    "SyncController",
    "SyncConfig",
    "SyncLink",
    "LinkStats",
    # Enums
    "StoreKind",
    "LinkState",
    "FailureKind",
    # Regions and elements
    "Region",
    "ObservableRegion",
    "Subscription",
    "Card",
    "standard_deck",
    "shuffled_deck",
    "ElementCodec",
    "RecordConverter",
    "sequences_equal",
    # Failures
    "FailureChannel",
    "SyncFailure",
    "SyncError",
    "DecodeFailure",
    "WriteFailure",
    "SubscriptionFailure",
    "ResubscribePolicy",
    # Stores
    "DocumentStore",
    "DocumentSnapshot",
    "StoreError",
    "get_store",
    "create_controller",
]


def create_controller(
    store: DocumentStore,
    regions: Mapping[str, Region],
    element_type: type = Card,
    match_id: str = "match_1",
    config: Optional[SyncConfig] = None,
    **kwargs,
) -> SyncController:
    """Convenience function to create a SyncController.

    Args:
        store: Document store
        regions: Region name -> region
        element_type: Element class with to_record()/from_record()
        match_id: Match identifier used in slot paths (ignored if config given)
        config: Full configuration
        **kwargs: Passed to SyncController (slot_paths, on_failure)

    Example:
        controller = create_controller(store, {"area_one": ObservableRegion()})
    """
    config = config or SyncConfig(match_id=match_id, regions=list(regions))
    return SyncController(
        store, regions, ElementCodec.for_type(element_type), config=config, **kwargs
    )
