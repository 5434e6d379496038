"""Region Sync document stores.

Each store implements the DocumentStore interface: resolve a slot path to a
slot reference, then listen to it, overwrite it or read it once.

Available stores:
    - MemoryDocumentStore: in-process, inline or threaded delivery
    - FileDocumentStore: JSON files in a directory shared between processes

Usage:
    from region_sync.stores import get_store

    store = get_store("memory", threaded=True)
    slot = store.slot("matches/match_1/areas/area_one", converter)
"""

from typing import Type, Union

from region_sync.config import StoreKind
from region_sync.stores.base import DocumentSnapshot, DocumentStore, SlotReference, StoreError


def get_store_class(kind: Union[str, StoreKind]) -> Type[DocumentStore]:
    """Get the store class for a kind ("memory" or "file").

    Raises:
        ValueError: If the kind is unknown
    """
    kind = StoreKind(kind)

    if kind is StoreKind.MEMORY:
        from region_sync.stores.memory import MemoryDocumentStore
        return MemoryDocumentStore
    else:
        from region_sync.stores.file import FileDocumentStore
        return FileDocumentStore


def get_store(kind: Union[str, StoreKind] = StoreKind.MEMORY, **options) -> DocumentStore:
    """Create a document store.

    Args:
        kind: "memory" or "file"
        **options: Passed to the store constructor (e.g. root=..., threaded=True)

    Returns:
        DocumentStore instance
    """
    return get_store_class(kind)(**options)


__all__ = [
    "DocumentSnapshot",
    "DocumentStore",
    "SlotReference",
    "StoreError",
    "get_store",
    "get_store_class",
]
