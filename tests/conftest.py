"""Shared pytest fixtures for Region Sync tests.

Provides stores, regions, codecs and cards for testing the controller
without any real remote service.
"""

import time

import pytest

from region_sync.cards import Card
from region_sync.config import SyncConfig
from region_sync.recovery import ResubscribePolicy
from region_sync.region import ObservableRegion
from region_sync.stores.memory import MemoryDocumentStore
from region_sync.sync.records import ElementCodec, RecordConverter

AREA_ONE = "matches/match_1/areas/area_one"
AREA_TWO = "matches/match_1/areas/area_two"


def enc(card: Card) -> dict:
    """Encoded form of a card as stored in a slot record."""
    return card.to_record()


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def card7():
    return Card("hearts", 7)


@pytest.fixture
def card2():
    return Card("hearts", 2)


@pytest.fixture
def card9():
    return Card("hearts", 9)


@pytest.fixture
def codec():
    return ElementCodec.for_type(Card)


@pytest.fixture
def converter(codec):
    return RecordConverter(codec, field_name="elements")


@pytest.fixture
def store():
    """Inline memory store: every write and delivery happens synchronously."""
    s = MemoryDocumentStore()
    yield s
    s.close()


@pytest.fixture
def threaded_store():
    """Threaded memory store: writes on a pool, one delivery thread per listener."""
    s = MemoryDocumentStore(threaded=True)
    yield s
    s.close()


@pytest.fixture
def areas():
    return {
        "area_one": ObservableRegion("area_one"),
        "area_two": ObservableRegion("area_two"),
    }


@pytest.fixture
def sync_config():
    """Config with immediate re-listen and no atexit hook."""
    return SyncConfig(
        match_id="match_1",
        dispose_on_exit=False,
        resubscribe=ResubscribePolicy(max_attempts=3, delay_s=0.0),
    )
