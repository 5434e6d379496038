"""SyncController - keeps a fixed set of local regions in sync with a store.

The controller builds one SyncLink per region when it is constructed and
tears all of them down when it is disposed. In between it does nothing on
its own: every remote snapshot and every local change is handled by the
link it belongs to.

Example:
    from region_sync import SyncController, ObservableRegion, Card, ElementCodec
    from region_sync.stores import get_store

    store = get_store("memory")
    areas = {"area_one": ObservableRegion("area_one"),
             "area_two": ObservableRegion("area_two")}

    with SyncController(store, areas, ElementCodec.for_type(Card)) as controller:
        areas["area_one"].append(Card("hearts", 7))
        print(controller.status())
"""

from __future__ import annotations

import atexit
import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from .config import LinkState, SyncConfig
from .region import Region
from .stores.base import DocumentStore
from .sync.failures import FailureChannel, SyncFailure
from .sync.link import SyncLink
from .sync.records import ElementCodec, RecordConverter
from .subscription import Subscription
from .utils.logging import make_file_handler


logger = logging.getLogger(__name__)


class SyncController:
    """Synchronization controller for N regions.

    Attributes:
        store: Remote document store handle
        config: SyncConfig (slot paths, field name, resubscribe policy, ...)
        failures: Channel publishing every DecodeFailure, WriteFailure and
                  SubscriptionFailure of every link
        links: Read-only mapping of region name to SyncLink, fixed for the
               controller's lifetime
    """

    def __init__(
        self,
        store: DocumentStore,
        regions: Mapping[str, Region],
        codec: ElementCodec,
        config: Optional[SyncConfig] = None,
        slot_paths: Optional[Mapping[str, str]] = None,
        on_failure: Optional[Callable[[SyncFailure], None]] = None,
    ):
        """Bind every region to its remote slot.

        Construction does not wait for the first remote snapshot.

        Args:
            store: Document store to synchronize with
            regions: Region name -> region
            codec: Element encode/decode pair
            config: Controller configuration (defaults if None)
            slot_paths: Per-region slot path overrides; other regions use
                        config.slot_path(name)
            on_failure: Optional failure listener, subscribed before any link
                        is opened so early failures are seen

        Raises:
            ValueError: If no regions are given or two regions share a slot
            Exception: Whatever the store or a region raised while binding;
                       links bound so far are disposed first
        """
        self.config = config or SyncConfig()
        self.store = store
        self.failures = FailureChannel()
        self._lock = threading.Lock()
        self._state = LinkState.CONSTRUCTED
        self._log_handler: Optional[logging.Handler] = None
        self._failure_sub: Optional[Subscription] = None
        self._links: Dict[str, SyncLink] = {}

        if not regions:
            raise ValueError("At least one region is required")

        overrides = dict(slot_paths or {})
        unknown = set(overrides) - set(regions)
        if unknown:
            raise ValueError(f"Slot path given for unknown region(s): {', '.join(sorted(unknown))}")

        paths = {name: overrides.get(name) or self.config.slot_path(name) for name in regions}
        if len(set(paths.values())) != len(paths):
            raise ValueError(f"Regions must map to distinct slots: {paths}")

        self._setup_logging()

        if on_failure is not None:
            self._failure_sub = self.failures.subscribe(on_failure)

        converter = RecordConverter(codec, field_name=self.config.field_name)

        links: Dict[str, SyncLink] = {}
        try:
            for name, region in regions.items():
                link = SyncLink(
                    name=name,
                    region=region,
                    slot=store.slot(paths[name], converter),
                    failures=self.failures,
                    policy=self.config.resubscribe,
                    fingerprint_algorithm=self.config.fingerprint_algorithm,
                )
                links[name] = link
                link.open()
        except Exception:
            logger.error(f"Binding regions failed, releasing {len(links)} link(s)")
            for link in links.values():
                link.dispose()
            if self._failure_sub is not None:
                self._failure_sub.cancel()
            self._release_logging()
            raise

        self._links = links
        self.links = MappingProxyType(links)
        self._state = LinkState.ACTIVE

        if self.config.dispose_on_exit:
            atexit.register(self.dispose)

        logger.info(
            f"SyncController active for {len(links)} region(s): "
            + ", ".join(f"{name} -> {link.slot_path}" for name, link in links.items())
        )

    def _setup_logging(self) -> None:
        """Attach a file handler to the package logger if configured."""
        if not self.config.log_file:
            return
        self._log_handler = make_file_handler(
            self.config.log_file,
            level=self.config.log_level,
            json_output=self.config.json_logs,
        )
        package_logger = logging.getLogger("region_sync")
        package_logger.addHandler(self._log_handler)
        if package_logger.level == logging.NOTSET or package_logger.level > self._log_handler.level:
            package_logger.setLevel(self._log_handler.level)

    def _release_logging(self) -> None:
        if self._log_handler is None:
            return
        logging.getLogger("region_sync").removeHandler(self._log_handler)
        self._log_handler.close()
        self._log_handler = None

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def disposed(self) -> bool:
        return self._state is LinkState.DISPOSED

    def dispose(self) -> bool:
        """Cancel every subscription of every link.

        Idempotent: later calls do nothing. After this returns no remote or
        local notification reaches controller logic.

        Returns:
            True if this call disposed the controller
        """
        with self._lock:
            if self._state is LinkState.DISPOSED:
                return False
            self._state = LinkState.DISPOSED

        for link in self._links.values():
            link.dispose()

        if self.config.dispose_on_exit:
            atexit.unregister(self.dispose)

        logger.info(f"SyncController disposed ({len(self._links)} link(s) released)")

        if self._failure_sub is not None:
            self._failure_sub.cancel()
        self._release_logging()
        return True

    def status(self) -> Dict[str, Any]:
        """Get controller and per-region sync status.

        Returns:
            Dict with "state", "failures" (counts per kind) and "regions"
            (per-region status from SyncLink.status())
        """
        return {
            "state": self._state.value,
            "failures": {kind.value: count for kind, count in self.failures.counts.items()},
            "regions": {name: link.status() for name, link in self._links.items()},
        }

    def __enter__(self) -> "SyncController":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.dispose()
        return False

    def __repr__(self) -> str:
        return f"<SyncController {self._state.value} regions={list(self._links)}>"
