"""Configuration dataclasses for Region Sync."""

import string
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from region_sync.recovery.resubscribe import ResubscribePolicy


DEFAULT_PATH_TEMPLATE = "matches/{match_id}/areas/{region}"
DEFAULT_FIELD_NAME = "elements"


class StoreKind(Enum):
    """Document store implementation to use."""
    MEMORY = "memory"   # In-process, for tests and single-process play
    FILE = "file"       # JSON files on a shared directory


class LinkState(Enum):
    """Lifecycle of a synchronization link or controller."""
    CONSTRUCTED = "constructed"
    ACTIVE = "active"
    DISPOSED = "disposed"   # Terminal


@dataclass
class SyncConfig:
    """Configuration for a SyncController.

    Attributes:
        match_id: Identifier substituted into the slot path template
        path_template: Slot path template with {match_id} and {region} fields
        field_name: Record field holding the sequence of element records
        regions: Default region names (e.g. "area_one", "area_two")
        resubscribe: Policy for re-listening after a stream failure
        dispose_on_exit: Register an atexit hook that disposes the controller
        fingerprint_algorithm: Hash used for record fingerprints in status()
        log_file: Path to an extra log file (None for no file handler)
        json_logs: Write the log file as JSON lines
        log_level: Level for the log file handler
    """
    match_id: str = "match_1"
    path_template: str = DEFAULT_PATH_TEMPLATE
    field_name: str = DEFAULT_FIELD_NAME
    regions: List[str] = field(default_factory=lambda: ["area_one", "area_two"])
    resubscribe: ResubscribePolicy = field(default_factory=ResubscribePolicy)
    dispose_on_exit: bool = True
    fingerprint_algorithm: str = "xxhash"
    log_file: Optional[Path] = None
    json_logs: bool = False
    log_level: str = "INFO"

    def __post_init__(self):
        """Coerce paths and validate the slot path template."""
        if isinstance(self.log_file, str):
            self.log_file = Path(self.log_file)

        if not self.field_name:
            raise ValueError("field_name must not be empty")

        fields = {
            name for _, name, _, _ in string.Formatter().parse(self.path_template)
            if name is not None
        }
        unknown = fields - {"match_id", "region"}
        if unknown:
            raise ValueError(
                f"Unknown placeholder(s) in path_template: {', '.join(sorted(unknown))}"
            )
        if "region" not in fields:
            raise ValueError("path_template must contain a {region} placeholder")

    def slot_path(self, region: str) -> str:
        """Render the remote slot path for a region.

        Args:
            region: Region name (e.g. "area_one")

        Returns:
            Slot path such as "matches/match_1/areas/area_one"
        """
        return self.path_template.format(match_id=self.match_id, region=region)
