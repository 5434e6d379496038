"""Utility modules for Region Sync.

This package provides:
- hashing: Record and file fingerprints (xxhash)
- logging: Configured logging with JSON/text output support
"""

from region_sync.utils.hashing import fingerprint_record, fast_hash_file
from region_sync.utils.logging import configure_root_logger, make_file_handler

__all__ = [
    "fingerprint_record",
    "fast_hash_file",
    "configure_root_logger",
    "make_file_handler",
]
