"""Fast record and file fingerprints.

Uses xxhash by default. Fingerprints are for change detection and status
reporting, not security; md5 and sha256 are selectable for interop.
"""

import hashlib
import json
from pathlib import Path
from typing import Any

import xxhash

# Buffer size for file reading (64KB is good for most filesystems)
BUFFER_SIZE = 65536


def _new_hasher(algorithm: str):
    if algorithm == "xxhash":
        return xxhash.xxh64()
    elif algorithm == "md5":
        return hashlib.md5()
    elif algorithm == "sha256":
        return hashlib.sha256()
    raise ValueError(f"Unknown algorithm: {algorithm}")


def canonical_json(record: Any) -> bytes:
    """Serialize a record deterministically (sorted keys, no whitespace)."""
    return json.dumps(
        record, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def fingerprint_record(record: Any, algorithm: str = "xxhash") -> str:
    """Fingerprint a JSON-compatible record.

    Two records with the same content produce the same fingerprint
    regardless of key order.

    Args:
        record: Mapping/list of primitives
        algorithm: "xxhash", "md5" or "sha256"

    Returns:
        Hex digest
    """
    hasher = _new_hasher(algorithm)
    hasher.update(canonical_json(record))
    return hasher.hexdigest()


def fast_hash_file(file_path: Path, algorithm: str = "xxhash") -> str:
    """Compute a fast hash of a file.

    Args:
        file_path: Path to the file to hash
        algorithm: "xxhash", "md5" or "sha256"

    Returns:
        Hex digest of the file hash

    Raises:
        FileNotFoundError: If file doesn't exist
        PermissionError: If file can't be read
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    if not file_path.is_file():
        raise ValueError(f"Not a file: {file_path}")

    hasher = _new_hasher(algorithm)

    with open(file_path, "rb") as f:
        while True:
            data = f.read(BUFFER_SIZE)
            if not data:
                break
            hasher.update(data)

    return hasher.hexdigest()

