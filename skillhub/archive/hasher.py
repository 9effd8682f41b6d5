"""Content digest of finished archives."""

import hashlib
import re

HASH_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def compute_hash(data: bytes) -> str:
    """Compute the lowercase hex SHA-256 of the exact archive bytes."""
    return hashlib.sha256(data).hexdigest()


def is_valid_hash(value: str) -> bool:
    """Return True for a 64-digit hex string (either case)."""
    return isinstance(value, str) and HASH_PATTERN.match(value) is not None


def hashes_match(declared: str, actual: str) -> bool:
    """Compare two hex digests case-insensitively."""
    return declared.lower() == actual.lower()
