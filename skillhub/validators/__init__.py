"""Manifest validation for packaging and verification."""

from .manifest import (
    ManifestOk,
    ManifestParseError,
    find_manifest_error,
    load_manifest,
    normalize_for_match,
    parse_manifest_json,
    validate_manifest,
)

__all__ = [
    "ManifestOk",
    "ManifestParseError",
    "find_manifest_error",
    "load_manifest",
    "normalize_for_match",
    "parse_manifest_json",
    "validate_manifest",
]
