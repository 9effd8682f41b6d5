"""Manifest validation: ordered field checks plus a JSON Schema pass."""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import jsonschema
from jsonschema.exceptions import best_match

from ..errors import ManifestError
from ..models.manifest import SkillManifest
from ..semver import is_valid_version

SCHEMA_PATH = Path(__file__).parent / "skill_manifest.schema.json"

SLUG_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
MAX_SLUG_LENGTH = 100

_REQUIRED_TEXT_FIELDS = ("description", "author", "license")

_schema_cache: dict | None = None


def _load_schema() -> dict:
    """Load the skill.json JSON schema."""
    global _schema_cache
    if _schema_cache is None:
        with open(SCHEMA_PATH) as f:
            _schema_cache = json.load(f)
    return _schema_cache


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def normalize_for_match(path: str) -> str:
    """Normalize a manifest path for comparison: forward slashes, no leading './'."""
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def is_valid_slug(slug: str) -> bool:
    """Lowercase alphanumerics and hyphens, 1-100 chars, no leading/trailing hyphen."""
    return (
        isinstance(slug, str)
        and 0 < len(slug) <= MAX_SLUG_LENGTH
        and SLUG_PATTERN.match(slug) is not None
    )


def find_manifest_error(manifest: dict) -> ManifestError | None:
    """
    Run the manifest checks in order and return the first failure.

    Args:
        manifest: The parsed skill.json dictionary.

    Returns:
        None when the manifest is valid, else a ManifestError whose ``kind``
        names the failed check.
    """
    if not isinstance(manifest, dict):
        return ManifestError("schema", "Manifest must be a JSON object")

    if _blank(manifest.get("name")):
        return ManifestError("missing_name", 'Manifest missing "name"')

    slug = manifest.get("slug")
    if _blank(slug):
        return ManifestError("missing_slug", 'Manifest missing "slug"')
    if not is_valid_slug(slug):
        return ManifestError(
            "invalid_slug",
            'Manifest "slug" must be 1-100 lowercase letters, digits or hyphens '
            "and must not start or end with a hyphen",
        )

    version = manifest.get("version")
    if _blank(version):
        return ManifestError("missing_version", 'Manifest missing "version"')
    if not is_valid_version(version):
        return ManifestError("invalid_version", "Manifest version must be valid semver")

    for field in _REQUIRED_TEXT_FIELDS:
        if _blank(manifest.get(field)):
            return ManifestError(f"missing_{field}", f'Manifest missing "{field}"')

    entry = manifest.get("entry")
    if _blank(entry):
        return ManifestError("missing_entry", 'Manifest missing "entry"')

    files = manifest.get("files")
    if not isinstance(files, list) or not files or any(_blank(f) for f in files):
        return ManifestError("invalid_files", 'Manifest "files" must be a non-empty array of paths')

    normalized_files = [normalize_for_match(f) for f in files]
    if normalize_for_match(entry) not in normalized_files:
        return ManifestError("entry_not_in_files", 'Manifest "entry" must be included in "files"')

    if len(set(normalized_files)) != len(normalized_files):
        return ManifestError("duplicate_files", 'Manifest "files" contains duplicate paths')

    error = best_match(jsonschema.Draft7Validator(_load_schema()).iter_errors(manifest))
    if error is not None:
        return ManifestError("schema", f"Schema validation error: {error.message}")

    return None


def validate_manifest(manifest: dict) -> tuple[bool, list[str]]:
    """
    Validate a manifest against the packaging rules.

    Args:
        manifest: The manifest dictionary to validate.

    Returns:
        A tuple of (is_valid, list_of_errors).
        Checks short-circuit, so the list holds at most one error.
    """
    error = find_manifest_error(manifest)
    if error is None:
        return (True, [])
    return (False, [str(error)])


def load_manifest(manifest_path: Path) -> SkillManifest:
    """Read and validate a skill.json file.

    Raises:
        ManifestError: If the file is not JSON or fails validation.
    """
    try:
        with open(manifest_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ManifestError("schema", f"skill.json is not valid JSON: {e}") from e

    error = find_manifest_error(data)
    if error is not None:
        raise error
    return SkillManifest.model_validate(data)


@dataclass(frozen=True)
class ManifestOk:
    """A hosted manifest that parsed and is self-consistent."""

    manifest: dict


@dataclass(frozen=True)
class ManifestParseError:
    """A hosted manifest that could not be accepted."""

    message: str


def parse_manifest_json(text: str) -> ManifestOk | ManifestParseError:
    """Parse a manifest stored alongside a hosted version.

    Only ``entry`` and ``files`` are inspected: the entry must be a non-empty
    string listed in a non-empty ``files`` array. Never raises.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        return ManifestParseError(f"Manifest is not valid JSON: {e}")

    if not isinstance(data, dict):
        return ManifestParseError("Manifest must be a JSON object")

    entry = data.get("entry")
    if _blank(entry):
        return ManifestParseError('Manifest is missing a non-empty "entry"')

    files = data.get("files")
    if not isinstance(files, list) or not files:
        return ManifestParseError('Manifest "files" must be a non-empty array')

    normalized = {normalize_for_match(f) for f in files if isinstance(f, str)}
    if normalize_for_match(entry) not in normalized:
        return ManifestParseError('Manifest "entry" is not listed in "files"')

    return ManifestOk(data)
