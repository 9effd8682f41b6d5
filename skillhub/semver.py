"""Strict semantic version parsing and ordering."""

import re
from functools import cmp_to_key

SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$"
)


def is_valid_version(version: str) -> bool:
    """Return True if version is MAJOR.MINOR.PATCH[-pre][+build]."""
    return isinstance(version, str) and SEMVER_PATTERN.match(version) is not None


def parse_version(version: str) -> tuple[int, int, int, list[str]]:
    """Split a version into (major, minor, patch, prerelease identifiers).

    Raises:
        ValueError: If the version does not match the strict pattern.
    """
    match = SEMVER_PATTERN.match(version)
    if match is None:
        raise ValueError(f"Invalid semantic version: {version!r}")
    major, minor, patch, pre, _build = match.groups()
    prerelease = pre.split(".") if pre else []
    return int(major), int(minor), int(patch), prerelease


def _compare_identifiers(a: str, b: str) -> int:
    a_num = a.isdigit()
    b_num = b.isdigit()
    if a_num and b_num:
        return (int(a) > int(b)) - (int(a) < int(b))
    if a_num:
        return -1
    if b_num:
        return 1
    return (a > b) - (a < b)


def compare_versions(a: str, b: str) -> int:
    """Compare two versions by semver precedence.

    Returns a negative number, zero or a positive number like a classic cmp().
    Build metadata is ignored; a release ranks above its pre-releases.
    """
    left = parse_version(a)
    right = parse_version(b)

    for x, y in zip(left[:3], right[:3]):
        if x != y:
            return (x > y) - (x < y)

    left_pre, right_pre = left[3], right[3]
    if not left_pre and not right_pre:
        return 0
    if not left_pre:
        return 1
    if not right_pre:
        return -1

    for left_id, right_id in zip(left_pre, right_pre):
        diff = _compare_identifiers(left_id, right_id)
        if diff:
            return diff
    return (len(left_pre) > len(right_pre)) - (len(left_pre) < len(right_pre))


version_key = cmp_to_key(compare_versions)
