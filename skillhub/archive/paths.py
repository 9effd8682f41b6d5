"""Path safety checks for files collected into a skill archive."""

from pathlib import Path

from ..errors import NotAFileError, PathEscapeError, PathTraversalError
from ..models.manifest import MANIFEST_FILE, SkillManifest


def normalize_relative_path(file_path: str) -> str:
    """Normalize a declared path and reject traversal attempts.

    Args:
        file_path: Path as written in the manifest.

    Returns:
        The path with forward slashes and no leading './'.

    Raises:
        PathTraversalError: If the path is absolute, climbs out with '..' or contains NUL.
    """
    normalized = file_path.replace("\\", "/")
    if normalized.startswith("/") or normalized.startswith(".."):
        raise PathTraversalError(f"Invalid file path: {file_path}")
    if "/../" in normalized or normalized.endswith("/.."):
        raise PathTraversalError(f"Invalid file path: {file_path}")
    if "\x00" in normalized:
        raise PathTraversalError(f"Invalid file path: {file_path!r}")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def resolve_inside(base_dir: Path, relative: str) -> Path:
    """Resolve a normalized path and assert it stays under base_dir.

    Raises:
        PathEscapeError: If the resolved path lives outside base_dir.
    """
    base = base_dir.resolve()
    resolved = (base / relative).resolve()
    if resolved == base or base not in resolved.parents:
        raise PathEscapeError(f"Invalid file path outside skill directory: {relative}")
    return resolved


def collect_files(manifest: SkillManifest, base_dir: Path) -> list[str]:
    """Collect the files to package, manifest first, in declaration order.

    Every path is checked before anything is read; the first violation
    aborts the whole collection.

    Raises:
        PathTraversalError: Declared path is unsafe.
        PathEscapeError: Declared path resolves outside base_dir.
        NotAFileError: Declared path is missing, a directory or a symlink.
    """
    unique: dict[str, None] = {normalize_relative_path(MANIFEST_FILE): None}
    for file_path in manifest.files:
        unique.setdefault(normalize_relative_path(file_path), None)

    files: list[str] = []
    for normalized in unique:
        # Symlinks are checked on the unresolved path
        candidate = base_dir / normalized
        if candidate.is_symlink():
            raise NotAFileError(f"Symlinks are not allowed: {normalized}")
        resolved = resolve_inside(base_dir, normalized)
        if not resolved.exists():
            raise NotAFileError(f"File not found: {normalized}")
        if not resolved.is_file():
            raise NotAFileError(f"Expected file but found directory: {normalized}")
        files.append(normalized)

    return files
