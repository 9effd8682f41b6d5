"""Skill archive packaging: path safety, ustar writer and content hashing."""

from .builder import Archive, artifact_filename, build_archive
from .hasher import compute_hash, hashes_match, is_valid_hash
from .paths import collect_files, normalize_relative_path
from .tar import build_tarball

__all__ = [
    "Archive",
    "artifact_filename",
    "build_archive",
    "build_tarball",
    "collect_files",
    "compute_hash",
    "hashes_match",
    "is_valid_hash",
    "normalize_relative_path",
]
