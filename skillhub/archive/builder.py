"""Build a skill archive from a validated manifest."""

from dataclasses import dataclass, field
from pathlib import Path

from ..config import MAX_ARTIFACT_BYTES
from ..errors import ValidationError
from ..models.manifest import SkillManifest
from .hasher import compute_hash
from .paths import collect_files
from .tar import build_tarball


@dataclass
class Archive:
    """A finished archive and its content identity."""

    data: bytes
    sha256: str
    files: list[str] = field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def artifact_filename(manifest: SkillManifest) -> str:
    """Return the conventional artifact name, e.g. ``weather-1.0.0.tar``."""
    return f"{manifest.slug}-{manifest.version}.tar"


def build_archive(
    manifest: SkillManifest,
    base_dir: Path,
    mtime: int | None = None,
    max_bytes: int = MAX_ARTIFACT_BYTES,
) -> Archive:
    """Collect, pack and hash a skill directory.

    Args:
        manifest: Validated manifest (see validators.load_manifest).
        base_dir: Skill directory holding skill.json and the declared files.
        mtime: Fixed header modification time for reproducible builds.
        max_bytes: Upper bound on the archive size.

    Raises:
        PackagingError: Any unsafe or missing path; nothing is produced.
        ValidationError: The archive exceeds max_bytes.
    """
    files = collect_files(manifest, base_dir)
    data = build_tarball(files, base_dir, mtime=mtime)
    if len(data) > max_bytes:
        raise ValidationError(
            f"Archive is {len(data)} bytes; the limit is {max_bytes} bytes"
        )
    return Archive(data=data, sha256=compute_hash(data), files=files)
