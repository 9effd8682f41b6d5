"""Local publish ledger: the client's record of packaged versions.

Advisory only. It never talks to the registry and says nothing about what
is actually published remotely.
"""

import json
import os
from datetime import datetime
from pathlib import Path

from .errors import DuplicateVersionError
from .models.ledger import LedgerData, PublishedSkillRecord, PublishedSkillVersion
from .semver import version_key


class PublishLedger:
    """Reads and appends to .skillhub/versions.json."""

    def __init__(self, ledger_path: Path) -> None:
        self.ledger_path = ledger_path

    def load(self) -> LedgerData:
        """Load ledger data from file. Returns an empty ledger if the file is missing."""
        if not self.ledger_path.exists():
            return LedgerData()
        with open(self.ledger_path) as f:
            data = json.load(f)
        return LedgerData.model_validate(data)

    def save(self, data: LedgerData) -> None:
        """Write ledger data with indent=2, replacing the file atomically."""
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.ledger_path.with_suffix(self.ledger_path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data.model_dump(mode="json"), f, indent=2)
            f.write("\n")
        os.replace(tmp_path, self.ledger_path)

    def get_record(self, slug: str) -> PublishedSkillRecord | None:
        data = self.load()
        for record in data.skills:
            if record.slug == slug:
                return record
        return None

    def has_version(self, slug: str, version: str) -> bool:
        record = self.get_record(slug)
        return record is not None and any(v.version == version for v in record.versions)

    def record_publish(
        self,
        slug: str,
        version: str,
        content_hash: str,
        size_bytes: int,
        artifact_path: str,
        name: str | None = None,
        changelog: str | None = None,
    ) -> PublishedSkillVersion:
        """Append a packaged version for a skill.

        Raises:
            DuplicateVersionError: If the version is already recorded for the skill.
        """
        data = self.load()

        record = next((r for r in data.skills if r.slug == slug), None)
        if record is None:
            record = PublishedSkillRecord(slug=slug, name=name or slug)
            data.skills.append(record)

        if any(v.version == version for v in record.versions):
            raise DuplicateVersionError(f"Version {version} already published locally")

        published = PublishedSkillVersion(
            version=version,
            changelog=changelog,
            hash=content_hash,
            size_bytes=size_bytes,
            artifact_path=artifact_path,
            published_at=datetime.now(),
        )
        record.versions.append(published)
        record.versions.sort(key=lambda v: version_key(v.version))

        self.save(data)
        return published

    def list_versions(self, slug: str) -> list[PublishedSkillVersion]:
        """Return the locally known versions of a skill, lowest version first."""
        record = self.get_record(slug)
        if record is None:
            return []
        return sorted(record.versions, key=lambda v: version_key(v.version))
