"""Verification engine for hosted skill versions.

Four independent checks, all run every time:
- hasStoredArtifact: the blob behind storage_key exists
- sizeMatches: stored size equals the declared size_bytes
- hashMatches: the store's integrity hash equals content_hash (case-insensitive)
- manifestValid: an attached manifest parses and lists its entry in files

The version becomes verified only when no check failed.
"""

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from ..archive.hasher import hashes_match
from ..audit import AuditLogger
from ..errors import BlobStoreUnavailable, NotFoundError
from ..models.registry import RegistryData, SkillVersion, VerificationRecord
from ..validators.manifest import ManifestParseError, parse_manifest_json
from .blobstore import BlobMetadata, BlobStore
from .store import RegistryStore


@dataclass
class VerificationOutcome:
    """Result handed back to publish/re-verify callers."""

    version_id: str
    verification_id: str
    status: str  # verified | rejected
    checks: dict[str, bool] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    default_assigned: bool = False


@dataclass
class CheckReport:
    """Per-check booleans and the accumulated error list."""

    checks: dict[str, bool] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors


def run_checks(version: SkillVersion, metadata: BlobMetadata | None) -> CheckReport:
    """Evaluate every check against the blob metadata; never short-circuits."""
    report = CheckReport()

    has_artifact = metadata is not None
    report.checks["hasStoredArtifact"] = has_artifact
    if not has_artifact:
        report.errors.append(f"Stored artifact not found for storage key {version.storage_key}")

    size_matches = has_artifact and metadata.size == version.size_bytes
    report.checks["sizeMatches"] = size_matches
    if not size_matches:
        if has_artifact:
            report.errors.append(
                f"Size mismatch: declared {version.size_bytes} bytes, stored {metadata.size} bytes"
            )
        else:
            report.errors.append("Size could not be checked: stored artifact is missing")

    hash_matches = has_artifact and hashes_match(version.content_hash, metadata.integrity_hash)
    report.checks["hashMatches"] = hash_matches
    if not hash_matches:
        if has_artifact:
            report.errors.append(
                f"Hash mismatch: declared {version.content_hash}, stored {metadata.integrity_hash}"
            )
        else:
            report.errors.append("Hash could not be checked: stored artifact is missing")

    if version.manifest is None:
        report.checks["manifestValid"] = True
    else:
        parsed = parse_manifest_json(version.manifest)
        report.checks["manifestValid"] = not isinstance(parsed, ManifestParseError)
        if isinstance(parsed, ManifestParseError):
            report.errors.append(f"Invalid manifest: {parsed.message}")

    return report


class VerificationEngine:
    """Runs verification for one version and applies the outcome."""

    def __init__(
        self,
        store: RegistryStore,
        blob_store: BlobStore,
        audit: AuditLogger | None = None,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.blob_store = blob_store
        self.audit = audit
        self.retry_attempts = retry_attempts
        self.retry_backoff_seconds = retry_backoff_seconds
        self.sleep = sleep

    def _lookup_metadata(self, storage_key: str) -> BlobMetadata | None:
        """Fetch blob metadata, retrying while the store is unavailable."""
        attempt = 0
        while True:
            try:
                return self.blob_store.get_metadata(storage_key)
            except BlobStoreUnavailable:
                attempt += 1
                if attempt >= self.retry_attempts:
                    raise
                self.sleep(self.retry_backoff_seconds * (2 ** (attempt - 1)))

    def _start(self, version_id: str) -> tuple[SkillVersion, VerificationRecord]:
        with self.store.transaction() as data:
            version = data.versions.get(version_id)
            if version is None:
                raise NotFoundError(f"Version not found: {version_id}")
            record = VerificationRecord(
                id=uuid.uuid4().hex,
                version_id=version_id,
                status="running",
                started_at=datetime.now(),
            )
            data.verifications[record.id] = record
            return version.model_copy(), record

    def _abort(self, record: VerificationRecord, error: BlobStoreUnavailable) -> None:
        # The version stays pending so the maintenance scan retries it
        with self.store.transaction() as data:
            stored = data.verifications.get(record.id)
            if stored is not None:
                stored.status = "failed"
                stored.errors = [f"Blob store unavailable: {error}"]
                stored.completed_at = datetime.now()

    def _assign_default_if_unset(self, data: RegistryData, version: SkillVersion) -> bool:
        """Make a verified version the skill default when the skill has none."""
        skill = data.skills.get(version.skill_id)
        if skill is None or skill.default_version_id is not None:
            return False
        skill.default_version_id = version.id
        skill.updated_at = datetime.now()
        return True

    def _clear_default_if_rejected(self, data: RegistryData, version: SkillVersion) -> None:
        # The default may only reference a verified version
        skill = data.skills.get(version.skill_id)
        if skill is not None and skill.default_version_id == version.id:
            skill.default_version_id = None
            skill.updated_at = datetime.now()

    def verify(self, version_id: str) -> VerificationOutcome:
        """Verify a version, record the run and update the version status.

        Raises:
            NotFoundError: The version does not exist.
            BlobStoreUnavailable: Metadata lookup kept failing; the version
                stays pending.
        """
        version, record = self._start(version_id)

        try:
            metadata = self._lookup_metadata(version.storage_key)
        except BlobStoreUnavailable as e:
            self._abort(record, e)
            raise

        report = run_checks(version, metadata)
        status = "verified" if report.passed else "rejected"
        default_assigned = False

        with self.store.transaction() as data:
            # Either may be gone if the skill was deleted meanwhile
            stored_record = data.verifications.get(record.id)
            if stored_record is not None:
                stored_record.status = "passed" if report.passed else "failed"
                stored_record.checks = dict(report.checks)
                stored_record.errors = list(report.errors) or None
                stored_record.completed_at = datetime.now()

            stored_version = data.versions.get(version_id)
            if stored_version is not None:
                stored_version.status = status
                stored_version.verification_id = record.id
                if status == "verified":
                    default_assigned = self._assign_default_if_unset(data, stored_version)
                else:
                    self._clear_default_if_rejected(data, stored_version)

        if self.audit:
            self.audit.log(
                "VERIFY",
                skill=version.skill_id,
                version=version.version,
                status=status,
                errors=len(report.errors),
            )
            if default_assigned:
                self.audit.log("AUTO_DEFAULT", skill=version.skill_id, version=version.version)

        return VerificationOutcome(
            version_id=version_id,
            verification_id=record.id,
            status=status,
            checks=report.checks,
            errors=report.errors,
            default_assigned=default_assigned,
        )
