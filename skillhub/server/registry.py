"""Version registry: skills, versions, default pointers and verification gating."""

import threading
import uuid
import warnings
from collections import deque
from dataclasses import dataclass
from datetime import datetime

from ..archive.hasher import is_valid_hash
from ..audit import AuditLogger
from ..config import Settings
from ..errors import (
    BlobStoreUnavailable,
    DuplicateVersionError,
    NotFoundError,
    NotVerifiedError,
    RateLimitedError,
    ValidationError,
)
from ..models.registry import RegistryData, Skill, SkillVersion, VerificationRecord
from ..semver import is_valid_version, version_key
from ..validators.manifest import is_valid_slug
from .blobstore import BlobStore, LocalBlobStore, UploadTicket
from .identity import Actor, require_actor, require_owner
from .ratelimit import RateLimiter, rate_limit_key
from .store import RegistryStore
from .verification import VerificationEngine, VerificationOutcome


@dataclass
class PublishResult:
    """Identity of the new version and its post-verification status."""

    version_id: str
    status: str
    verification: VerificationOutcome


@dataclass
class DownloadInfo:
    """A concrete, verified version resolved for download."""

    url: str
    version: str
    content_hash: str
    size_bytes: int


@dataclass
class BatchSummary:
    """Counts reported by run_pending_verifications()."""

    scanned: int = 0
    processed: int = 0
    verified: int = 0
    rejected: int = 0


def _get_skill(data: RegistryData, skill_id: str) -> Skill:
    skill = data.skills.get(skill_id)
    if skill is None:
        raise NotFoundError(f"Skill not found: {skill_id}")
    return skill


def _get_version(data: RegistryData, skill_id: str, version_id: str) -> SkillVersion:
    version = data.versions.get(version_id)
    if version is None or version.skill_id != skill_id:
        raise NotFoundError(f"Version not found: {version_id}")
    return version


class SkillRegistry:
    """The authoritative registry of hosted skills and their versions."""

    def __init__(
        self,
        settings: Settings,
        store: RegistryStore,
        blob_store: BlobStore,
        rate_limiter: RateLimiter,
        audit: AuditLogger | None = None,
        engine: VerificationEngine | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.blob_store = blob_store
        self.rate_limiter = rate_limiter
        self.audit = audit
        self.engine = engine or VerificationEngine(
            store,
            blob_store,
            audit=audit,
            retry_attempts=settings.blob_retry_attempts,
            retry_backoff_seconds=settings.blob_retry_backoff_seconds,
        )
        self._locks_guard = threading.Lock()
        self._version_locks: dict[tuple[str, str], threading.Lock] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "SkillRegistry":
        """Wire a registry backed by the JSON store and local blob directory."""
        store = RegistryStore(settings.registry_path)
        blob_store = LocalBlobStore(settings.blob_path, settings.blob_base_url)
        return cls(
            settings,
            store,
            blob_store,
            RateLimiter(store),
            audit=AuditLogger(settings.audit_log_path),
        )

    # -- helpers ---------------------------------------------------------

    def _version_lock(self, skill_id: str, version: str) -> threading.Lock:
        with self._locks_guard:
            return self._version_locks.setdefault((skill_id, version), threading.Lock())

    def _enforce(self, actor: Actor, operation: str) -> None:
        rule = self.settings.rate_limit_for(operation)
        key = rate_limit_key(actor.id, operation)
        try:
            self.rate_limiter.enforce(key, rule.limit, rule.window_ms)
        except RateLimitedError as e:
            if self.audit:
                self.audit.log("RATE_LIMITED", actor=actor.id, operation=operation,
                               retry_after_ms=e.retry_after_ms)
            raise

    # -- skills ----------------------------------------------------------

    def create_skill(
        self,
        actor: Actor | None,
        name: str,
        slug: str,
        description: str,
        visibility: str = "public",
        storage_mode: str = "hosted",
    ) -> Skill:
        """Create a hosted skill owned by the actor.

        Raises:
            ValidationError: Bad name/slug/description/visibility or slug already used.
        """
        actor = require_actor(actor)
        self._enforce(actor, "createSkill")

        name = (name or "").strip()
        description = (description or "").strip()
        if not name or not description:
            raise ValidationError("Skill name and description are required")
        if not is_valid_slug(slug):
            raise ValidationError(
                "Slug must be 1-100 lowercase letters, digits or hyphens "
                "and must not start or end with a hyphen"
            )
        if visibility != "public":
            raise ValidationError('Visibility must be "public"')
        if storage_mode not in ("hosted", "github"):
            raise ValidationError(f"Unknown storage mode: {storage_mode}")

        with self.store.transaction() as data:
            if any(s.owner_id == actor.id and s.slug == slug for s in data.skills.values()):
                raise ValidationError(f"A skill with slug {slug!r} already exists")
            now = datetime.now()
            skill = Skill(
                id=uuid.uuid4().hex,
                owner_id=actor.id,
                name=name,
                slug=slug,
                description=description,
                visibility=visibility,
                storage_mode=storage_mode,
                created_at=now,
                updated_at=now,
            )
            data.skills[skill.id] = skill

        if self.audit:
            self.audit.log("SKILL_CREATE", skill=skill.id, slug=slug, owner=actor.id)
        return skill

    def get_skill(self, skill_id: str) -> Skill:
        return _get_skill(self.store.load(), skill_id)

    def get_skill_by_slug(self, actor: Actor | None, slug: str) -> Skill | None:
        """Find one of the actor's own skills by slug."""
        actor = require_actor(actor)
        data = self.store.load()
        for skill in data.skills.values():
            if skill.owner_id == actor.id and skill.slug == slug:
                return skill
        return None

    def delete_skill(self, actor: Actor | None, skill_id: str) -> None:
        """Delete a skill with its versions, verification records and blobs."""
        actor = require_actor(actor)
        self._enforce(actor, "deleteSkill")

        with self.store.transaction() as data:
            skill = _get_skill(data, skill_id)
            require_owner(actor, skill)
            versions = [v for v in data.versions.values() if v.skill_id == skill_id]
            version_ids = {v.id for v in versions}
            for record_id in [r.id for r in data.verifications.values() if r.version_id in version_ids]:
                del data.verifications[record_id]
            for version_id in version_ids:
                del data.versions[version_id]
            del data.skills[skill_id]

        for version in versions:
            self.blob_store.delete(version.storage_key)

        if self.audit:
            self.audit.log("DELETE", skill=skill_id, versions=len(versions), actor=actor.id)

    # -- versions --------------------------------------------------------

    def generate_upload_url(self, actor: Actor | None, skill_id: str, version: str) -> UploadTicket:
        """Issue an upload URL for a new artifact of one of the actor's skills."""
        actor = require_actor(actor)
        self._enforce(actor, "generateUploadUrl")
        if not is_valid_version(version):
            raise ValidationError("Version must be valid semver")

        skill = _get_skill(self.store.load(), skill_id)
        require_owner(actor, skill)
        if skill.storage_mode != "hosted":
            raise ValidationError("Skill does not support hosted versions")

        ticket = self.blob_store.generate_upload_url()
        if self.audit:
            self.audit.log("UPLOAD_URL", skill=skill_id, version=version, storage_key=ticket.storage_key)
        return ticket

    def publish_version(
        self,
        actor: Actor | None,
        skill_id: str,
        version: str,
        storage_key: str,
        content_hash: str,
        size_bytes: int,
        changelog: str | None = None,
        manifest: str | None = None,
    ) -> PublishResult:
        """
        Register a new version and verify it before returning.

        Args:
            actor: Caller; must own the skill.
            skill_id: Target skill.
            version: Strict semver string, unique per skill.
            storage_key: Blob locator returned by generate_upload_url().
            content_hash: Declared SHA-256 of the artifact (64 hex digits).
            size_bytes: Declared artifact size, 1 byte to the configured maximum.
            changelog: Optional release notes.
            manifest: Optional skill.json text.

        Returns:
            PublishResult carrying the post-verification status.

        Raises:
            ValidationError: Malformed arguments or a non-hosted skill.
            NotFoundError: Unknown skill.
            NotAuthorizedError: Actor does not own the skill.
            DuplicateVersionError: The version already exists for the skill.
        """
        actor = require_actor(actor)
        self._enforce(actor, "publishVersion")

        if not is_valid_version(version):
            raise ValidationError("Version must be valid semver")
        max_bytes = self.settings.max_artifact_bytes
        if isinstance(size_bytes, bool) or not isinstance(size_bytes, int) or not 0 < size_bytes <= max_bytes:
            raise ValidationError(f"sizeBytes must be between 1 and {max_bytes}")
        if not is_valid_hash(content_hash):
            raise ValidationError("contentHash must be a 64 character hex SHA-256 digest")
        if not isinstance(storage_key, str) or not storage_key.strip():
            raise ValidationError("storageKey is required")

        with self._version_lock(skill_id, version):
            with self.store.transaction() as data:
                skill = _get_skill(data, skill_id)
                require_owner(actor, skill)
                if skill.storage_mode != "hosted":
                    raise ValidationError("Skill does not support hosted versions")
                if any(v.skill_id == skill_id and v.version == version for v in data.versions.values()):
                    raise DuplicateVersionError(f"Version {version} already exists for this skill")

                record = SkillVersion(
                    id=uuid.uuid4().hex,
                    skill_id=skill_id,
                    version=version,
                    changelog=changelog,
                    storage_key=storage_key.strip(),
                    content_hash=content_hash,
                    size_bytes=size_bytes,
                    manifest=manifest,
                    published_by=actor.id,
                    status="pending",
                    published_at=datetime.now(),
                )
                data.versions[record.id] = record
                skill.updated_at = record.published_at

            outcome = self.engine.verify(record.id)

        if self.audit:
            self.audit.log("PUBLISH", skill=skill_id, version=version, status=outcome.status, actor=actor.id)
        return PublishResult(version_id=record.id, status=outcome.status, verification=outcome)

    def set_default_version(self, actor: Actor | None, skill_id: str, version_id: str) -> Skill:
        """Point the skill's default at a verified version.

        Raises:
            NotVerifiedError: The version is pending or rejected; nothing changes.
        """
        actor = require_actor(actor)
        self._enforce(actor, "setDefaultVersion")

        with self.store.transaction() as data:
            skill = _get_skill(data, skill_id)
            require_owner(actor, skill)
            version = _get_version(data, skill_id, version_id)
            if version.status != "verified":
                raise NotVerifiedError(
                    f"Version {version.version} is {version.status}; only verified versions can be default"
                )
            skill.default_version_id = version_id
            skill.updated_at = datetime.now()
            result = skill.model_copy()

        if self.audit:
            self.audit.log("SET_DEFAULT", skill=skill_id, version=version.version, actor=actor.id)
        return result

    def reverify_skill_version(self, actor: Actor | None, skill_id: str, version_id: str) -> VerificationOutcome:
        """Reset a version to pending and verify it again with a fresh record."""
        actor = require_actor(actor)
        self._enforce(actor, "reverifyVersion")

        data = self.store.load()
        skill = _get_skill(data, skill_id)
        require_owner(actor, skill)
        version_str = _get_version(data, skill_id, version_id).version

        with self._version_lock(skill_id, version_str):
            with self.store.transaction() as data:
                version = _get_version(data, skill_id, version_id)
                version.status = "pending"
                # A pending version may not stay default; a passing run restores it
                skill = _get_skill(data, skill_id)
                if skill.default_version_id == version_id:
                    skill.default_version_id = None
                    skill.updated_at = datetime.now()
            outcome = self.engine.verify(version_id)

        if self.audit:
            self.audit.log("REVERIFY", skill=skill_id, version=version_str, status=outcome.status, actor=actor.id)
        return outcome

    def get_version_download_url(self, skill_id: str, version: str | None = None) -> DownloadInfo:
        """Resolve a verified version to serve.

        Order: the explicit version, else the default pointer, else the
        highest verified version. Pending and rejected versions never resolve.

        Raises:
            NotFoundError: No matching verified version.
        """
        data = self.store.load()
        skill = _get_skill(data, skill_id)
        verified = [v for v in data.versions.values() if v.skill_id == skill_id and v.status == "verified"]

        chosen: SkillVersion | None = None
        if version is not None:
            chosen = next((v for v in verified if v.version == version), None)
        else:
            default = data.versions.get(skill.default_version_id or "")
            if default is not None and default.status == "verified":
                chosen = default
            elif verified:
                chosen = max(verified, key=lambda v: version_key(v.version))

        if chosen is None:
            raise NotFoundError("Version not found or not verified")

        return DownloadInfo(
            url=self.blob_store.get_url(chosen.storage_key),
            version=chosen.version,
            content_hash=chosen.content_hash,
            size_bytes=chosen.size_bytes,
        )

    def list_versions(self, skill_id: str, actor: Actor | None = None) -> list[SkillVersion]:
        """Versions newest first; non-owners only see verified ones."""
        data = self.store.load()
        skill = _get_skill(data, skill_id)
        is_owner = actor is not None and actor.id == skill.owner_id
        versions = [
            v for v in data.versions.values()
            if v.skill_id == skill_id and (is_owner or v.status == "verified")
        ]
        return sorted(versions, key=lambda v: version_key(v.version), reverse=True)

    def list_verifications(self, version_id: str) -> list[VerificationRecord]:
        """Verification history of a version, oldest first."""
        data = self.store.load()
        records = [r for r in data.verifications.values() if r.version_id == version_id]
        return sorted(records, key=lambda r: r.started_at)

    # -- maintenance -----------------------------------------------------

    def run_pending_verifications(self, limit: int = 25) -> BatchSummary:
        """Verify up to ``limit`` pending versions, one at a time, oldest first."""
        limit = min(limit, self.settings.verification_batch_limit)
        if limit <= 0:
            return BatchSummary()
        data = self.store.load()
        pending = sorted(
            (v for v in data.versions.values() if v.status == "pending"),
            key=lambda v: v.published_at,
        )[:limit]

        summary = BatchSummary(scanned=len(pending))
        queue = deque(pending)
        while queue:
            version = queue.popleft()
            with self._version_lock(version.skill_id, version.version):
                current = self.store.load().versions.get(version.id)
                if current is None or current.status != "pending":
                    continue
                try:
                    outcome = self.engine.verify(version.id)
                except NotFoundError:
                    continue
                except BlobStoreUnavailable as e:
                    warnings.warn(f"Skipping {version.id}: blob store unavailable ({e})", stacklevel=2)
                    continue

            summary.processed += 1
            if outcome.status == "verified":
                summary.verified += 1
            else:
                summary.rejected += 1

        return summary
