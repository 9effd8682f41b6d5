"""Tests for the hosted version registry."""

import threading

import pytest

from skillhub.errors import (
    DuplicateVersionError,
    NotAuthenticatedError,
    NotAuthorizedError,
    NotFoundError,
    NotVerifiedError,
    ValidationError,
)
from skillhub.server.registry import SkillRegistry


class TestCreateSkill:
    """Test cases for create_skill()."""

    def test_create(self, registry, owner):
        skill = registry.create_skill(owner, " Weather Skill ", "weather", "Get weather")
        assert skill.name == "Weather Skill"
        assert skill.owner_id == owner.id
        assert skill.default_version_id is None
        assert registry.get_skill(skill.id).slug == "weather"

    def test_requires_actor(self, registry):
        with pytest.raises(NotAuthenticatedError):
            registry.create_skill(None, "Weather", "weather", "desc")

    @pytest.mark.parametrize("slug", ["Weather", "-weather", "", "a" * 101])
    def test_invalid_slug(self, registry, owner, slug):
        with pytest.raises(ValidationError):
            registry.create_skill(owner, "Weather", slug, "desc")

    def test_blank_name(self, registry, owner):
        with pytest.raises(ValidationError):
            registry.create_skill(owner, "  ", "weather", "desc")

    def test_private_visibility_rejected(self, registry, owner):
        with pytest.raises(ValidationError):
            registry.create_skill(owner, "Weather", "weather", "desc", visibility="private")

    def test_duplicate_slug_per_owner(self, registry, owner, other_user, hosted_skill):
        with pytest.raises(ValidationError):
            registry.create_skill(owner, "Again", "weather", "desc")
        other = registry.create_skill(other_user, "Theirs", "weather", "desc")
        assert other.owner_id == other_user.id

    def test_get_skill_by_slug_is_owner_scoped(self, registry, owner, other_user, hosted_skill):
        assert registry.get_skill_by_slug(owner, "weather").id == hosted_skill.id
        assert registry.get_skill_by_slug(other_user, "weather") is None

    def test_get_missing_skill(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_skill("nope")


class TestPublishVersion:
    """Test cases for publish_version()."""

    def test_publish_verifies_inline(self, registry, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0", changelog="First")

        assert result.status == "verified"
        assert result.verification.errors == []
        assert all(result.verification.checks.values())
        version = registry.list_versions(hosted_skill.id)[0]
        assert version.changelog == "First"
        assert version.verification_id == result.verification.verification_id

    def test_concurrent_publishes_of_one_version(self, registry, owner, hosted_skill, upload):
        """Only one of several simultaneous publishes of a version succeeds."""
        uploads = [upload(hosted_skill.id, "1.0.0", f"attempt {i}".encode()) for i in range(4)]
        barrier = threading.Barrier(len(uploads))
        results = []
        errors = []

        def attempt(storage_key, digest, size):
            barrier.wait()
            try:
                results.append(registry.publish_version(owner, hosted_skill.id, "1.0.0", storage_key, digest, size))
            except DuplicateVersionError as e:
                errors.append(e)

        threads = [threading.Thread(target=attempt, args=args) for args in uploads]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 1
        assert len(errors) == 3
        versions = registry.list_versions(hosted_skill.id, owner)
        assert [v.id for v in versions] == [results[0].version_id]

    def test_duplicate_version(self, registry, owner, hosted_skill, publish, upload):
        publish(hosted_skill.id, "1.0.0")
        storage_key, digest, size = upload(hosted_skill.id, "1.0.0", b"other bytes")

        with pytest.raises(DuplicateVersionError):
            registry.publish_version(owner, hosted_skill.id, "1.0.0", storage_key, digest, size)
        assert len(registry.list_versions(hosted_skill.id, owner)) == 1

    def test_not_owner(self, registry, other_user, hosted_skill, upload):
        storage_key, digest, size = upload(hosted_skill.id, "1.0.0", b"data")
        with pytest.raises(NotAuthorizedError):
            registry.publish_version(other_user, hosted_skill.id, "1.0.0", storage_key, digest, size)

    def test_not_authenticated(self, registry, hosted_skill):
        with pytest.raises(NotAuthenticatedError):
            registry.publish_version(None, hosted_skill.id, "1.0.0", "key", "a" * 64, 10)

    def test_unknown_skill(self, registry, owner):
        with pytest.raises(NotFoundError):
            registry.publish_version(owner, "missing", "1.0.0", "key", "a" * 64, 10)

    @pytest.mark.parametrize(
        "version,content_hash,size_bytes,storage_key",
        [
            ("1.0", "a" * 64, 10, "key"),
            ("1.0.0", "a" * 63, 10, "key"),
            ("1.0.0", "z" * 64, 10, "key"),
            ("1.0.0", "a" * 64, 0, "key"),
            ("1.0.0", "a" * 64, 10 * 1024 * 1024 + 1, "key"),
            ("1.0.0", "a" * 64, True, "key"),
            ("1.0.0", "a" * 64, 10, "  "),
        ],
    )
    def test_invalid_arguments(self, registry, owner, hosted_skill, version, content_hash, size_bytes, storage_key):
        with pytest.raises(ValidationError):
            registry.publish_version(owner, hosted_skill.id, version, storage_key, content_hash, size_bytes)
        assert registry.list_versions(hosted_skill.id, owner) == []

    def test_max_size_accepted(self, registry, owner, hosted_skill):
        result = registry.publish_version(owner, hosted_skill.id, "1.0.0", "a" * 32, "a" * 64, 10 * 1024 * 1024)
        assert result.status == "rejected"

    def test_github_skill_has_no_hosted_versions(self, registry, owner):
        skill = registry.create_skill(owner, "Mirror", "mirror", "desc", storage_mode="github")
        with pytest.raises(ValidationError):
            registry.publish_version(owner, skill.id, "1.0.0", "a" * 32, "a" * 64, 10)
        with pytest.raises(ValidationError):
            registry.generate_upload_url(owner, skill.id, "1.0.0")


class TestDefaultVersion:
    """Default pointer rules."""

    def test_first_verified_becomes_default(self, registry, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0")
        assert result.verification.default_assigned is True
        assert registry.get_skill(hosted_skill.id).default_version_id == result.version_id

    def test_later_versions_do_not_move_default(self, registry, hosted_skill, publish):
        first = publish(hosted_skill.id, "1.0.0")
        second = publish(hosted_skill.id, "2.0.0")
        assert second.verification.default_assigned is False
        assert registry.get_skill(hosted_skill.id).default_version_id == first.version_id

    def test_rejected_version_not_default(self, registry, owner, hosted_skill, upload):
        storage_key, digest, size = upload(hosted_skill.id, "1.0.0", b"real bytes")
        result = registry.publish_version(owner, hosted_skill.id, "1.0.0", storage_key, digest, size + 1)

        assert result.status == "rejected"
        assert registry.get_skill(hosted_skill.id).default_version_id is None
        with pytest.raises(NotVerifiedError):
            registry.set_default_version(owner, hosted_skill.id, result.version_id)
        assert registry.get_skill(hosted_skill.id).default_version_id is None

    def test_set_default_explicitly(self, registry, owner, hosted_skill, publish):
        publish(hosted_skill.id, "1.0.0")
        second = publish(hosted_skill.id, "2.0.0")

        skill = registry.set_default_version(owner, hosted_skill.id, second.version_id)
        assert skill.default_version_id == second.version_id
        assert registry.get_version_download_url(hosted_skill.id).version == "2.0.0"

    def test_set_default_not_owner(self, registry, other_user, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0")
        with pytest.raises(NotAuthorizedError):
            registry.set_default_version(other_user, hosted_skill.id, result.version_id)

    def test_set_default_version_of_other_skill(self, registry, owner, hosted_skill, publish):
        other = registry.create_skill(owner, "News", "news", "desc")
        result = publish(other.id, "1.0.0")
        with pytest.raises(NotFoundError):
            registry.set_default_version(owner, hosted_skill.id, result.version_id)


class TestDownload:
    """Download resolution never serves unverified versions."""

    def test_explicit_version(self, registry, hosted_skill, publish):
        publish(hosted_skill.id, "1.0.0")
        publish(hosted_skill.id, "1.1.0")
        info = registry.get_version_download_url(hosted_skill.id, "1.1.0")
        assert info.version == "1.1.0"
        assert info.url.startswith(registry.settings.blob_base_url)

    def test_default_preferred(self, registry, hosted_skill, publish):
        publish(hosted_skill.id, "1.0.0")
        publish(hosted_skill.id, "2.0.0")
        assert registry.get_version_download_url(hosted_skill.id).version == "1.0.0"

    def test_highest_verified_by_semver(self, registry, hosted_skill, publish):
        for version in ["0.9.0", "1.2.0", "1.10.0"]:
            publish(hosted_skill.id, version)
        with registry.store.transaction() as data:
            data.skills[hosted_skill.id].default_version_id = None

        assert registry.get_version_download_url(hosted_skill.id).version == "1.10.0"

    def test_rejected_version_not_served(self, registry, owner, hosted_skill, upload):
        storage_key, digest, size = upload(hosted_skill.id, "1.0.0", b"bytes")
        registry.publish_version(owner, hosted_skill.id, "1.0.0", storage_key, "f" * 64, size)

        with pytest.raises(NotFoundError, match="not verified"):
            registry.get_version_download_url(hosted_skill.id, "1.0.0")
        with pytest.raises(NotFoundError):
            registry.get_version_download_url(hosted_skill.id)

    def test_unknown_version(self, registry, hosted_skill, publish):
        publish(hosted_skill.id, "1.0.0")
        with pytest.raises(NotFoundError):
            registry.get_version_download_url(hosted_skill.id, "9.9.9")

    def test_download_metadata(self, registry, hosted_skill, publish):
        payload = b"payload bytes"
        publish(hosted_skill.id, "1.0.0", data=payload)
        info = registry.get_version_download_url(hosted_skill.id)
        assert info.size_bytes == len(payload)
        assert len(info.content_hash) == 64


class TestListVersions:
    def test_newest_first(self, registry, owner, hosted_skill, publish):
        for version in ["1.2.0", "0.9.0", "1.10.0"]:
            publish(hosted_skill.id, version)
        versions = registry.list_versions(hosted_skill.id, owner)
        assert [v.version for v in versions] == ["1.10.0", "1.2.0", "0.9.0"]

    def test_non_owner_sees_verified_only(self, registry, owner, other_user, hosted_skill, publish, upload):
        publish(hosted_skill.id, "1.0.0")
        storage_key, digest, size = upload(hosted_skill.id, "1.1.0", b"bytes")
        registry.publish_version(owner, hosted_skill.id, "1.1.0", storage_key, digest, size + 5)

        assert [v.version for v in registry.list_versions(hosted_skill.id, owner)] == ["1.1.0", "1.0.0"]
        assert [v.version for v in registry.list_versions(hosted_skill.id, other_user)] == ["1.0.0"]
        assert [v.version for v in registry.list_versions(hosted_skill.id)] == ["1.0.0"]


class TestReverify:
    def test_reverify_creates_new_record(self, registry, owner, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0")
        outcome = registry.reverify_skill_version(owner, hosted_skill.id, result.version_id)

        assert outcome.status == "verified"
        assert outcome.verification_id != result.verification.verification_id
        records = registry.list_verifications(result.version_id)
        assert len(records) == 2
        assert all(r.status == "passed" for r in records)
        assert registry.get_skill(hosted_skill.id).default_version_id == result.version_id

    def test_reverify_after_blob_loss_rejects_and_clears_default(self, registry, owner, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0")
        version = registry.list_versions(hosted_skill.id, owner)[0]
        registry.blob_store.delete(version.storage_key)

        outcome = registry.reverify_skill_version(owner, hosted_skill.id, result.version_id)

        assert outcome.status == "rejected"
        assert outcome.checks["hasStoredArtifact"] is False
        assert registry.get_skill(hosted_skill.id).default_version_id is None
        with pytest.raises(NotFoundError):
            registry.get_version_download_url(hosted_skill.id)

    def test_reverify_not_owner(self, registry, other_user, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0")
        with pytest.raises(NotAuthorizedError):
            registry.reverify_skill_version(other_user, hosted_skill.id, result.version_id)


class TestDeleteSkill:
    def test_delete_removes_everything(self, registry, owner, hosted_skill, publish):
        result = publish(hosted_skill.id, "1.0.0")
        storage_key = registry.list_versions(hosted_skill.id, owner)[0].storage_key

        registry.delete_skill(owner, hosted_skill.id)

        data = registry.store.load()
        assert data.skills == {}
        assert data.versions == {}
        assert registry.list_verifications(result.version_id) == []
        assert registry.blob_store.get_metadata(storage_key) is None

    def test_delete_not_owner(self, registry, other_user, hosted_skill):
        with pytest.raises(NotAuthorizedError):
            registry.delete_skill(other_user, hosted_skill.id)
        assert registry.get_skill(hosted_skill.id)


class TestPersistence:
    def test_registry_file_survives_new_instance(self, settings, registry, hosted_skill, publish):
        publish(hosted_skill.id, "1.0.0")

        reopened = SkillRegistry.from_settings(settings)
        assert reopened.get_version_download_url(hosted_skill.id).version == "1.0.0"
        assert settings.registry_path.read_text().startswith("{\n  ")
