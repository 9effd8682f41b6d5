"""Pytest fixtures for SkillHub tests."""

import json
from pathlib import Path

import pytest

from skillhub.archive.hasher import compute_hash
from skillhub.audit import AuditLogger
from skillhub.config import Settings
from skillhub.server.blobstore import LocalBlobStore
from skillhub.server.identity import Actor
from skillhub.server.ratelimit import InMemoryCounterStore, RateLimiter
from skillhub.server.registry import SkillRegistry
from skillhub.server.store import RegistryStore


class FakeClock:
    """Controllable clock returning seconds since the epoch."""

    def __init__(self, now: float = 1_700_000_040.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def valid_manifest() -> dict:
    """Return a valid skill.json dictionary."""
    return {
        "name": "Weather Skill",
        "slug": "weather",
        "version": "1.0.0",
        "description": "Get current weather info",
        "author": "tester",
        "license": "MIT",
        "entry": "SKILL.md",
        "files": ["SKILL.md", "./utils.py", "scripts/fetch.sh"],
    }


@pytest.fixture
def skill_dir(tmp_path: Path, valid_manifest: dict) -> Path:
    """Create a skill directory with skill.json and the declared files."""
    skill_dir = tmp_path / "weather"
    (skill_dir / "scripts").mkdir(parents=True)

    (skill_dir / "SKILL.md").write_text("# Weather\n\nAsk for the weather.\n")
    (skill_dir / "utils.py").write_text('def city(name):\n    return name.title()\n')
    (skill_dir / "scripts" / "fetch.sh").write_text("#!/bin/sh\necho sunny\n")
    (skill_dir / "skill.json").write_text(json.dumps(valid_manifest, indent=2))

    return skill_dir


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temp data directory, no retry backoff."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        blob_retry_backoff_seconds=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blob_store(settings: Settings) -> LocalBlobStore:
    return LocalBlobStore(settings.blob_path, settings.blob_base_url)


@pytest.fixture
def registry(settings: Settings, blob_store: LocalBlobStore, clock: FakeClock) -> SkillRegistry:
    """A registry on the JSON store with an in-memory rate limiter."""
    store = RegistryStore(settings.registry_path)
    limiter = RateLimiter(InMemoryCounterStore(), clock=clock)
    return SkillRegistry(
        settings,
        store,
        blob_store,
        limiter,
        audit=AuditLogger(settings.audit_log_path),
    )


@pytest.fixture
def owner() -> Actor:
    return Actor(id="user-owner", handle="owner")


@pytest.fixture
def other_user() -> Actor:
    return Actor(id="user-other", handle="other")


@pytest.fixture
def hosted_skill(registry: SkillRegistry, owner: Actor):
    """A freshly created hosted skill owned by ``owner``."""
    return registry.create_skill(owner, "Weather Skill", "weather", "Get current weather info")


@pytest.fixture
def upload(registry: SkillRegistry, owner: Actor):
    """Upload bytes for a skill; returns (storage_key, sha256, size)."""

    def _upload(skill_id: str, version: str, data: bytes) -> tuple[str, str, int]:
        ticket = registry.generate_upload_url(owner, skill_id, version)
        registry.blob_store.put(ticket.storage_key, data)
        return ticket.storage_key, compute_hash(data), len(data)

    return _upload


@pytest.fixture
def publish(registry: SkillRegistry, owner: Actor, upload):
    """Upload and publish a version with matching size and hash."""

    def _publish(skill_id: str, version: str, data: bytes | None = None, **kwargs):
        payload = data if data is not None else f"artifact {version}".encode()
        storage_key, digest, size = upload(skill_id, version, payload)
        return registry.publish_version(
            owner,
            skill_id,
            version,
            storage_key=storage_key,
            content_hash=digest,
            size_bytes=size,
            **kwargs,
        )

    return _publish
