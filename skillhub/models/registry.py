"""Registry data models for hosted skill versions."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

VersionStatus = Literal["pending", "verified", "rejected"]
VerificationStatus = Literal["running", "passed", "failed"]


class Skill(BaseModel):
    """A hosted skill repository."""

    id: str
    owner_id: str
    name: str
    slug: str
    description: str
    visibility: Literal["public"] = "public"
    storage_mode: Literal["hosted", "github"] = "hosted"
    default_version_id: str | None = None
    created_at: datetime
    updated_at: datetime


class SkillVersion(BaseModel):
    """A published version of a skill."""

    id: str
    skill_id: str
    version: str
    changelog: str | None = None
    storage_key: str
    content_hash: str
    size_bytes: int
    manifest: str | None = None
    published_by: str
    status: VersionStatus = "pending"
    verification_id: str | None = None
    published_at: datetime


class VerificationRecord(BaseModel):
    """One verification run against a version. Never mutated after completion."""

    id: str
    version_id: str
    status: VerificationStatus = "running"
    checks: dict[str, bool] = Field(default_factory=dict)
    errors: list[str] | None = None
    started_at: datetime
    completed_at: datetime | None = None


class RateLimitCounter(BaseModel):
    """Fixed-window counter for one actor/operation key."""

    key: str
    window_start: int
    count: int
    updated_at: int


class RegistryData(BaseModel):
    """Root registry data structure."""

    skills: dict[str, Skill] = Field(default_factory=dict)
    versions: dict[str, SkillVersion] = Field(default_factory=dict)
    verifications: dict[str, VerificationRecord] = Field(default_factory=dict)
    rate_limits: dict[str, RateLimitCounter] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=datetime.now)
