"""Client-side publish ledger models."""

from datetime import datetime

from pydantic import BaseModel, Field


class PublishedSkillVersion(BaseModel):
    """A version packaged on this machine."""

    version: str
    changelog: str | None = None
    hash: str
    size_bytes: int
    artifact_path: str
    published_at: datetime


class PublishedSkillRecord(BaseModel):
    """All locally packaged versions of one skill."""

    slug: str
    name: str
    versions: list[PublishedSkillVersion] = Field(default_factory=list)


class LedgerData(BaseModel):
    """Root ledger document stored in .skillhub/versions.json."""

    skills: list[PublishedSkillRecord] = Field(default_factory=list)
