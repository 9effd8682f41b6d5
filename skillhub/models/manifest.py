"""Skill manifest data model (the skill.json contract)."""

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_FILE = "skill.json"


class SkillManifest(BaseModel):
    """
    Skill packaging contract.

    Every skill directory carries a skill.json conforming to this model. The
    manifest is immutable once it has been packaged into an archive.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)
    name: str
    slug: str
    version: str
    description: str
    author: str
    license: str
    entry: str
    files: list[str] = Field(..., min_length=1)
