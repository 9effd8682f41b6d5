"""Pydantic models shared by the client and the registry."""

from .ledger import LedgerData, PublishedSkillRecord, PublishedSkillVersion
from .manifest import MANIFEST_FILE, SkillManifest
from .registry import (
    RateLimitCounter,
    RegistryData,
    Skill,
    SkillVersion,
    VerificationRecord,
)

__all__ = [
    "MANIFEST_FILE",
    "SkillManifest",
    "LedgerData",
    "PublishedSkillRecord",
    "PublishedSkillVersion",
    "RateLimitCounter",
    "RegistryData",
    "Skill",
    "SkillVersion",
    "VerificationRecord",
]
