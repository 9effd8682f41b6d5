"""SkillHub configuration."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_ARTIFACT_BYTES = 10 * 1024 * 1024
MAX_VERIFICATION_BATCH = 25


class RateLimitRule(BaseModel):
    """Fixed-window budget for one operation."""

    limit: int = Field(..., gt=0)
    window_ms: int = Field(..., gt=0)


def _default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        "createSkill": RateLimitRule(limit=5, window_ms=60_000),
        "publishVersion": RateLimitRule(limit=5, window_ms=60_000),
        "setDefaultVersion": RateLimitRule(limit=10, window_ms=60_000),
        "reverifyVersion": RateLimitRule(limit=10, window_ms=60_000),
        "deleteSkill": RateLimitRule(limit=10, window_ms=60_000),
        "generateUploadUrl": RateLimitRule(limit=20, window_ms=60_000),
    }


class Settings(BaseSettings):
    """Server and client settings, overridable with SKILLHUB_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SKILLHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server storage
    data_dir: Path = Path("data")
    registry_file: str = "registry.json"
    blob_dir: str = "blobs"
    audit_log: str = "audit.log"
    blob_base_url: str = "http://localhost:8000/blobs"

    # Client workspace
    actor_id: str | None = None
    workspace_dir: str = ".skillhub"
    ledger_file: str = "versions.json"
    artifacts_dir: str = "artifacts"

    # Limits
    max_artifact_bytes: int = Field(default=MAX_ARTIFACT_BYTES, gt=0)
    verification_batch_limit: int = Field(default=MAX_VERIFICATION_BATCH, gt=0, le=MAX_VERIFICATION_BATCH)
    verification_interval_seconds: int = Field(default=300, gt=0)

    # Blob store retry policy, shared by verification
    blob_retry_attempts: int = Field(default=3, ge=1)
    blob_retry_backoff_seconds: float = Field(default=0.5, ge=0)

    rate_limits: dict[str, RateLimitRule] = Field(default_factory=_default_rate_limits)

    @property
    def registry_path(self) -> Path:
        return self.data_dir / self.registry_file

    @property
    def blob_path(self) -> Path:
        return self.data_dir / self.blob_dir

    @property
    def audit_log_path(self) -> Path:
        return self.data_dir / self.audit_log

    def rate_limit_for(self, operation: str) -> RateLimitRule:
        """Return the configured rule for an operation.

        Raises:
            KeyError: If no rule is configured for the operation.
        """
        return self.rate_limits[operation]
