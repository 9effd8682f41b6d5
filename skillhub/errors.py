"""Error taxonomy for packaging, publishing and the version registry."""


class SkillHubError(Exception):
    """Base class for all SkillHub errors."""


class ValidationError(SkillHubError, ValueError):
    """Caller-supplied data has the wrong shape (manifest, version, slug, size, hash)."""


class ManifestError(ValidationError):
    """A manifest check failed.

    Attributes:
        kind: Stable identifier of the failed check (e.g. ``missing_slug``).
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class PackagingError(SkillHubError):
    """Packaging aborted; no archive is produced."""


class PathTraversalError(PackagingError):
    """A declared path is absolute, climbs out with ``..`` or contains NUL."""


class PathEscapeError(PackagingError):
    """A declared path resolves outside the skill directory."""


class NotAFileError(PackagingError):
    """A declared path is missing, a directory or a symlink."""


class PathTooLongError(PackagingError):
    """A path does not fit the ustar name/prefix fields."""


class DuplicateVersionError(SkillHubError):
    """The (skill, version) pair already exists."""


class NotAuthenticatedError(SkillHubError):
    """No actor identity was supplied."""


class NotAuthorizedError(SkillHubError):
    """The actor does not own the target skill."""


class RateLimitedError(SkillHubError):
    """The actor exhausted the budget for an operation in the current window."""

    def __init__(self, key: str, retry_after_ms: int) -> None:
        super().__init__(f"Rate limit exceeded for {key}")
        self.key = key
        self.retry_after_ms = retry_after_ms


class NotFoundError(SkillHubError):
    """A skill, version or blob does not exist."""


class NotVerifiedError(SkillHubError):
    """A default version was requested for a version that is not verified."""


class BlobStoreUnavailable(SkillHubError):
    """The blob store could not answer; safe to retry."""
