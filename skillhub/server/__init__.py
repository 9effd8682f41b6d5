"""Server-side registry: blob store, identity, rate limiting and verification."""

from .blobstore import BlobMetadata, BlobStore, LocalBlobStore, UploadTicket
from .identity import Actor, require_actor, require_owner
from .ratelimit import InMemoryCounterStore, RateLimiter, rate_limit_key, window_start
from .registry import BatchSummary, DownloadInfo, PublishResult, SkillRegistry
from .store import RegistryStore
from .verification import VerificationEngine, VerificationOutcome, run_checks

__all__ = [
    "Actor",
    "BatchSummary",
    "BlobMetadata",
    "BlobStore",
    "DownloadInfo",
    "InMemoryCounterStore",
    "LocalBlobStore",
    "PublishResult",
    "RateLimiter",
    "RegistryStore",
    "SkillRegistry",
    "UploadTicket",
    "VerificationEngine",
    "VerificationOutcome",
    "rate_limit_key",
    "require_actor",
    "require_owner",
    "run_checks",
    "window_start",
]
