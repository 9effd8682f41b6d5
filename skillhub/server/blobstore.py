"""Blob storage collaborator used by uploads, downloads and verification."""

import hashlib
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..errors import BlobStoreUnavailable, NotFoundError

_STORAGE_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}$")


@dataclass(frozen=True)
class BlobMetadata:
    """Size and integrity hash reported by the store for a blob."""

    size: int
    integrity_hash: str


@dataclass(frozen=True)
class UploadTicket:
    """Where a client should send an artifact and the key it will live under."""

    upload_url: str
    storage_key: str


class BlobStore(Protocol):
    """Contract the registry depends on."""

    def get_metadata(self, storage_key: str) -> BlobMetadata | None: ...

    def get_url(self, storage_key: str) -> str: ...

    def generate_upload_url(self) -> UploadTicket: ...

    def put(self, storage_key: str, data: bytes) -> None: ...

    def delete(self, storage_key: str) -> None: ...


class LocalBlobStore:
    """Filesystem-backed blob store.

    Blobs live at ``<root>/<storage_key>``; the integrity hash is the SHA-256
    of the stored bytes.
    """

    def __init__(self, root: Path, base_url: str) -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    def _blob_path(self, storage_key: str) -> Path:
        if not _STORAGE_KEY_PATTERN.match(storage_key):
            raise NotFoundError(f"Unknown storage key: {storage_key}")
        return self.root / storage_key

    def generate_upload_url(self) -> UploadTicket:
        storage_key = uuid.uuid4().hex
        return UploadTicket(
            upload_url=f"{self.base_url}/upload/{storage_key}",
            storage_key=storage_key,
        )

    def put(self, storage_key: str, data: bytes) -> None:
        """Store uploaded bytes under a key issued by generate_upload_url()."""
        path = self._blob_path(storage_key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".part")
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        except OSError as e:
            raise BlobStoreUnavailable(f"Failed to store blob {storage_key}: {e}") from e

    def get_metadata(self, storage_key: str) -> BlobMetadata | None:
        try:
            path = self._blob_path(storage_key)
        except NotFoundError:
            return None
        if not path.is_file():
            return None
        try:
            data = path.read_bytes()
        except OSError as e:
            raise BlobStoreUnavailable(f"Failed to read blob {storage_key}: {e}") from e
        return BlobMetadata(size=len(data), integrity_hash=hashlib.sha256(data).hexdigest())

    def get_url(self, storage_key: str) -> str:
        self._blob_path(storage_key)
        return f"{self.base_url}/{storage_key}"

    def delete(self, storage_key: str) -> None:
        try:
            path = self._blob_path(storage_key)
        except NotFoundError:
            return
        path.unlink(missing_ok=True)
