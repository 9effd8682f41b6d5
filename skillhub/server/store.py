"""JSON-file registry store with serialized read-modify-write transactions."""

import json
import os
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from ..models.registry import RateLimitCounter, RegistryData


class RegistryStore:
    """Persists RegistryData and serializes every mutation behind one lock."""

    def __init__(self, registry_path: Path) -> None:
        self.registry_path = registry_path
        self._lock = threading.RLock()
        self._local = threading.local()

    def load(self) -> RegistryData:
        """Load registry data from file. Returns empty registry if file missing."""
        if not self.registry_path.exists():
            return RegistryData()
        with open(self.registry_path) as f:
            data = json.load(f)
        return RegistryData.model_validate(data)

    def save(self, data: RegistryData) -> None:
        """Save registry data with indent=2, replacing the file atomically."""
        data.updated_at = datetime.now()
        self.registry_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.registry_path.with_suffix(self.registry_path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data.model_dump(mode="json"), f, indent=2, default=str)
        os.replace(tmp_path, self.registry_path)

    @contextmanager
    def transaction(self) -> Iterator[RegistryData]:
        """Yield registry data and save it on clean exit.

        Any exception raised inside the block discards the changes.
        Transactions nest; only the outermost one saves.
        """
        with self._lock:
            if getattr(self._local, "data", None) is not None:
                yield self._local.data
                return
            data = self.load()
            self._local.data = data
            try:
                yield data
                self.save(data)
            finally:
                self._local.data = None

    def atomic_update(
        self,
        key: str,
        mutate: Callable[[RateLimitCounter | None], RateLimitCounter],
    ) -> RateLimitCounter:
        """Read-modify-write one rate-limit counter as a single unit."""
        with self.transaction() as data:
            counter = mutate(data.rate_limits.get(key))
            data.rate_limits[key] = counter
            return counter
