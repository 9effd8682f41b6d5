"""Fixed-window rate limiter over an injected counter store.

Bursts across a window boundary are admitted; use a finer window for
smoother limiting.
"""

import threading
import time
from collections.abc import Callable
from typing import Protocol

from ..errors import RateLimitedError
from ..models.registry import RateLimitCounter


class CounterStore(Protocol):
    """Keyed counters with atomic read-modify-write."""

    def atomic_update(
        self,
        key: str,
        mutate: Callable[[RateLimitCounter | None], RateLimitCounter],
    ) -> RateLimitCounter: ...


class InMemoryCounterStore:
    """Process-local CounterStore, mostly for tests and single-process use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, RateLimitCounter] = {}

    def atomic_update(
        self,
        key: str,
        mutate: Callable[[RateLimitCounter | None], RateLimitCounter],
    ) -> RateLimitCounter:
        with self._lock:
            counter = mutate(self._counters.get(key))
            self._counters[key] = counter
            return counter

    def get(self, key: str) -> RateLimitCounter | None:
        with self._lock:
            return self._counters.get(key)


def window_start(now_ms: int, window_ms: int) -> int:
    """Start of the fixed window containing now_ms."""
    return (now_ms // window_ms) * window_ms


def rate_limit_key(actor_id: str, operation: str) -> str:
    return f"{actor_id}:{operation}"


class RateLimiter:
    """Enforces per-key budgets of ``limit`` calls per ``window_ms``."""

    def __init__(self, store: CounterStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def enforce(self, key: str, limit: int, window_ms: int) -> RateLimitCounter:
        """Count one call against key.

        A missing counter, or one from an earlier window, is replaced with
        count=1 for the current window. Within the same window the call is
        rejected once count has reached limit, without incrementing.

        Raises:
            RateLimitedError: The window's budget is exhausted.
        """
        now = self._now_ms()
        current_window = window_start(now, window_ms)

        def mutate(existing: RateLimitCounter | None) -> RateLimitCounter:
            if existing is None or existing.window_start != current_window:
                return RateLimitCounter(
                    key=key, window_start=current_window, count=1, updated_at=now
                )
            if existing.count >= limit:
                raise RateLimitedError(key, retry_after_ms=current_window + window_ms - now)
            return existing.model_copy(update={"count": existing.count + 1, "updated_at": now})

        return self.store.atomic_update(key, mutate)
