"""Fixed-window request rate limiting."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from ragdesk.core.config import parse_rate


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    max_requests: int
    window_seconds: float

    @classmethod
    def parse(cls, value: str) -> "RateLimitConfig":
        max_requests, window = parse_rate(value)
        return cls(max_requests=max_requests, window_seconds=window)


@dataclass(slots=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }

    def retry_after(self, now: float) -> int:
        return max(0, int(self.reset_at - now + 0.999))


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts requests per key inside fixed windows.

    Entries are created on the first request of a window and dropped once the
    window has elapsed; expired keys are swept lazily every ``sweep_interval``
    seconds while ``check`` is being called. All mutation happens under a
    single lock, so concurrent request handlers see atomic increments.
    """

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._entries: dict[tuple[str, float], _Window] = {}
        self._lock = threading.Lock()
        self._next_sweep = clock() + sweep_interval

    def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            slot = (key, config.window_seconds)
            entry = self._entries.get(slot)
            if entry is None or entry.reset_at <= now:
                entry = _Window(count=1, reset_at=now + config.window_seconds)
                self._entries[slot] = entry
                return RateLimitResult(True, config.max_requests - 1, entry.reset_at)
            if entry.count >= config.max_requests:
                return RateLimitResult(False, 0, entry.reset_at)
            entry.count += 1
            return RateLimitResult(True, config.max_requests - entry.count, entry.reset_at)

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        expired = [slot for slot, entry in self._entries.items() if entry.reset_at <= now]
        for slot in expired:
            del self._entries[slot]
        self._next_sweep = now + self._sweep_interval


__all__ = ["RateLimitConfig", "RateLimitResult", "RateLimiter"]
