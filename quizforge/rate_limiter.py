"""Per-provider request quotas over fixed minute and day windows."""
from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from quizforge.models import RateLimit

MINUTE = 60.0
DAY = 86400.0


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Thread-safe counter store keyed by ``(provider, window, bucket)``.

    Buckets are created lazily and expired ones are swept on every
    :meth:`consume_quota` or successful :meth:`try_acquire`.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[tuple[str, str, int], _Window] = {}

    def _key(self, provider: str, span: float, now: float) -> tuple[str, str, int]:
        label = "minute" if span == MINUTE else "day"
        return provider, label, int(now // span)

    def _get(self, provider: str, span: float, now: float) -> _Window:
        key = self._key(provider, span, now)
        window = self._windows.get(key)
        if window is None:
            window = _Window(count=0, reset_at=(key[2] + 1) * span)
            self._windows[key] = window
        return window

    def check_quota(self, provider: str, limits: RateLimit) -> bool:
        now = self._clock()
        with self._lock:
            minute = self._windows.get(self._key(provider, MINUTE, now))
            if minute is not None and minute.count >= limits.per_minute:
                return False
            day = self._windows.get(self._key(provider, DAY, now))
            if day is not None and day.count >= limits.per_day:
                return False
            return limits.per_minute > 0 and limits.per_day > 0

    def consume_quota(self, provider: str, limits: RateLimit) -> None:
        now = self._clock()
        with self._lock:
            self._get(provider, MINUTE, now).count += 1
            self._get(provider, DAY, now).count += 1
            self._sweep(now)

    def try_acquire(self, provider: str, limits: RateLimit) -> bool:
        """Check and consume in one step; False if either window is full."""
        now = self._clock()
        with self._lock:
            minute = self._get(provider, MINUTE, now)
            day = self._get(provider, DAY, now)
            if minute.count >= limits.per_minute or day.count >= limits.per_day:
                return False
            minute.count += 1
            day.count += 1
            self._sweep(now)
            return True

    def wait_time(self, provider: str, limits: RateLimit) -> float:
        """Seconds until the minute window has room again (0 if it has now)."""
        now = self._clock()
        with self._lock:
            minute = self._windows.get(self._key(provider, MINUTE, now))
            if minute is not None and minute.count >= limits.per_minute:
                return max(0.0, minute.reset_at - now)
            return 0.0

    def usage(self, provider: str) -> dict[str, int]:
        now = self._clock()
        with self._lock:
            minute = self._windows.get(self._key(provider, MINUTE, now))
            day = self._windows.get(self._key(provider, DAY, now))
            return {
                "minute": minute.count if minute else 0,
                "day": day.count if day else 0,
            }

    def _sweep(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for k in expired:
            del self._windows[k]
