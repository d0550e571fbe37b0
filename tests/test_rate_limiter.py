"""Tests for the per-provider rate limiter."""
from __future__ import annotations

import threading

from quizforge.models import RateLimit
from quizforge.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    def test_allows_until_minute_limit(self):
        limiter = RateLimiter(clock=FakeClock())
        limits = RateLimit(per_minute=3, per_day=100)
        for _ in range(3):
            assert limiter.check_quota("groq", limits)
            limiter.consume_quota("groq", limits)
        assert not limiter.check_quota("groq", limits)

    def test_limit_plus_five_gives_five_denials(self):
        limiter = RateLimiter(clock=FakeClock())
        limits = RateLimit(per_minute=10, per_day=1000)
        denials = 0
        for _ in range(limits.per_minute + 5):
            if limiter.check_quota("groq", limits):
                limiter.consume_quota("groq", limits)
            else:
                denials += 1
        assert denials >= 5

    def test_minute_window_resets(self):
        clock = FakeClock(now=120.0)
        limiter = RateLimiter(clock=clock)
        limits = RateLimit(per_minute=1, per_day=100)
        limiter.consume_quota("groq", limits)
        assert not limiter.check_quota("groq", limits)
        clock.now += 60
        assert limiter.check_quota("groq", limits)

    def test_day_limit(self):
        clock = FakeClock(now=0.0)
        limiter = RateLimiter(clock=clock)
        limits = RateLimit(per_minute=100, per_day=2)
        limiter.consume_quota("groq", limits)
        clock.now += 61
        limiter.consume_quota("groq", limits)
        clock.now += 61
        assert not limiter.check_quota("groq", limits)

    def test_providers_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        limits = RateLimit(per_minute=1, per_day=10)
        limiter.consume_quota("groq", limits)
        assert not limiter.check_quota("groq", limits)
        assert limiter.check_quota("fireworks", limits)

    def test_zero_limit_denies(self):
        limiter = RateLimiter(clock=FakeClock())
        assert not limiter.check_quota("off", RateLimit(per_minute=0, per_day=10))

    def test_wait_time(self):
        clock = FakeClock(now=130.0)
        limiter = RateLimiter(clock=clock)
        limits = RateLimit(per_minute=1, per_day=10)
        assert limiter.wait_time("groq", limits) == 0.0
        limiter.consume_quota("groq", limits)
        assert limiter.wait_time("groq", limits) == 50.0

    def test_usage(self):
        limiter = RateLimiter(clock=FakeClock())
        limits = RateLimit(per_minute=5, per_day=10)
        limiter.consume_quota("groq", limits)
        limiter.consume_quota("groq", limits)
        assert limiter.usage("groq") == {"minute": 2, "day": 2}
        assert limiter.usage("other") == {"minute": 0, "day": 0}

    def test_expired_windows_are_swept(self):
        clock = FakeClock(now=0.0)
        limiter = RateLimiter(clock=clock)
        limits = RateLimit(per_minute=5, per_day=10)
        limiter.consume_quota("groq", limits)
        clock.now = 2 * 86400.0
        limiter.consume_quota("groq", limits)
        assert len(limiter._windows) == 2

    def test_try_acquire_is_atomic_across_threads(self):
        limiter = RateLimiter(clock=FakeClock())
        limits = RateLimit(per_minute=50, per_day=1000)
        granted = []

        def worker():
            for _ in range(20):
                if limiter.try_acquire("groq", limits):
                    granted.append(1)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(granted) == 50
        assert limiter.usage("groq")["minute"] == 50
