from __future__ import annotations

import asyncio

from app.services.rate_limiter import InMemoryRateLimiter, RateLimitConfig

CONFIG = RateLimitConfig(limit=3, window_seconds=60)


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.t = start

    def __call__(self) -> float:
        return self.t


def _hits(limiter: InMemoryRateLimiter, key: str, n: int):
    async def run():
        return [await limiter.check(key, CONFIG) for _ in range(n)]

    return asyncio.run(run())


def test_allows_up_to_limit_then_refuses() -> None:
    limiter = InMemoryRateLimiter(clock=FakeClock())
    results = _hits(limiter, "enroll:u1", 4)

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].retry_after == 60
    assert all(r.limit == 3 for r in results)


def test_retry_after_counts_down_to_window_end() -> None:
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock)
    _hits(limiter, "k", 3)

    clock.t += 45
    (refused,) = _hits(limiter, "k", 1)
    assert not refused.allowed
    assert refused.retry_after == 15


def test_window_expiry_starts_fresh_count() -> None:
    clock = FakeClock()
    limiter = InMemoryRateLimiter(clock=clock)
    _hits(limiter, "k", 5)

    clock.t += 60
    (fresh,) = _hits(limiter, "k", 1)
    assert fresh.allowed
    assert fresh.remaining == 2


def test_keys_are_independent() -> None:
    limiter = InMemoryRateLimiter(clock=FakeClock())
    _hits(limiter, "enroll:a", 4)
    (other,) = _hits(limiter, "enroll:b", 1)
    assert other.allowed


def test_reset_clears_the_window() -> None:
    limiter = InMemoryRateLimiter(clock=FakeClock())
    _hits(limiter, "k", 4)
    asyncio.run(limiter.reset("k"))
    (after,) = _hits(limiter, "k", 1)
    assert after.allowed
