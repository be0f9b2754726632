"""Fixed-window rate limiting.

Each key gets a counter that lives for ``window_seconds``: the first hit
opens the window, every hit increments it, and once the count passes
``limit`` further hits are refused until the window expires.

A fixed window allows up to 2x the limit across a window boundary.  That
is acceptable for what we protect here (checkout creation and write
endpoints), where the goal is to stop a client hammering the payment
provider, not to shape traffic precisely.

  enroll    5 per 60 s per user (ENROLL_RATE_LIMIT / ENROLL_RATE_WINDOW_SECONDS)
  api       60 per 60 s per user or IP on other write routes
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from app.db.redis import redis_pool


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """Outcome of one check.

    retry_after is the number of seconds until the current window closes,
    0 when the request is allowed.
    """

    allowed: bool
    remaining: int
    limit: int
    retry_after: float


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    limit: int = 60
    window_seconds: int = 60


@runtime_checkable
class RateLimiter(Protocol):
    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult: ...
    async def reset(self, key: str) -> None: ...


class InMemoryRateLimiter:
    """Per-process windows; fine for dev/test, not shared across instances."""

    def __init__(self, clock=time.monotonic) -> None:
        # key -> (count, window_started_at)
        self._windows: dict[str, tuple[int, float]] = {}
        self._clock = clock

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        count, started = self._windows.get(key, (0, now))

        if now - started >= config.window_seconds:
            count, started = 0, now

        count += 1
        self._windows[key] = (count, started)

        if count > config.limit:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=config.limit,
                retry_after=max(0.0, config.window_seconds - (now - started)),
            )
        return RateLimitResult(
            allowed=True,
            remaining=config.limit - count,
            limit=config.limit,
            retry_after=0,
        )

    async def reset(self, key: str) -> None:
        self._windows.pop(key, None)


class RedisRateLimiter:
    """Redis-backed windows shared by every API instance.

    INCR is atomic, so concurrent requests from the same client are counted
    exactly once each.  The first INCR of a window sets its TTL; when the
    key expires the next INCR starts a fresh window.
    """

    _PREFIX = "ratelimit:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        redis_key = f"{self._PREFIX}{key}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            count, ttl = await pipe.execute()

        if count == 1 or ttl < 0:
            await self._redis.expire(redis_key, config.window_seconds)
            ttl = config.window_seconds

        if count > config.limit:
            return RateLimitResult(
                allowed=False, remaining=0, limit=config.limit, retry_after=float(ttl)
            )
        return RateLimitResult(
            allowed=True,
            remaining=config.limit - count,
            limit=config.limit,
            retry_after=0,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    rate_limiter: RateLimiter = RedisRateLimiter(redis_pool)
else:
    rate_limiter = InMemoryRateLimiter()
