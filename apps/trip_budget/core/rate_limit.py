from __future__ import annotations

import time
from dataclasses import dataclass

from redis.asyncio import Redis


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(time.time()) + self.reset_after),
        }


class RateLimiter:
    """Fixed-window request counter shared through Redis."""

    def __init__(self, redis: Redis, *, max_requests: int, window_seconds: int, prefix: str = "ratelimit") -> None:
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self._redis = redis
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def hit(self, key: str) -> RateLimitResult:
        redis_key = self._key(key)
        count = await self._redis.incr(redis_key)
        if count == 1:
            await self._redis.expire(redis_key, self.window_seconds)
        ttl = await self._redis.ttl(redis_key)
        if ttl is None or ttl < 0:
            # key was left without an expiry
            await self._redis.expire(redis_key, self.window_seconds)
            ttl = self.window_seconds
        return RateLimitResult(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(self.max_requests - count, 0),
            reset_after=ttl,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(self._key(key))
