"""Read-through cache in front of Progress reads.

Progress is already derived from the ledger; this layer only saves the
ledger a read.  Entries carry a TTL so a missed invalidation heals on
its own, and every recompute deletes its key so the usual case is never
stale.  Nothing on a write path ever reads from here.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable
from uuid import UUID

from settlement.core.metrics import CACHE_OPERATIONS
from settlement.db.redis import redis_pool

PROGRESS_CACHE_TTL = 300


def progress_cache_key(user_id: UUID, course_id: UUID) -> str:
    return f"progress:{user_id}:{course_id}"


def _record(value: str | None) -> str | None:
    CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
    return value


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    async def delete(self, key: str) -> None: ...


class InMemoryCacheService:
    """Single-process cache; entries are (value, monotonic expiry)."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        value, expires_at = self._store.get(key, (None, 0.0))
        if value is not None and expires_at <= time.monotonic():
            del self._store[key]
            value = None
        return _record(value)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Shared by every API instance.  Keys live under ``cache:``."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return _record(await self._redis.get(f"cache:{key}"))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.set(f"cache:{key}", value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"cache:{key}")


cache_service: CacheService = (
    RedisCacheService(redis_pool) if redis_pool is not None else InMemoryCacheService()
)
