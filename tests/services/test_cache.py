from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from settlement.services import cache as cache_module
from settlement.services.cache import InMemoryCacheService, progress_cache_key
from tests.conftest import sample


def test_set_get_delete() -> None:
    cache = InMemoryCacheService()
    asyncio.run(cache.set("k", "v", ttl_seconds=60))
    assert asyncio.run(cache.get("k")) == "v"
    asyncio.run(cache.delete("k"))
    assert asyncio.run(cache.get("k")) is None


def test_entries_expire(monkeypatch: pytest.MonkeyPatch) -> None:
    now = [1000.0]
    monkeypatch.setattr(cache_module.time, "monotonic", lambda: now[0])
    cache = InMemoryCacheService()
    asyncio.run(cache.set("k", "v", ttl_seconds=30))

    now[0] += 29
    assert asyncio.run(cache.get("k")) == "v"
    now[0] += 1
    assert asyncio.run(cache.get("k")) is None


def test_hits_and_misses_are_counted() -> None:
    cache = InMemoryCacheService()
    hits = sample("cache_operations_total", {"operation": "hit"})
    misses = sample("cache_operations_total", {"operation": "miss"})

    asyncio.run(cache.get("absent"))
    asyncio.run(cache.set("present", "1", ttl_seconds=60))
    asyncio.run(cache.get("present"))

    assert sample("cache_operations_total", {"operation": "hit"}) - hits == 1
    assert sample("cache_operations_total", {"operation": "miss"}) - misses == 1


def test_progress_keys_are_per_user_and_course() -> None:
    user, course = uuid4(), uuid4()
    assert progress_cache_key(user, course) == f"progress:{user}:{course}"
    assert progress_cache_key(user, course) != progress_cache_key(course, user)
