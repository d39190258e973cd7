"""Shared Redis client for the progress cache and the task queue.

Redis only holds derived or transient data (cached Progress reads,
queued email deliveries), so losing it loses nothing authoritative.
Without REDIS_URL both consumers use in-memory versions.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from settlement.core.config import SETTINGS

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    aioredis.from_url(SETTINGS.redis_url, decode_responses=True, max_connections=20)
    if SETTINGS.redis_url
    else None
)


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("REDIS_URL not set; progress cache and task queue are in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except RedisError:
        # /ready reports the outage; the app still starts
        logger.exception("Redis unreachable at startup")
    else:
        logger.info("Redis reachable")
    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis pool closed")
