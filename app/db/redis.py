"""Redis connection management.

Redis only backs the install nonce store. With REDIS_URL set, every API
instance shares one view of issued nonces, so a callback can land on a
different instance than the install redirect and a nonce consumed on one
instance is gone for all of them. Without it (local dev, tests) the
store falls back to a per-process dict and no Redis server is needed.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

# None when REDIS_URL is not set; consumers check and fall back to memory.
if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Verify the connection at startup and close the pool at shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, install nonces kept in memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        # Keep serving so /health can report the degradation; install and
        # callback requests fail until Redis is reachable again.
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
