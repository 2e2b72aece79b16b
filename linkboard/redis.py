"""Redis connection management."""

import redis.asyncio as aioredis
from fastapi import FastAPI

from linkboard.logging_config import get_logger

logger = get_logger(__name__)


async def init_redis(url: str) -> aioredis.Redis:
    """Open a Redis client and check it answers."""
    client = aioredis.from_url(url, decode_responses=True)
    await client.ping()
    logger.info("redis_connected", url=url)
    return client


async def close_redis(client: aioredis.Redis | None) -> None:
    """Close a Redis client opened by init_redis."""
    if client is not None:
        await client.aclose()


def redis_getter(app: FastAPI):
    """Callable returning the app's Redis client, or None when not configured."""

    def _get() -> aioredis.Redis | None:
        return getattr(app.state, "redis", None)

    return _get
