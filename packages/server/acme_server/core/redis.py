"""Redis connection management."""

from __future__ import annotations

import redis.asyncio as redis


def create_redis(url: str) -> redis.Redis:
    """Create a Redis client; the connection pool is opened lazily."""
    return redis.from_url(url, decode_responses=True)


async def close_redis(client: redis.Redis | None) -> None:
    """Close a Redis client and its connection pool."""
    if client is not None:
        await client.aclose()
