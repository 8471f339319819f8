"""Redis connection management for the job store.

Clients are created explicitly and handed to the services that use them;
there is no module-level connection.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar, cast

import redis.asyncio as redis
from redis.exceptions import RedisError

if TYPE_CHECKING:
    from redis.asyncio import Redis

T = TypeVar("T")

logger = logging.getLogger(__name__)


def await_redis(result: Awaitable[T] | T) -> Awaitable[T]:
    """Cast redis-py async results to an awaitable for mypy."""
    return cast(Awaitable[T], result)


def create_redis(url: str) -> Redis:
    """Create a Redis client for the given URL.

    Responses are decoded to ``str``: job ids and JSON records are text.
    """
    client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
    )
    logger.info("Redis client created")
    return cast("Redis", client)


async def close_redis(client: Redis) -> None:
    """Close a Redis client and its connection pool."""
    await client.aclose()
    logger.info("Redis client closed")


async def ping_redis(client: Redis) -> bool:
    """Check Redis connectivity."""
    try:
        await await_redis(client.ping())
        return True
    except (RedisError, OSError) as e:
        logger.warning(f"Redis ping failed: {e}")
        return False
