from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

from fastapi import Request
from redis.asyncio import ConnectionPool, Redis

if TYPE_CHECKING:
    from truckops.config import Settings

logger = logging.getLogger(__name__)


class RedisConnection:
    """Owns the async Redis connection pool used for alert push fan-out.

    Constructed once during application startup and kept on
    ``app.state.redis``.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None  # type: ignore[type-arg]

    async def connect(self) -> None:
        """Create the async Redis connection pool and ping it."""
        logger.info(
            "Connecting to Redis",
            extra={"redis_url": _mask_redis_url(self._settings.REDIS_URL)},
        )

        self._pool = ConnectionPool.from_url(
            self._settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        self._redis = Redis(connection_pool=self._pool)

        await self._redis.ping()
        logger.info("Redis connection established")

    async def close(self) -> None:
        """Close the Redis client and underlying pool."""
        if self._redis is not None:
            await self._redis.aclose()
            logger.info("Redis connection closed")
        if self._pool is not None:
            await self._pool.aclose()
        self._redis = None
        self._pool = None

    @property
    def client(self) -> Redis:  # type: ignore[type-arg]
        if self._redis is None:
            raise RuntimeError("Redis is not initialised. Call connect() first.")
        return self._redis


async def get_redis(request: Request) -> AsyncGenerator[Redis, None]:  # type: ignore[type-arg]
    """FastAPI dependency that yields the Redis client."""
    connection: RedisConnection | None = getattr(request.app.state, "redis", None)
    if connection is None:
        raise RuntimeError("Redis is not initialised. Call connect() first.")
    yield connection.client


def _mask_redis_url(url: str) -> str:
    """Replace password portion of a Redis URI for safe logging."""
    if "@" not in url:
        return url
    scheme_rest = url.split("://", 1)
    if len(scheme_rest) != 2:
        return "***"
    creds_host = scheme_rest[1].split("@", 1)
    if len(creds_host) != 2:
        return "***"
    return f"{scheme_rest[0]}://***@{creds_host[1]}"
