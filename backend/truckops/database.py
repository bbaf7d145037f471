from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

if TYPE_CHECKING:
    from truckops.config import Settings

logger = logging.getLogger(__name__)


class MongoConnection:
    """Owns the Motor client and the selected database.

    Constructed once during application startup and kept on
    ``app.state.mongo``; services receive the database handle from it
    instead of reaching for a module-level global.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: AsyncIOMotorClient | None = None  # type: ignore[type-arg]
        self._database: AsyncIOMotorDatabase | None = None  # type: ignore[type-arg]

    async def connect(self) -> None:
        """Create the Motor client, select the database and ping it."""
        logger.info(
            "Connecting to MongoDB",
            extra={
                "mongo_url": _mask_url(self._settings.MONGO_URL),
                "db": self._settings.MONGO_DB_NAME,
            },
        )

        self._client = AsyncIOMotorClient(
            self._settings.MONGO_URL,
            maxPoolSize=50,
            minPoolSize=5,
            maxIdleTimeMS=30_000,
            connectTimeoutMS=5_000,
            serverSelectionTimeoutMS=5_000,
            retryWrites=True,
            retryReads=True,
        )
        self._database = self._client[self._settings.MONGO_DB_NAME]

        await self._client.admin.command("ping")
        logger.info("MongoDB connection established")

    async def close(self) -> None:
        """Close the Motor client."""
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._database = None

    @property
    def db(self) -> AsyncIOMotorDatabase:  # type: ignore[type-arg]
        if self._database is None:
            raise RuntimeError("MongoDB is not initialised. Call connect() first.")
        return self._database


async def get_database(request: Request) -> AsyncGenerator[AsyncIOMotorDatabase, None]:  # type: ignore[type-arg]
    """FastAPI dependency that yields the database handle."""
    connection: MongoConnection | None = getattr(request.app.state, "mongo", None)
    if connection is None:
        raise RuntimeError("MongoDB is not initialised. Call connect() first.")
    yield connection.db


def _mask_url(url: str) -> str:
    """Replace password portion of a MongoDB URI for safe logging."""
    if "@" not in url:
        return url
    scheme_rest = url.split("://", 1)
    if len(scheme_rest) != 2:
        return "***"
    creds_host = scheme_rest[1].split("@", 1)
    if len(creds_host) != 2:
        return "***"
    return f"{scheme_rest[0]}://***:***@{creds_host[1]}"
