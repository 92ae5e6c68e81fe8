"""
MongoDB client construction and collection setup.

Builds a single AsyncMongoClient for the process and exposes the Device and
Data collections. The unique index on (user, room, appliance) is what makes
the identity upsert race-free across concurrent resolvers.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from collector.src.errors import StoreError

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection
    from pymongo.asynchronous.database import AsyncDatabase

logger = logging.getLogger(__name__)

DEVICE_COLLECTION: str = "Device"
DATA_COLLECTION: str = "Data"
DEVICE_KEY_INDEX: str = "device_key"

SERVER_SELECTION_TIMEOUT_MS: int = 5000


def create_client(
    uri: str,
    *,
    username: str | None = None,
    password: str | None = None,
) -> AsyncMongoClient:
    """Create the process-wide async MongoDB client.

    Args:
        uri: MongoDB connection string.
        username: Optional user when credentials are not in the URI.
        password: Optional password when credentials are not in the URI.
    """
    kwargs: dict[str, Any] = {
        "serverSelectionTimeoutMS": SERVER_SELECTION_TIMEOUT_MS,
        "tz_aware": True,
    }
    if username:
        kwargs["username"] = username
    if password:
        kwargs["password"] = password
    return AsyncMongoClient(uri, **kwargs)


class Store:
    """Typed access to the collector's two collections.

    Args:
        database: The async database holding Device and Data.
    """

    def __init__(self, database: AsyncDatabase) -> None:
        self._db = database

    @property
    def devices(self) -> AsyncCollection:
        return self._db[DEVICE_COLLECTION]

    @property
    def data(self) -> AsyncCollection:
        return self._db[DATA_COLLECTION]

    async def ping(self) -> None:
        """Round-trip to the server.

        Raises:
            StoreError: The server is unreachable or rejected the command.
        """
        try:
            await self._db.command("ping")
        except PyMongoError as exc:
            raise StoreError(f"MongoDB ping failed: {exc}") from exc

    async def ensure_indexes(self) -> None:
        """Create the composite-key unique index and the time index.

        Raises:
            StoreError: Index creation failed, e.g. because existing
                documents already violate uniqueness.
        """
        try:
            await self.devices.create_index(
                [("user", ASCENDING), ("room", ASCENDING), ("appliance", ASCENDING)],
                unique=True,
                name=DEVICE_KEY_INDEX,
            )
            await self.data.create_index([("device_id", ASCENDING), ("time", -1)])
        except PyMongoError as exc:
            raise StoreError(f"Index creation failed: {exc}") from exc
        logger.info("MongoDB indexes ensured")
