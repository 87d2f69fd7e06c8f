import logging
from typing import Any, Callable

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import CollectionInvalid, PyMongoError

from .settings import DEFAULT_MONGO_DB_NAME, DEFAULT_MONGO_URI

logger = logging.getLogger("toolbox.mongo")


class CollectionError(Exception):
    pass


class CollectionManager:
    """Owns one MongoDB connection and manages the collections of one database.

    The connection is opened on first use and kept until ``disconnect()``.
    Use as ``async with CollectionManager(uri, name) as manager:`` to have it
    closed on every exit path.

    Create and drop check for the collection before acting, in a separate
    round-trip. Another writer can change the namespace in between; a lost
    create race is reported as "already exists", and dropping a namespace
    that has just vanished is a no-op on the server.
    """

    def __init__(
        self,
        uri: str = DEFAULT_MONGO_URI,
        db_name: str = DEFAULT_MONGO_DB_NAME,
        client_factory: Callable[[str], Any] = AsyncIOMotorClient,
    ):
        self.uri = uri
        self.db_name = db_name
        self._client_factory = client_factory
        self._client = None
        self._db = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._db is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        try:
            client = self._client_factory(self.uri)
        except PyMongoError as e:
            raise CollectionError(f"Invalid MongoDB configuration: {e}") from e
        # Publish the handle before awaiting so overlapping callers reuse it
        self._client = client
        self._db = client[self.db_name]
        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            if self._client is client:
                self._client = None
                self._db = None
            client.close()
            logger.error(f"[MongoDB] Connection to {self.uri} failed: {e}")
            raise CollectionError(f"Failed to connect to MongoDB: {e}") from e
        logger.info(f"[MongoDB] Connected, using database '{self.db_name}'")

    def close(self) -> None:
        """Close the connection without awaiting; safe from a signal handler."""
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._db = None
        logger.info("[MongoDB] Connection closed")

    async def disconnect(self) -> None:
        # Motor's close() is synchronous, so this never suspends
        self.close()

    async def __aenter__(self) -> "CollectionManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def _collection_names(self) -> list[str]:
        await self.connect()
        return sorted(await self._db.list_collection_names())

    async def list_collections(self) -> list[str]:
        try:
            return await self._collection_names()
        except PyMongoError as e:
            raise CollectionError(f"Failed to list collections: {e}") from e

    async def create_collection(self, name: str) -> str:
        try:
            if name in await self._collection_names():
                return f"Collection '{name}' already exists"
            await self._db.create_collection(name)
        except CollectionInvalid:
            return f"Collection '{name}' already exists"
        except PyMongoError as e:
            raise CollectionError(f"Failed to create collection '{name}': {e}") from e
        logger.info(f"[MongoDB] Created collection '{name}'")
        return f"Collection '{name}' created successfully"

    async def drop_collection(self, name: str) -> str:
        try:
            if name not in await self._collection_names():
                return f"Collection '{name}' does not exist"
            await self._db.drop_collection(name)
        except PyMongoError as e:
            raise CollectionError(f"Failed to drop collection '{name}': {e}") from e
        logger.info(f"[MongoDB] Dropped collection '{name}'")
        return f"Collection '{name}' dropped successfully"
