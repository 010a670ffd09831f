"""MongoConnectionManager — Motor client ownership and database resolution."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import ConfigurationError, PyMongoError
from pymongo.uri_parser import parse_uri

from .exceptions import DocumentStoreError, StoreConnectionError

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger("etag_concurrency.connection")


class MongoConnectionManager:
    """Owns the Motor client the Mongo document store talks through.

    The database used by stores is, in order: the name a store asks for,
    the ``database`` given here, or the default database in the URL path
    (``mongodb://host:27017/fleet``).

    A ready-made client can be handed in with ``client=`` (an application's
    shared client, or ``mongomock_motor.AsyncMongoMockClient`` in tests);
    ``connect()`` then just returns it.

    Usage:
        ```python
        connection = MongoConnectionManager("mongodb://localhost:27017/fleet")
        await connection.connect()
        store = MongoDocumentStore(connection, [address_config])
        ...
        connection.close()
        ```
    """

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        *,
        database: str | None = None,
        client: AsyncIOMotorClient[Any] | None = None,
        server_selection_timeout_ms: int = 5000,
        **client_options: Any,
    ) -> None:
        self._url = url
        self._database = database
        self._database_resolved = database is not None
        self._client = client
        self._client_options = {
            "serverSelectionTimeoutMS": server_selection_timeout_ms,
            **client_options,
        }

    @property
    def database(self) -> str | None:
        """Configured database name, falling back to the one in the URL."""
        if not self._database_resolved:
            try:
                self._database = parse_uri(self._url)["database"]
            except (ConfigurationError, ValueError) as exc:
                raise StoreConnectionError(f"Invalid MongoDB URL: {exc}") from exc
            self._database_resolved = True
        return self._database

    async def connect(self) -> AsyncIOMotorClient[Any]:
        if self._client is None:
            try:
                self._client = AsyncIOMotorClient(self._url, **self._client_options)
            except (ConfigurationError, ValueError, TypeError) as exc:
                raise StoreConnectionError(str(exc)) from exc
            logger.debug("Created Motor client")
        return self._client

    @property
    def client(self) -> AsyncIOMotorClient[Any]:
        if self._client is None:
            raise StoreConnectionError("Not connected; call connect() first")
        return self._client

    def get_database(self, name: str | None = None) -> AsyncIOMotorDatabase[Any]:
        resolved = name or self.database
        if not resolved:
            raise DocumentStoreError(
                "Database name must be set on the store, the connection or the URL"
            )
        return self.client.get_database(resolved)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    async def health_check(self) -> bool:
        """``ping`` the server; False when not connected or unreachable."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError:
            logger.warning("MongoDB health check failed", exc_info=True)
            return False
        return True
