"""Database connection management with asyncpg and connection pooling.

A ``Database`` either owns a pool (application scope) or is bound to a single
acquired connection (transaction scope). Services talk to both the same way.
"""

import contextlib
import json
from collections.abc import AsyncIterator
from typing import Any

import asyncpg
from attrs import field, frozen
from beartype import beartype

from .config import get_settings
from .logging_utils import get_logger

logger = get_logger(__name__)


@frozen
class DatabaseConfig:
    """Immutable database pool configuration."""

    url: str = field()
    min_size: int = field(default=2)
    max_size: int = field(default=10)
    command_timeout: float = field(default=30.0)


class Database:
    """asyncpg wrapper exposing the query surface used by the services."""

    def __init__(
        self,
        connection: asyncpg.Connection | None = None,
        config: DatabaseConfig | None = None,
    ) -> None:
        """Create a database handle.

        Args:
            connection: Optional already-acquired connection. When given, the
                handle is bound to it and :py:meth:`connect` becomes a no-op.
            config: Pool configuration; defaults are read from settings.
        """
        self._pool: asyncpg.Pool | None = None
        self._connection = connection
        self._config = config or self._get_config()

    @beartype
    def _get_config(self) -> DatabaseConfig:
        """Get pool configuration from settings."""
        settings = get_settings()
        return DatabaseConfig(
            url=settings.database_url,
            min_size=settings.database_pool_min,
            max_size=settings.database_pool_max,
            command_timeout=settings.database_command_timeout,
        )

    @staticmethod
    async def _init_connection(conn: asyncpg.Connection) -> None:
        """Register JSON codecs so JSONB columns round-trip as dicts."""
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )

    @property
    def is_connected(self) -> bool:
        """Whether queries can be issued."""
        return self._connection is not None or self._pool is not None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self.is_connected:
            return

        self._pool = await asyncpg.create_pool(
            self._config.url,
            min_size=self._config.min_size,
            max_size=self._config.max_size,
            command_timeout=self._config.command_timeout,
            init=self._init_connection,
        )
        logger.info(
            "Database pool created (min=%s, max=%s)",
            self._config.min_size,
            self._config.max_size,
        )

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is None:
            return

        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Yield a connection: the bound one, or one borrowed from the pool."""
        if self._connection is not None:
            yield self._connection
            return
        if self._pool is None:
            raise RuntimeError("Database not connected")

        async with self._pool.acquire() as conn:
            yield conn

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator["Database"]:
        """Run a block inside a transaction on a single connection.

        Yields a ``Database`` bound to that connection; every statement issued
        through it commits or rolls back together.
        """
        async with self.acquire() as conn:
            async with conn.transaction():
                yield Database(conn, self._config)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute a query and return all rows."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Execute a query and return the first row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and return the first column of the first row."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        """Execute a statement and return its status string."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def health_check(self) -> bool:
        """Check whether the database answers a trivial query."""
        if not self.is_connected:
            return False
        try:
            return await self.fetchval("SELECT 1") == 1
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning("Database health check failed: %s", e)
            return False


_database: Database | None = None


@beartype
def get_database() -> Database:
    """Get the process-wide database handle."""
    global _database
    if _database is None:
        _database = Database()
    return _database


async def close_database() -> None:
    """Close and forget the process-wide database handle."""
    global _database
    if _database is not None:
        await _database.disconnect()
        _database = None
