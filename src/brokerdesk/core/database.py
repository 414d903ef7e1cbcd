# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Database connection management with asyncpg and connection pooling."""

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator
from typing import Any

import asyncpg
from attrs import field, frozen
from beartype import beartype

from .config import get_settings
from .logging_utils import get_logger
from .result_types import Err, Ok

logger = get_logger(__name__)


@frozen
class PoolConfig:
    """Immutable pool configuration."""

    min_connections: int = field()
    max_connections: int = field()
    connection_timeout: float = field(default=10.0)
    command_timeout: float = field(default=30.0)


@frozen
class RecoveryConfig:
    """Connection recovery configuration."""

    max_retry_attempts: int = field(default=3)
    retry_delay_seconds: float = field(default=0.5)


class Database:
    """Connection pool manager exposing the query helpers services rely on."""

    def __init__(self, url: str | None = None) -> None:
        """Initialize database manager."""
        settings = get_settings()
        self._url = url or settings.database_url
        self._pool: asyncpg.Pool | None = None
        self._pool_config = PoolConfig(
            min_connections=settings.database_pool_min,
            max_connections=settings.database_pool_max,
            connection_timeout=settings.database_pool_timeout,
            command_timeout=settings.database_command_timeout,
        )
        self._recovery_config = RecoveryConfig()

    @beartype
    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        """Decode json/jsonb columns into Python values."""
        for type_name in ("json", "jsonb"):
            await conn.set_type_codec(
                type_name,
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )

    @beartype
    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            self._url,
            min_size=self._pool_config.min_connections,
            max_size=self._pool_config.max_connections,
            command_timeout=self._pool_config.command_timeout,
            init=self._init_connection,
        )
        logger.info(
            "Database pool ready (min=%s, max=%s)",
            self._pool_config.min_connections,
            self._pool_config.max_connections,
        )

    @beartype
    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
        self._pool = None

    @contextlib.asynccontextmanager
    async def acquire(
        self, *, timeout: float | None = None
    ) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection."""
        if self._pool is None:
            raise RuntimeError("Database not connected")

        timeout = timeout or self._pool_config.connection_timeout
        async with self._pool.acquire(timeout=timeout) as conn:
            yield conn

    @beartype
    async def execute_with_retry(
        self,
        query: str,
        *args: Any,
        max_attempts: int | None = None,
    ) -> Ok[str] | Err[str]:
        """Execute query with automatic retry on connection errors."""
        attempts = max_attempts or self._recovery_config.max_retry_attempts
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                async with self.acquire() as conn:
                    result = await conn.execute(query, *args)
                    return Ok(result)
            except (asyncpg.PostgresConnectionError, OSError) as e:
                last_error = e
                if attempt < attempts - 1:
                    delay = self._recovery_config.retry_delay_seconds * (2**attempt)
                    logger.warning(
                        "Database connection error (attempt %s/%s), retrying in %.1fs",
                        attempt + 1,
                        attempts,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    continue
            except Exception as e:
                return Err(f"Query execution failed: {str(e)}")

        return Err(f"Connection failed after {attempts} attempts: {str(last_error)}")

    @beartype
    async def execute(self, query: str, *args: Any) -> str:
        """Execute a query without returning results."""
        result = await self.execute_with_retry(query, *args)
        if result.is_err():
            raise RuntimeError(result.err_value)
        return result.ok_value

    @beartype
    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute a query and fetch all results."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @beartype
    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Execute a query and fetch a single row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @beartype
    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and fetch a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Create a database transaction context."""
        async with self.acquire() as conn:
            async with conn.transaction():
                yield conn

    @beartype
    async def health_check(self) -> Ok[bool] | Err[str]:
        """Run a trivial query against the pool."""
        try:
            async with self.acquire(timeout=5.0) as conn:
                value = await conn.fetchval("SELECT 1")
            return Ok(value == 1)
        except Exception as e:
            return Err(f"Health check failed: {str(e)}")

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._pool is not None


_database: Database | None = None


@beartype
def get_database() -> Database:
    """Get global database instance."""
    global _database
    if _database is None:
        _database = Database()
    return _database
