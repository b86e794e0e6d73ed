# hireflow/db/pool.py
"""
Async Postgres pool for the relational campaign store and the analytics tables.

Built once in the application lifespan when DATABASE_URL is set; every query
goes through hireflow.db.helpers, which borrow connections from here.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from hireflow.config import Settings
from hireflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

POOL_BUSY_PERCENT = 90


class DatabasePoolManager:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.pool: AsyncConnectionPool | None = None
        self._initialized = False
        self._closed = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized and not self._closed

    async def initialize(self) -> None:
        """Open the pool and prove one round trip before serving requests."""
        if self._initialized:
            return
        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")
        if not self.settings.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not configured")

        config = self.settings.get_db_pool_config()
        try:
            self.pool = AsyncConnectionPool(
                conninfo=self.settings.DATABASE_URL,
                open=False,
                check=AsyncConnectionPool.check_connection,
                configure=self._configure_connection,
                **config,
            )
            await self.pool.open()
            await self.pool.wait()
            self._initialized = True
            await self._select_one()
        except Exception as e:
            logger.error("Failed to initialize database pool", error=str(e))
            self._initialized = False
            if self.pool is not None:
                await self.pool.close()
                self.pool = None
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

        logger.info("Database pool ready", min_size=config["min_size"], max_size=config["max_size"])

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        conn.row_factory = dict_row
        # helpers open explicit transactions; everything else autocommits
        await conn.set_autocommit(True)
        await conn.execute(
            sql.SQL("SET application_name = {}").format(sql.Literal(f"hireflow-{self.settings.environment}"))
        )
        await conn.execute("SET timezone = 'UTC'")
        await conn.execute("SET statement_timeout = '30s'")

    async def _select_one(self) -> None:
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1 AS ok")
                row = await cur.fetchone()
        if not row or row.get("ok") != 1:
            raise RuntimeError(f"Unexpected SELECT 1 result: {row!r}")

    async def close(self) -> None:
        if not self.is_initialized:
            return
        self._initialized = False
        self._closed = True
        try:
            await asyncio.wait_for(self.pool.close(), timeout=30.0)
            logger.info("Database pool closed")
        except TimeoutError:
            logger.warning("Database pool close timed out")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        if not self.is_initialized:
            raise RuntimeError("Database pool is not available")
        async with self.pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        async with self.connection() as conn:
            async with conn.transaction():
                yield conn

    async def health_check(self) -> dict[str, Any]:
        """
        Readiness report used by /readyz.

        Unhealthy when the pool is down, SELECT 1 fails, or nearly every
        connection is checked out.
        """
        if not self.is_initialized:
            return {"healthy": False, "error": "Pool not initialized"}

        try:
            await self._select_one()
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"healthy": False, "error": f"Connection test failed: {e}"}

        stats = self.pool.get_stats()
        size = stats.get("pool_size", 0)
        busy = round((size - stats.get("pool_available", 0)) / size * 100, 2) if size else 0
        return {
            "healthy": busy < POOL_BUSY_PERCENT,
            "pool_stats": {
                "pool_size": size,
                "pool_available": stats.get("pool_available", 0),
                "pool_utilization_percent": busy,
                "requests_waiting": stats.get("requests_waiting", 0),
            },
        }
