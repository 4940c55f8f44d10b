"""Async database access built on SQLAlchemy Core."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.sql.expression import Executable

from storefront.core.config import get_settings
from storefront.models.tables import metadata

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and hands out transactional connections.

    Every multi-statement unit of work runs inside ``transaction()``; the
    block commits when it exits normally and rolls back on any exception,
    including task cancellation.
    """

    def __init__(self, url: str, echo: bool = False, pool_size: int | None = None) -> None:
        """Create the engine.

        Args:
            url: SQLAlchemy async URL (postgresql+asyncpg or sqlite+aiosqlite).
            echo: Log every statement.
            pool_size: Pool size for server databases; ignored for SQLite.
        """
        engine_kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        if pool_size and make_url(url).get_backend_name() != "sqlite":
            engine_kwargs["pool_size"] = pool_size
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)

    @classmethod
    def from_settings(cls) -> "Database":
        """Create a database from application settings."""
        settings = get_settings()
        return cls(
            settings.database_url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Run a unit of work in one transaction.

        Yields:
            AsyncConnection: Connection bound to the open transaction.
        """
        async with self.engine.begin() as conn:
            yield conn

    async def fetch_one(self, statement: Executable) -> dict[str, Any] | None:
        """Execute a read and return the first row as a dict."""
        async with self.engine.connect() as conn:
            result = await conn.execute(statement)
            row = result.mappings().first()
            return dict(row) if row else None

    async def fetch_all(self, statement: Executable) -> list[dict[str, Any]]:
        """Execute a read and return every row as a dict."""
        async with self.engine.connect() as conn:
            result = await conn.execute(statement)
            return [dict(row) for row in result.mappings().all()]

    async def create_all(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Database schema ensured")

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()

    async def check_connection(self) -> dict[str, Any]:
        """Check if database connection is healthy.

        Returns:
            dict: Connection status with 'healthy' boolean and optional 'error' message.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"healthy": True}
        except Exception as e:
            return {"healthy": False, "error": str(e)}
