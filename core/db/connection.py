"""PostgreSQL connection management.

This module provides the Database class which owns the SQLAlchemy async
engine and session factory. It supports async context management, scoped
sessions and transactions, schema bootstrap and health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .tables import Base

logger = structlog.get_logger(__name__)


class DatabaseError(Exception):
    """Exception raised for database connection errors."""

    pass


class Database:
    """Manages the connection pool to the relational store.

    Attributes:
        url: SQLAlchemy database URL (``postgresql+asyncpg://...``).
        echo: Whether SQL statements are logged by SQLAlchemy.
    """

    def __init__(
        self,
        url: str,
        echo: bool = False,
        pool_size: int = 10,
        engine: AsyncEngine | None = None,
    ) -> None:
        """Initialize the database handle.

        Args:
            url: SQLAlchemy database URL.
            echo: Log SQL statements.
            pool_size: Connection pool size.
            engine: Optional pre-built engine, used by tests.
        """
        self.url = url
        self.echo = echo
        self._pool_size = pool_size
        self._engine = engine
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None
        if engine is not None:
            self._sessionmaker = self._build_sessionmaker(engine)

    @staticmethod
    def _build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def connect(self) -> None:
        """Create the engine and session factory.

        Raises:
            DatabaseError: If the engine cannot be created.
        """
        if self._engine is not None:
            return

        try:
            self._engine = create_async_engine(
                self.url,
                echo=self.echo,
                pool_size=self._pool_size,
                pool_pre_ping=True,
            )
        except (SQLAlchemyError, ImportError) as e:
            raise DatabaseError(f"Failed to create database engine: {e}") from e

        self._sessionmaker = self._build_sessionmaker(self._engine)
        logger.info("database_engine_created", url=self._engine.url.render_as_string())

    async def close(self) -> None:
        """Dispose of the engine and release pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            logger.info("database_engine_disposed")

    async def __aenter__(self) -> "Database":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def engine(self) -> AsyncEngine:
        """Get the SQLAlchemy engine.

        Raises:
            DatabaseError: If not connected.
        """
        if self._engine is None:
            raise DatabaseError("Not connected to the database. Call connect() first.")
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session; the caller decides when to commit.

        Yields:
            A new AsyncSession, closed on exit.
        """
        if self._sessionmaker is None:
            raise DatabaseError("Not connected to the database. Call connect() first.")
        async with self._sessionmaker() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session wrapped in a transaction.

        Commits when the block exits normally and rolls back on error.

        Yields:
            An AsyncSession inside an open transaction.
        """
        async with self.session() as session:
            async with session.begin():
                yield session

    async def create_all(self) -> None:
        """Create the vector extension and every table that does not exist yet."""
        async with self.engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready")

    async def health_check(self) -> dict[str, Any]:
        """Check database connectivity.

        Returns:
            Dict with ``status`` and, on failure, ``message``.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except (DatabaseError, SQLAlchemyError, OSError) as e:
            return {"status": "unhealthy", "message": str(e)}
