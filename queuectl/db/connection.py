"""
Database connection management.
Handles async SQLAlchemy engine and session creation.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from queuectl.config import Settings
from queuectl.db.models import Base
from queuectl.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class Database:
    """
    Owns one async engine and its session factory.

    Constructed explicitly and passed down to the store, so several isolated
    instances can live in one process (tests, multiple queues).
    """

    def __init__(self, url: str, echo: bool = False):
        """
        Initialize the engine and session factory.

        Args:
            url: SQLAlchemy async database URL.
            echo: Log every SQL statement.
        """
        self.url = url
        self.engine: AsyncEngine = _create_engine(url, echo=echo)
        self._session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, echo=settings.database_echo)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def create_schema(self) -> None:
        """Create the jobs and config tables if they do not exist."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Could not create schema: {e}") from e
        logger.info("Database schema ready", extra={"dialect": self.dialect})

    async def ping(self) -> bool:
        """Check database connectivity."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self.engine.dispose()
        logger.info("Database connection closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """
        Context manager for one transactional unit of work.

        Commits on success and rolls back on error. Driver and connection
        errors surface as StoreUnavailable; integrity errors propagate as-is
        so callers can map them to request errors.

        Yields:
            AsyncSession: An async database session.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreUnavailable(str(e)) from e
            except Exception:
                await session.rollback()
                raise


def _create_engine(url: str, echo: bool) -> AsyncEngine:
    if url.startswith("sqlite"):
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": 30},
        )
        event.listen(engine.sync_engine, "connect", _configure_sqlite)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
    )


def _configure_sqlite(dbapi_connection, connection_record) -> None:
    # WAL lets readers proceed while a dispatcher holds the write lock
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()
