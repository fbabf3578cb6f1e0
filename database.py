"""
Database connection and session management for Identity Reconciliation API
This module sets up the async SQLAlchemy engine with proper session management.
Supports local PostgreSQL and AWS RDS deployments with connection pooling,
and SQLite (aiosqlite) for tests. Every session is one transaction: it commits
when the block exits cleanly and rolls back on any exception.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from errors import StorageError
from models.base import Base
from repositories.contact_repository import SqlAlchemyContactStore

# Configure logging
logger = logging.getLogger(__name__)


def _hide_credentials(database_url: str) -> str:
    if "@" not in database_url:
        return database_url
    return f"{database_url.split('@')[0].split('://')[0]}://[HIDDEN]@{database_url.split('@', 1)[1]}"


class DatabaseManager:
    """
    Database connection manager that handles the async SQLAlchemy engine,
    session creation, and connection lifecycle management.
    The engine is created lazily on first use.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.get_active_database_url()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    def _engine_options(self) -> dict:
        options = {"echo": settings.DEBUG}
        if settings.is_sqlite(self.database_url):
            return options

        options.update(
            pool_pre_ping=True,  # Validate connections before use
            isolation_level=settings.DB_ISOLATION_LEVEL,
        )
        if settings.is_lambda_environment():
            # Single concurrent execution per Lambda container
            options.update(
                pool_size=1,
                max_overflow=0,
                pool_recycle=3600,
                pool_timeout=10,
                connect_args={
                    "command_timeout": 10,
                    "server_settings": {"application_name": "identity-reconciliation-lambda"},
                },
            )
        else:
            options.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                connect_args={
                    "server_settings": {"application_name": "identity-reconciliation"},
                },
            )
        return options

    @property
    def engine(self) -> AsyncEngine:
        """Get database engine, creating it if necessary"""
        if self._engine is None:
            logger.info(f"Initializing database connection to: {_hide_credentials(self.database_url)}")
            self._engine = create_async_engine(self.database_url, **self._engine_options())
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        """Get session factory, creating it if necessary"""
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,  # Responses are built from objects after commit
                autoflush=False  # Flushes happen explicitly in the store
            )
        return self._session_factory

    async def create_tables(self):
        """Create all database tables defined in models"""
        try:
            logger.info("Creating database tables...")
            async with self.engine.begin() as connection:
                await connection.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise StorageError("Failed to create database tables") from e

    async def drop_tables(self):
        """Drop all database tables defined in models"""
        async with self.engine.begin() as connection:
            await connection.run_sync(Base.metadata.drop_all)

    async def test_connection(self) -> bool:
        """Test database connection"""
        try:
            async with self.engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """
        Context manager for transactional database sessions
        Usage:
            async with db_manager.get_session() as session:
                # database operations, committed on exit

        SQLAlchemy failures surface as StorageError; reconciliation errors
        raised inside the block propagate unchanged after the rollback.
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except (SQLAlchemyError, OSError) as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise StorageError("Contact store operation failed") from e
        except BaseException:
            # Cancellation included: nothing in flight may stay half-applied
            await session.rollback()
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def contact_store(self) -> AsyncIterator[SqlAlchemyContactStore]:
        """Unit of work: a contact store whose writes commit or roll back together"""
        async with self.get_session() as session:
            yield SqlAlchemyContactStore(session)

    async def dispose(self):
        """Close every pooled connection"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


# Global database manager instance
db_manager = DatabaseManager()
