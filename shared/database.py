"""
Database layer for GitStatViewer.

This module provides:
- Async engine and session management
- The commit repository (membership check, idempotent insert, listing)
- Transaction handling and database health monitoring
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any, AsyncGenerator
from datetime import datetime, timezone
from functools import wraps

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.sql import select, func

from config.settings import get_database_url, settings
from shared.models import (
    Base,
    CommitModel,
    CommitCreate,
    CommitRecord,
    ModelConverter,
)

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Database connection and session management."""

    def __init__(self, url: Optional[str] = None):
        self.url = url
        self.async_engine = None
        self.AsyncSessionLocal = None
        self._initialized = False

    def _engine_options(self, url: str) -> Dict[str, Any]:
        if url.startswith("sqlite"):
            if ":memory:" in url:
                # One shared connection, otherwise every session sees an empty database
                return {
                    "poolclass": StaticPool,
                    "connect_args": {"check_same_thread": False},
                }
            return {}
        return {
            "pool_size": settings.database.pool_size,
            "max_overflow": settings.database.max_overflow,
            "pool_timeout": settings.database.pool_timeout,
            "pool_recycle": settings.database.pool_recycle,
        }

    def initialize(self):
        """Initialize database connections."""
        if self._initialized:
            return

        url = self.url or get_database_url()
        self.async_engine = create_async_engine(
            url, echo=settings.database.echo, **self._engine_options(url)
        )
        self.AsyncSessionLocal = async_sessionmaker(
            self.async_engine, class_=AsyncSession, expire_on_commit=False
        )

        self._initialized = True
        logger.info("Database manager initialized successfully")

    async def create_tables(self):
        """Create all database tables."""
        if not self._initialized:
            self.initialize()

        async with self.async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an asynchronous database session."""
        if not self._initialized:
            self.initialize()

        async with self.AsyncSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> Dict[str, Any]:
        """Perform database health check."""
        try:
            async with self.get_async_session() as session:
                result = await session.execute(text("SELECT 1"))
                result.fetchone()

            return {
                "status": "healthy",
                "driver": self.async_engine.url.drivername,
                "timestamp": datetime.now(timezone.utc),
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e), "timestamp": datetime.now(timezone.utc)}

    async def close(self):
        """Close database connections."""
        if self.async_engine:
            await self.async_engine.dispose()
        self._initialized = False
        logger.info("Database connections closed")


def database_transaction(func):
    """Run a repository method inside one session of the repository's manager."""

    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        async with self.db.get_async_session() as session:
            try:
                return await func(self, *args, session=session, **kwargs)
            except SQLAlchemyError as e:
                logger.error(f"Database transaction failed in {func.__name__}: {e}")
                raise

    return wrapper


class CommitRepository:
    """Keyed store of commit records.

    ``sha`` is the key. Inserting a known ``sha`` is a no-op, never an error,
    and stored records are never updated or deleted.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    @database_transaction
    async def exists(self, sha: str, session: AsyncSession) -> bool:
        """Check store membership by sha."""
        result = await session.execute(select(CommitModel.id).where(CommitModel.sha == sha))
        return result.scalar_one_or_none() is not None

    @database_transaction
    async def insert(self, commit: CommitCreate, session: AsyncSession) -> bool:
        """Insert a commit; returns False when the sha was already stored."""
        existing = await session.execute(
            select(CommitModel.id).where(CommitModel.sha == commit.sha)
        )
        if existing.scalar_one_or_none() is not None:
            logger.debug(f"Commit {commit.sha} already stored")
            return False

        session.add(ModelConverter.commit_to_model(commit))
        try:
            await session.flush()
        except IntegrityError:
            # Lost a race against a concurrent insert of the same sha
            await session.rollback()
            logger.debug(f"Commit {commit.sha} inserted concurrently")
            return False
        return True

    @database_transaction
    async def get_by_sha(self, sha: str, session: AsyncSession) -> Optional[CommitRecord]:
        """Get commit by sha."""
        result = await session.execute(select(CommitModel).where(CommitModel.sha == sha))
        model = result.scalar_one_or_none()
        return ModelConverter.model_to_commit(model) if model else None

    @database_transaction
    async def list_by_repository(
        self, repository: str, session: AsyncSession
    ) -> List[CommitRecord]:
        """All commits of a repository in insertion order."""
        result = await session.execute(
            select(CommitModel)
            .where(CommitModel.repository == repository)
            .order_by(CommitModel.id)
        )
        return [ModelConverter.model_to_commit(model) for model in result.scalars().all()]

    @database_transaction
    async def count_by_repository(self, repository: str, session: AsyncSession) -> int:
        """Number of stored commits of a repository."""
        result = await session.execute(
            select(func.count(CommitModel.id)).where(CommitModel.repository == repository)
        )
        return result.scalar() or 0


# Global database manager instance
db_manager = DatabaseManager()


async def init_database(manager: DatabaseManager = db_manager):
    """Initialize database tables and connections."""
    manager.initialize()
    await manager.create_tables()
    logger.info("Database initialized successfully")


async def close_database(manager: DatabaseManager = db_manager):
    """Close database connections."""
    await manager.close()


async def get_database_health(manager: DatabaseManager = db_manager) -> Dict[str, Any]:
    """Get database health status."""
    return await manager.health_check()


__all__ = [
    "DatabaseManager",
    "CommitRepository",
    "database_transaction",
    "init_database",
    "close_database",
    "get_database_health",
    "db_manager",
]
