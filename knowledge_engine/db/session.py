import logging
from typing import Optional
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from knowledge_engine.core.config.settings import settings
from knowledge_engine.db.base import Base

from knowledge_engine.db import models  # noqa: F401

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the async engine and the session factory of the service database"""

    def __init__(self, database_url: Optional[str] = None):
        self._database_url = database_url or settings.DATABASE_URL
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            logger.info("Creating pooled database engine")
            self._engine = create_async_engine(
                self._database_url,
                echo=False,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE,
                pool_pre_ping=True,
            )
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                expire_on_commit=False,
            )
        return self._session_factory

    def session(self) -> AsyncSession:
        """New session; use as `async with manager.session() as session:`"""
        return self.session_factory()

    async def initialize(self):
        """Create missing tables when CREATE_DB is set"""
        if not settings.CREATE_DB:
            logger.info("CREATE_DB disabled, skipping schema creation")
            return

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured")

    async def close(self):
        """Close all database connections"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
        logger.info("All database connections closed")
