"""
Database connection utilities for the retrieval engine
Provides connection management, session handling, and schema bootstrap
"""

import os
import logging
from typing import Optional, AsyncGenerator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


class DatabaseConfig:
    """Database configuration management"""

    def __init__(self, database_url: Optional[str] = None):
        url = database_url or os.getenv('DATABASE_URL')
        parsed = make_url(url) if url else None

        self.host = (parsed.host if parsed else None) or os.getenv('DB_HOST', 'localhost')
        self.port = (parsed.port if parsed else None) or int(os.getenv('DB_PORT', '5432'))
        self.database = (parsed.database if parsed else None) or os.getenv('DB_NAME', 'rag_ai_agent')
        self.username = (parsed.username if parsed else None) or os.getenv('DB_USER', 'postgres')
        self.password = (parsed.password if parsed else None) or os.getenv('DB_PASSWORD', '')
        self.pool_size = int(os.getenv('DB_POOL_SIZE', '10'))
        self.max_overflow = int(os.getenv('DB_MAX_OVERFLOW', '20'))
        self.pool_timeout = int(os.getenv('DB_POOL_TIMEOUT', '30'))
        self.pool_recycle = int(os.getenv('DB_POOL_RECYCLE', '3600'))
        self.echo = os.getenv('DB_ECHO', 'false').lower() == 'true'

    @property
    def async_url(self) -> URL:
        """Asynchronous database URL; credentials are escaped when rendered"""
        return URL.create(
            "postgresql+asyncpg",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class DatabaseManager:
    """
    Engine and session management.

    One manager owns one connection pool. Pass it (or its session factory)
    to the services that need it instead of sharing a module-level instance.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self._async_engine = None
        self._async_session_factory = None

    def get_async_engine(self):
        """Get asynchronous database engine"""
        if self._async_engine is None:
            self._async_engine = create_async_engine(
                self.config.async_url,
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
                pool_recycle=self.config.pool_recycle,
                echo=self.config.echo,
                pool_pre_ping=True  # detect stale connections
            )
        return self._async_engine

    def get_async_session_factory(self) -> async_sessionmaker:
        """Get asynchronous session factory"""
        if self._async_session_factory is None:
            self._async_session_factory = async_sessionmaker(
                bind=self.get_async_engine(),
                class_=AsyncSession,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False
            )
        return self._async_session_factory

    @asynccontextmanager
    async def get_async_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session with automatic cleanup"""
        session_factory = self.get_async_session_factory()
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Database session error: {e}")
                raise

    async def test_connection(self) -> bool:
        """Test database connectivity"""
        try:
            async with self.get_async_session() as session:
                result = await session.execute(text("SELECT 1"))
                return result.scalar() == 1
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    async def check_pgvector_extension(self) -> bool:
        """Check if pgvector extension is installed"""
        try:
            async with self.get_async_session() as session:
                result = await session.execute(
                    text("SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = 'vector')")
                )
                return bool(result.scalar())
        except Exception as e:
            logger.error(f"pgvector extension check failed: {e}")
            return False

    async def init_schema(self) -> None:
        """Create the vector extension, the documents table and its indexes"""
        # Register the model on Base.metadata
        from database import models  # noqa: F401

        engine = self.get_async_engine()
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Retrieval schema ready (pgvector extension, rag_documents)")

    async def close(self):
        """Close database connections"""
        if self._async_engine:
            await self._async_engine.dispose()
            self._async_engine = None
            self._async_session_factory = None


async def init_database(manager: DatabaseManager) -> bool:
    """Initialize the store on startup.
    Creates the schema and verifies connectivity.
    Returns True on success, False on failure.
    """
    try:
        await manager.init_schema()

        ok = await manager.test_connection()
        if not ok:
            logger.error("Database connectivity test failed after initialization")
            return False

        logger.info("Database initialized (schema ensured, connectivity verified)")
        return True
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        return False
