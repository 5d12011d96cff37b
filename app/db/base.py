"""
Database configuration with read-write separation support.
"""

from typing import Optional, List, Dict, Any
import random
import os
import time
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy import select
import logging
import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


# Redis connection pool
_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None


def is_serverless() -> bool:
    """Detect serverless runtimes where pooled connections cannot be reused."""
    return settings.SERVERLESS or os.environ.get("AWS_LAMBDA_FUNCTION_NAME") is not None


def engine_options(url: str, pool_share: int = 1) -> Dict[str, Any]:
    """
    Build create_async_engine keyword arguments for a database URL.

    Args:
        url: Database URL
        pool_share: Number of engines sharing the configured pool size

    Returns:
        Engine keyword arguments
    """
    if url.startswith("sqlite"):
        return {
            "echo": settings.DATABASE_ECHO,
            "connect_args": {"check_same_thread": False},
        }

    if is_serverless():
        return {
            "poolclass": NullPool,
            "echo": settings.DATABASE_ECHO,
            "connect_args": {
                "server_settings": {"jit": "off"},
                "command_timeout": 10,
                "timeout": 10,
            },
        }

    return {
        "pool_size": max(1, settings.DATABASE_POOL_SIZE // pool_share),
        "max_overflow": max(0, settings.DATABASE_MAX_OVERFLOW // pool_share),
        "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
        "echo": settings.DATABASE_ECHO,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory shared by the API, workers and tests."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


class DatabaseManager:
    """
    Manages database connections with read-write separation.

    Writes (balance adjustments, ledger entries, payment transitions) always
    go to the master; replicas only serve listing endpoints.
    """

    def __init__(self):
        self.master_engine: Optional[AsyncEngine] = None
        self.slave_engines: List[AsyncEngine] = []
        self.master_session_factory: Optional[async_sessionmaker] = None
        self.slave_session_factories: List[async_sessionmaker] = []
        self._initialized = False

    async def initialize(self):
        """Initialize database connections."""
        if self._initialized:
            return

        self.master_engine = create_async_engine(
            settings.DATABASE_URL_MASTER,
            **engine_options(settings.DATABASE_URL_MASTER)
        )
        self.master_session_factory = make_session_factory(self.master_engine)

        slave_urls = settings.slave_database_urls
        for slave_url in slave_urls:
            engine = create_async_engine(slave_url, **engine_options(slave_url, len(slave_urls)))
            self.slave_engines.append(engine)
            self.slave_session_factories.append(make_session_factory(engine))

        # Without replicas, reads share the master
        if not self.slave_session_factories:
            self.slave_session_factories.append(self.master_session_factory)

        self._initialized = True
        logger.info(
            f"Database initialized with 1 master and {len(self.slave_engines)} replica(s) "
            f"in {'serverless' if is_serverless() else 'pooled'} mode"
        )

    async def create_all(self):
        """Create all tables (SQLite development databases only; use Alembic otherwise)."""
        if not self._initialized:
            await self.initialize()
        async with self.master_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created")

    async def close(self):
        """Close all database connections."""
        for name, engine in [("master", self.master_engine)] + [
            (f"replica {i}", e) for i, e in enumerate(self.slave_engines)
        ]:
            if engine is None:
                continue
            try:
                await engine.dispose()
                logger.debug(f"{name} engine disposed")
            except Exception as e:
                logger.error(f"Error disposing {name} engine: {e}")

        self.master_engine = None
        self.slave_engines = []
        self.master_session_factory = None
        self.slave_session_factories = []
        self._initialized = False
        logger.info("Database connections closed")

    @asynccontextmanager
    async def get_master_session(self):
        """
        Get a session for write operations.

        Commits on normal exit and rolls back when the block raises.
        """
        if not self._initialized:
            await self.initialize()

        session = self.master_session_factory()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Error in master session: {e}")
            raise
        finally:
            await session.close()

    @asynccontextmanager
    async def get_slave_session(self):
        """Get a session for read operations with load balancing."""
        if not self._initialized:
            await self.initialize()

        session = random.choice(self.slave_session_factories)()
        try:
            yield session
        finally:
            await session.close()

    async def health_check(self) -> dict:
        """Check the health of all database connections."""
        health_status = {
            "master": False,
            "slaves": []
        }

        try:
            async with self.get_master_session() as session:
                await session.execute(select(1))
                health_status["master"] = True
        except Exception as e:
            logger.error(f"Master database health check failed: {e}")

        for i, session_factory in enumerate(self.slave_session_factories):
            try:
                async with session_factory() as session:
                    await session.execute(select(1))
                    health_status["slaves"].append({"index": i, "status": True})
            except Exception as e:
                logger.error(f"Replica {i} database health check failed: {e}")
                health_status["slaves"].append({"index": i, "status": False})

        return health_status


# Global database manager instance
db_manager = DatabaseManager()


# Dependency injection functions for FastAPI
async def get_db_read() -> AsyncSession:
    """Dependency for read-only database operations."""
    async with db_manager.get_slave_session() as session:
        yield session


async def get_db_write() -> AsyncSession:
    """Dependency for write database operations."""
    async with db_manager.get_master_session() as session:
        yield session


# Redis Connection Management
async def initialize_redis(raise_on_error: bool = False):
    """
    Initialize Redis connection pool.

    Args:
        raise_on_error: If True, raises exception on failure.
                       If False, logs error and continues (graceful degradation)
    """
    global _redis_pool, _redis_client

    if _redis_pool is not None:
        return

    try:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.redis_dsn,
            max_connections=settings.REDIS_POOL_SIZE,
            decode_responses=settings.REDIS_DECODE_RESPONSES,
        )
        _redis_client = redis.Redis(connection_pool=_redis_pool)
        await _redis_client.ping()
        logger.info("Redis connection initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize Redis: {e}")
        _redis_client = None
        _redis_pool = None

        if raise_on_error:
            raise
        logger.warning("Redis unavailable - rate limiting will be disabled")


async def close_redis():
    """Close Redis connection pool."""
    global _redis_pool, _redis_client

    if _redis_client:
        try:
            await _redis_client.aclose()
        except Exception as e:
            logger.error(f"Error closing Redis client: {e}")
        finally:
            _redis_client = None

    if _redis_pool:
        try:
            await _redis_pool.disconnect()
        except Exception as e:
            logger.error(f"Error disconnecting Redis pool: {e}")
        finally:
            _redis_pool = None

    logger.info("Redis connection closed")


async def redis_health_check() -> dict:
    """
    Check Redis connection health.

    Returns:
        Dictionary with health status and latency
    """
    if _redis_client is None:
        return {
            "status": "unavailable",
            "message": "Redis client not initialized"
        }

    try:
        start_time = time.time()
        await _redis_client.ping()
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2)
        }
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return {
            "status": "unhealthy",
            "error": str(e)
        }


async def get_redis() -> Optional[redis.Redis]:
    """
    Get the shared Redis client, initializing it on first use.

    Returns:
        Redis client, or None when Redis is unavailable
    """
    if _redis_client is None:
        await initialize_redis()
    return _redis_client
