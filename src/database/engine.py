"""
Database engine configuration for Affiliate Leads Portal

Async SQLAlchemy 2.0 setup with connection pooling
"""

import logging
from typing import AsyncGenerator, List

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from config.config import DATABASE_URL, DB_TIMEOUT_SECONDS, ENVIRONMENT
from src.database.models import Base

logger = logging.getLogger(__name__)


# Global engine and session maker
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict:
    """Pool and driver options per backend"""
    if url.startswith("sqlite"):
        return {
            "echo": False,
            "connect_args": {"timeout": DB_TIMEOUT_SECONDS},
        }

    is_production = ENVIRONMENT == "production"
    return {
        "poolclass": AsyncAdaptedQueuePool,
        "pool_size": 10 if is_production else 5,
        "max_overflow": 20 if is_production else 10,
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,  # Recycle connections every hour
        "pool_timeout": DB_TIMEOUT_SECONDS,
        # Logging (disabled - using loguru)
        "echo": False,
        "echo_pool": False,
        "connect_args": {
            "timeout": DB_TIMEOUT_SECONDS,  # asyncpg connect timeout
            "command_timeout": DB_TIMEOUT_SECONDS,  # per-statement timeout
            "statement_cache_size": 0,  # Required behind pgbouncer/Supabase pooler
            "server_settings": {
                "application_name": "leads_portal",
                "jit": "off",
            },
        },
    }


def get_engine() -> AsyncEngine:
    """
    Create and configure async database engine

    Returns:
        Configured AsyncEngine instance
    """
    global engine

    if engine is None:
        engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

        logger.info(
            f"Database engine created - Environment: {ENVIRONMENT}, "
            f"Driver: {engine.dialect.name}, Timeout: {DB_TIMEOUT_SECONDS}s"
        )

    return engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Create async session maker

    Returns:
        Configured async_sessionmaker instance
    """
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        eng = get_engine()
        AsyncSessionLocal = async_sessionmaker(
            eng,
            class_=AsyncSession,
            expire_on_commit=False,  # Important for async!
            autoflush=False,
            autocommit=False,
        )

        logger.info("Session maker created")

    return AsyncSessionLocal


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database session

    Usage in handlers:
        async def handler(session: AsyncSession = Depends(get_session)):
            ...

    Yields:
        AsyncSession instance
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Session error: {e}", exc_info=True)
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Initialize database - create all tables

    WARNING: This creates tables if they don't exist.
    For production, use Alembic migrations instead.
    """
    eng = get_engine()

    logger.info("Creating database tables...")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created successfully")


async def dispose_engine() -> None:
    """
    Dispose database engine and close all connections

    Call this on application shutdown
    """
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")
        engine = None
        AsyncSessionLocal = None


async def check_connection() -> bool:
    """
    Check database connection

    Returns:
        True if connection successful, False otherwise
    """
    try:
        eng = get_engine()
        async with eng.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection check: OK")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}", exc_info=True)
        return False


async def get_missing_tables(eng: AsyncEngine | None = None) -> List[str]:
    """
    List application tables that do not exist yet

    Used by the database status endpoint and scripts/check_database.py
    to tell an uninitialised store apart from a broken one.
    """
    eng = eng or get_engine()
    async with eng.connect() as conn:
        existing = await conn.run_sync(
            lambda sync_conn: set(inspect(sync_conn).get_table_names())
        )
    return [name for name in Base.metadata.tables if name not in existing]
