# academic_ops/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine import make_url
from sqlalchemy import text
import logging

from .config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **overrides) -> AsyncEngine:
    """Create the async engine for ``database_url``.

    PostgreSQL connections get a pooled configuration and server-side
    statement/lock timeouts so that every atomic unit is time bounded; a
    timed-out statement aborts its transaction and nothing is committed.
    SQLite (used by the test-suite) gets the driver defaults.
    """
    url = make_url(database_url)
    options = {
        "echo": settings.environment == 'development' and not url.drivername.startswith("sqlite"),
    }

    if url.get_backend_name() == "postgresql":
        timeout = f"{settings.statement_timeout_seconds}s"
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
            connect_args={
                "command_timeout": settings.statement_timeout_seconds,
                "server_settings": {
                    "application_name": settings.app_name,
                    "statement_timeout": timeout,
                    "lock_timeout": timeout,
                    "idle_in_transaction_session_timeout": "60s",
                },
            },
        )

    options.update(overrides)
    return create_async_engine(database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=False,  # Manual control over flushing
    )


engine = build_engine(settings.database_url)

AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise


async def health_check_db() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
