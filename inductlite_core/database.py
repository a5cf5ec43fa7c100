"""
Database
========
Async SQLAlchemy engine and session lifecycle for the revocation store.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.orm import DeclarativeBase
import structlog

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


# Global engine and session factory - initialized by create_async_engine()
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def create_async_engine(
    database_url: str,
    pool_pre_ping: bool = True,
    echo: bool = False,
    **engine_kwargs,
) -> AsyncEngine:
    """
    Create and configure the async database engine.

    Call this once during application startup.

    Args:
        database_url: Async connection string (postgresql+asyncpg://...,
            sqlite+aiosqlite://...)
        pool_pre_ping: Enable connection health checks (default: True)
        echo: Log SQL statements (default: False)
        **engine_kwargs: Passed through (pool_size, max_overflow, ...)

    Returns:
        Configured AsyncEngine instance
    """
    global _engine, _async_session_factory

    _engine = sa_create_async_engine(
        database_url,
        pool_pre_ping=pool_pre_ping,
        echo=echo,
        **engine_kwargs,
    )

    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("database_engine_initialized", dialect=_engine.dialect.name)
    return _engine


def get_engine() -> AsyncEngine:
    """Get the current database engine."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call create_async_engine() first.")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory for creating database sessions.

    Usage:
        async with get_session_factory()() as session:
            ...
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call create_async_engine() first.")
    return _async_session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for a session that commits on success and rolls back on error.

    Usage:
        async with get_session() as db:
            result = await db.execute(...)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create the revocation tables. Intended for tests and local development."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine() -> None:
    """Close the database engine. Call during application shutdown."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("database_engine_closed")
