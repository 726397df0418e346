"""
Database connection management.

Provides the async SQLAlchemy engine, session factory and table creation for
the chat state store.

Dependencies: sqlalchemy, aiosqlite, chatbox.configs
System role: Database connection lifecycle management
"""

from collections.abc import AsyncGenerator
from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chatbox.boundary.db.base import Base
from chatbox.configs import get_settings


@lru_cache
def get_async_engine(url: str | None = None) -> AsyncEngine:
    """
    Create (once per URL) the async SQLAlchemy engine.

    Args:
        url: Database URL; defaults to CHATBOX_DB_URL

    Returns:
        AsyncEngine: Configured async engine

    Usage:
        engine = get_async_engine()
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
    """
    db_config = get_settings().database
    return create_async_engine(
        url or db_config.url,
        echo=db_config.echo_sql,
        pool_pre_ping=True,
    )


def get_async_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker:
    """
    Create async session factory for database operations.

    Sessions use autoflush=False and expire_on_commit=False for explicit
    transaction control.

    Args:
        engine: Engine to bind; defaults to get_async_engine()

    Returns:
        async_sessionmaker: Async session factory

    Usage:
        SessionFactory = get_async_session_factory()
        async with SessionFactory() as session:
            session.add(obj)
            await session.commit()
    """
    return async_sessionmaker(
        bind=engine or get_async_engine(),
        autoflush=False,
        expire_on_commit=False,
    )


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an async database session with automatic cleanup.

    Yields:
        AsyncSession: Async SQLAlchemy database session
    """
    SessionFactory = get_async_session_factory()
    async with SessionFactory() as session:
        yield session


async def create_all_tables(engine: AsyncEngine | None = None) -> None:
    """
    Create all tables from registered ORM models (idempotent).

    Args:
        engine: Engine to use; defaults to get_async_engine()
    """
    # Register models with Base.metadata
    from chatbox.boundary.db.models import ChatStateModel  # noqa: F401

    async with (engine or get_async_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
