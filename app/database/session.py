"""
Database session management.
Provides async SQLAlchemy engine, session factory, and lifecycle functions.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, get_settings
from app.database.base import Base

# Global engine instance (initialized lazily)
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create an async engine for the configured database url.

    SQLite urls (used for local runs and tests) skip the Postgres pool sizing;
    an in-memory database is pinned to one shared connection.
    """
    if settings.database_url.startswith("sqlite"):
        if ":memory:" in settings.database_url:
            return create_async_engine(
                settings.database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=settings.database_echo,
            )
        return create_async_engine(settings.database_url, echo=settings.database_echo)

    return create_async_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=settings.database_pool_timeout,
        echo=settings.database_echo,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on Base.metadata if they don't exist."""
    # Import models so they register with Base.metadata
    import app.database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db(settings: Optional[Settings] = None) -> None:
    """
    Initialize the database engine and session factory.
    Called once at application startup.
    """
    global _engine, _async_session_factory

    settings = settings or get_settings()

    _engine = build_engine(settings)
    _async_session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    if settings.database_auto_create:
        await create_tables(_engine)


async def close_db() -> None:
    """
    Close the database engine and cleanup resources.
    Called once at application shutdown.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the async session factory.
    Used by dependencies.py and the generation session service.
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _async_session_factory
