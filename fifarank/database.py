"""Async database connection using SQLAlchemy (supports SQLite and PostgreSQL)."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from fifarank.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def get_database_url(url: str) -> str:
    """Convert database URL to async format."""
    # SQLite
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    # PostgreSQL
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def is_memory_sqlite(async_url: str) -> bool:
    return ":memory:" in async_url or async_url.rstrip("/") == "sqlite+aiosqlite:"


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with dialect-specific pool settings."""
    async_url = get_database_url(url)
    engine_kwargs = {"echo": echo}

    if async_url.startswith("sqlite"):
        # SQLite-specific settings
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        # A shared connection only for in-memory databases: with a file each
        # session needs its own, or one session's return to the pool rolls
        # back another's open transaction
        if is_memory_sqlite(async_url):
            engine_kwargs["poolclass"] = StaticPool
    else:
        # PostgreSQL-specific settings
        engine_kwargs["pool_pre_ping"] = True
        engine_kwargs["pool_size"] = 10
        engine_kwargs["max_overflow"] = 20
        engine_kwargs["pool_recycle"] = 300
        engine_kwargs["pool_timeout"] = 30
        engine_kwargs["pool_reset_on_return"] = "rollback"

    return create_async_engine(async_url, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


DATABASE_URL = get_database_url(settings.DATABASE_URL)
is_sqlite = DATABASE_URL.startswith("sqlite")

async_engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

AsyncSessionLocal = build_session_factory(async_engine)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_all(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def init_db() -> None:
    """Initialize database tables."""
    # Register table metadata before create_all
    import fifarank.models  # noqa: F401

    logger.info("Initializing database tables...")
    await create_all(async_engine)
    logger.info("Database tables created successfully.")


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections...")
    await async_engine.dispose()
    logger.info("Database connections closed.")


def get_pool_status() -> dict:
    """Get current connection pool statistics for monitoring."""
    if is_sqlite:
        return {"type": "sqlite", "pooled": False}

    pool = async_engine.pool
    checked_out = pool.checkedout()
    total_capacity = pool.size() + pool.overflow()
    return {
        "type": "postgresql",
        "pool_size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": checked_out,
        "overflow": pool.overflow(),
        "utilization_pct": round(
            (checked_out / total_capacity) * 100, 1
        ) if total_capacity > 0 else 0,
    }
