"""
Database engine and session management for the consent log.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and
tests. The schema is managed by Alembic; create_tables() exists for debug
runs only.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from consent_engine.config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url

# Pool sizing per environment; SQLite engines manage their own pool
POOL_OPTIONS: dict[str, dict[str, Any]] = {
    "production": {"pool_size": 20, "max_overflow": 50, "pool_timeout": 60, "pool_recycle": 1800},
    "development": {"pool_size": 10, "max_overflow": 20, "pool_timeout": 30},
}


def engine_options(url: str, environment: str, debug: bool = False) -> dict[str, Any]:
    """Keyword arguments for create_async_engine for the given URL and environment."""
    options: dict[str, Any] = {"echo": debug}
    if url.startswith("sqlite"):
        return options
    options.update(POOL_OPTIONS.get(environment, POOL_OPTIONS["development"]))
    options["pool_pre_ping"] = True
    return options


engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL, settings.environment, settings.debug))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as db:
        try:
            yield db
        except Exception:
            logger.exception("Database session error")
            await db.rollback()
            raise


async def create_tables() -> None:
    # Imported for its side effect of registering the table on Base.metadata
    from consent_engine.models import consent_log  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created (if not existing)")


async def dispose_engine() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
