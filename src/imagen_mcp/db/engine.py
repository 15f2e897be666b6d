"""Async SQLAlchemy engine and session creation."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from imagen_mcp.config import Settings, settings as default_settings
from imagen_mcp.db.base import Base

logger = logging.getLogger(__name__)


def create_db_engine(url: str | None = None, config: Settings | None = None) -> AsyncEngine:
    """Create an async SQLite engine, creating the database directory if needed."""
    config = config or default_settings
    if url is None:
        db_path = config.database_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = config.effective_database_url
    return create_async_engine(url, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create tables and indexes (idempotent)."""
    import imagen_mcp.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Tables ready (%s)", engine.url)

