"""
Database engine management.

Provides the async SQLAlchemy engine backing the document store.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from cardscience.config import settings
from cardscience.models.db import Base


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """
    Create the async engine for the document store.

    Args:
        database_url: SQLAlchemy URL. Defaults to settings.database_url

    Returns:
        A new AsyncEngine. The caller owns it and must dispose of it.
    """
    return create_async_engine(
        database_url or settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )


async def drop_db(engine: AsyncEngine) -> None:
    """
    Drop all database tables.

    WARNING: Destroys all data. Use only for testing.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
