"""
Database engine and session factory.

Parcel services receive an AsyncSession per request through get_db and
never open sessions themselves.
"""

from typing import Any, Dict
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from adera_backend.app.core.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Pool sizing applies to server databases only; SQLite uses its own pool."""
    options: Dict[str, Any] = {"echo": settings.db_echo, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Objects stay readable after commit; services re-read through the joined view anyway
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Uncommitted work is rolled back when the request ends.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()
