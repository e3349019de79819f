"""
Database engine and session management.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) in tests. Sessions
never expire loaded objects on commit: services commit a status change and
then keep serializing the same row for events and responses.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from edrive.app.core.config import settings

engine_kwargs = {}
if not settings.database_url.startswith("sqlite"):
    engine_kwargs = {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        # Replace connections the server dropped instead of failing the next accept
        "pool_pre_ping": True,
    }

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    **engine_kwargs,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """FastAPI dependency: one session per request, closed afterwards."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
