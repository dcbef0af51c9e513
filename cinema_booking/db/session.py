import logging
from typing import Any, AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from cinema_booking.core.config import get_settings
from cinema_booking.db.base import Base


settings = get_settings()


def engine_options(database_url: str) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        # sqlite serialises writers; wait on the file lock instead of failing fast
        return {"connect_args": {"timeout": 30}}
    return {
        "pool_size": 10,          # Base connections
        "max_overflow": 20,       # Burst capacity
        "pool_timeout": 30,       # Wait timeout
        "pool_recycle": 3600,     # Recycle every hour (prevents stale connections)
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    **engine_options(settings.DATABASE_URL)
)

async_session_factory = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async DB session
    and ensures it's closed after the request.
    """
    async with async_session_factory() as session:
        yield session


async def init_db() -> None:
    """
    Create all tables based on models. Used in development only,
    real deployments run migrations.
    """
    import cinema_booking.models  # noqa: F401  registers every table on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logging.info("created all tables")
