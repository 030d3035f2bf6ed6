from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from startrader.core.config import settings
from startrader.db.base import Base


def build_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def init_db(engine: AsyncEngine):
    # Import registers the table on Base.metadata
    from startrader.db.models.cache import CacheRecord  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
