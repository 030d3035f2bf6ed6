"""Storage backends for cached upstream responses.

Every backend stores opaque text values (encoded ``CacheEntry`` objects) by key
and remembers when each key was last written, which is what the sweeper uses
to age entries. Backend-specific failures are re-raised as ``CacheStoreError``
so callers only need to handle one exception type.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from startrader.cache.entry import utcnow
from startrader.core.config import Settings
from startrader.core.exceptions.errors import CacheStoreError
from startrader.db.models.cache import CacheRecord
from startrader.db.session import build_engine, build_session_factory, init_db


@dataclass(frozen=True)
class StoredObject:
    key: str
    last_modified: datetime


class CacheStore(Protocol):
    async def init(self) -> None: ...

    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list_by_prefix(self, prefix: str) -> List[StoredObject]: ...

    async def close(self) -> None: ...


class InMemoryCacheStore:
    """Per-process store, used in development and tests."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._objects: Dict[str, Tuple[str, datetime]] = {}

    async def init(self):
        pass

    async def get(self, key: str) -> Optional[str]:
        item = self._objects.get(key)
        return item[0] if item else None

    async def put(self, key: str, value: str):
        self._objects[key] = (value, self._clock())

    async def delete(self, key: str):
        self._objects.pop(key, None)

    async def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        return [
            StoredObject(key=key, last_modified=modified)
            for key, (_, modified) in list(self._objects.items())
            if key.startswith(prefix)
        ]

    async def close(self):
        self._objects.clear()


class RedisCacheStore:
    """Redis-backed store shared by every worker.

    Values live under their own keys; write times are kept as scores in a
    sorted set so listing needs neither ``KEYS`` nor a full ``SCAN``.
    """

    INDEX_KEY = "startrader:cache-index"

    def __init__(self, client: aioredis.Redis, clock: Callable[[], datetime] = utcnow):
        self._redis = client
        self._clock = clock

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def init(self):
        pass

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            raise CacheStoreError("get", key, str(exc)) from exc

    async def put(self, key: str, value: str):
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, value)
                pipe.zadd(self.INDEX_KEY, {key: self._clock().timestamp()})
                await pipe.execute()
        except RedisError as exc:
            raise CacheStoreError("put", key, str(exc)) from exc

    async def delete(self, key: str):
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.zrem(self.INDEX_KEY, key)
                await pipe.execute()
        except RedisError as exc:
            raise CacheStoreError("delete", key, str(exc)) from exc

    async def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        try:
            indexed = await self._redis.zrange(self.INDEX_KEY, 0, -1, withscores=True)
        except RedisError as exc:
            raise CacheStoreError("list", prefix, str(exc)) from exc
        return [
            StoredObject(
                key=key, last_modified=datetime.fromtimestamp(score, tz=timezone.utc)
            )
            for key, score in indexed
            if key.startswith(prefix)
        ]

    async def close(self):
        await self._redis.aclose()


class DatabaseCacheStore:
    """SQL table store (``cache_entries``) over an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine, clock: Callable[[], datetime] = utcnow):
        self._engine = engine
        self._sessions = build_session_factory(engine)
        self._clock = clock

    async def init(self):
        try:
            await init_db(self._engine)
        except SQLAlchemyError as exc:
            raise CacheStoreError("init", None, str(exc)) from exc

    async def get(self, key: str) -> Optional[str]:
        try:
            async with self._sessions() as db:
                result = await db.execute(
                    select(CacheRecord.value).where(CacheRecord.key == key)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise CacheStoreError("get", key, str(exc)) from exc

    async def put(self, key: str, value: str):
        try:
            async with self._sessions() as db:
                async with db.begin():
                    # Replace any existing row for the key
                    await db.execute(delete(CacheRecord).where(CacheRecord.key == key))
                    db.add(
                        CacheRecord(key=key, value=value, last_modified=self._clock())
                    )
        except SQLAlchemyError as exc:
            raise CacheStoreError("put", key, str(exc)) from exc

    async def delete(self, key: str):
        try:
            async with self._sessions() as db:
                async with db.begin():
                    await db.execute(delete(CacheRecord).where(CacheRecord.key == key))
        except SQLAlchemyError as exc:
            raise CacheStoreError("delete", key, str(exc)) from exc

    async def list_by_prefix(self, prefix: str) -> List[StoredObject]:
        try:
            async with self._sessions() as db:
                result = await db.execute(
                    select(CacheRecord.key, CacheRecord.last_modified).where(
                        CacheRecord.key.startswith(prefix, autoescape=True)
                    )
                )
                rows = result.all()
        except SQLAlchemyError as exc:
            raise CacheStoreError("list", prefix, str(exc)) from exc
        # sqlite hands back naive datetimes; everything is written in UTC
        return [
            StoredObject(
                key=key,
                last_modified=(
                    modified if modified.tzinfo else modified.replace(tzinfo=timezone.utc)
                ),
            )
            for key, modified in rows
        ]

    async def close(self):
        await self._engine.dispose()


def build_cache_store(settings: Settings) -> CacheStore:
    cache_type = settings.CACHE_TYPE.lower()
    if cache_type == "inmemory":
        return InMemoryCacheStore()
    if cache_type == "redis":
        if not settings.REDIS_URL:
            raise ValueError("REDIS_URL must be set when CACHE_TYPE=redis.")
        return RedisCacheStore.from_url(settings.REDIS_URL)
    if cache_type == "database":
        return DatabaseCacheStore(build_engine(settings.DATABASE_URL))
    raise ValueError(
        f"Unsupported CACHE_TYPE '{settings.CACHE_TYPE}' (expected inmemory, redis or database)."
    )
