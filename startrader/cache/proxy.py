import json
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Optional

import httpx

from startrader.cache.entry import CacheEntry, build_cache_key, utcnow
from startrader.cache.stores import CacheStore
from startrader.cache.sweeper import CacheSweeper
from startrader.core.exceptions.errors import CacheStoreError, UpstreamFetchError
from startrader.utils.logging import get_logger

logger = get_logger()


class CachedFetcher:
    """GETs upstream JSON (or text) and caches it for a fixed TTL.

    The cache is advisory: store failures are logged and the request falls
    through to the upstream API. Concurrent misses for the same key are not
    coalesced, so both may reach upstream and the last write wins.
    """

    def __init__(
        self,
        store: CacheStore,
        http_client: httpx.AsyncClient,
        ttl: timedelta,
        prefix: str = "cache/",
        sweeper: Optional[CacheSweeper] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.http_client = http_client
        self.ttl = ttl
        self.prefix = prefix
        self.sweeper = sweeper
        self._clock = clock

    async def fetch(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        raw: bool = False,
    ) -> Any:
        endpoint = endpoint.strip()
        params = dict(params or {})
        key = build_cache_key(endpoint, params, prefix=self.prefix)

        entry = await self._lookup(key)
        if entry is not None:
            logger.debug(f"Cache hit: {key}")
            return entry.data

        logger.debug(f"Cache miss: {key}")
        data = await self._get_upstream(endpoint, params, raw=raw)
        await self._store(key, CacheEntry.create(data, self._clock(), self.ttl))
        return data

    async def _lookup(self, key: str) -> Optional[CacheEntry]:
        try:
            stored = await self.store.get(key)
        except CacheStoreError as exc:
            logger.warning(f"Cache read skipped: {exc}")
            return None
        if stored is None:
            return None

        try:
            entry = CacheEntry.decode(stored)
        except ValueError as exc:
            logger.warning(f"Ignoring unreadable cache entry {key}: {exc}")
            return None

        if entry.is_fresh(self._clock()):
            return entry

        logger.debug(f"Cache entry expired at {entry.expiry.isoformat()}: {key}")
        try:
            await self.store.delete(key)
        except CacheStoreError as exc:
            logger.warning(f"Could not evict expired entry: {exc}")
        return None

    async def _get_upstream(self, endpoint: str, params: dict, raw: bool) -> Any:
        logger.info(f"Fetching URL: {endpoint} params={params}")
        try:
            response = await self.http_client.get(endpoint, params=params)
        except httpx.HTTPError as exc:
            logger.error(f"Upstream request to {endpoint} failed: {exc!r}")
            raise UpstreamFetchError(str(exc) or type(exc).__name__, url=endpoint) from exc

        if not response.is_success:
            logger.error(
                f"Upstream {endpoint} answered {response.status_code} {response.reason_phrase}"
            )
            raise UpstreamFetchError(
                response.reason_phrase,
                url=endpoint,
                upstream_status=response.status_code,
            )

        if raw:
            return response.text
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise UpstreamFetchError(
                f"invalid JSON body ({exc})",
                url=endpoint,
                upstream_status=response.status_code,
            ) from exc

    async def _store(self, key: str, entry: CacheEntry):
        try:
            await self.store.put(key, entry.encode())
        except CacheStoreError as exc:
            logger.warning(f"Cache write skipped: {exc}")
            return

        if self.sweeper is None:
            return
        try:
            await self.sweeper.sweep()
        except CacheStoreError as exc:
            logger.warning(f"Opportunistic sweep failed: {exc}")
