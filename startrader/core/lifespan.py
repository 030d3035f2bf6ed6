from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from startrader.cache.proxy import CachedFetcher
from startrader.cache.stores import build_cache_store
from startrader.cache.sweeper import CacheSweeper
from startrader.core.config import settings
from startrader.services.chat import ChatService, build_llm_client
from startrader.tools.registry import build_registry
from startrader.utils.logging import get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = get_logger()

    # Startup
    store = build_cache_store(settings)
    await store.init()
    http_client = httpx.AsyncClient()

    sweeper = CacheSweeper(store, prefix=settings.CACHE_PREFIX, ttl=settings.cache_ttl)
    fetcher = CachedFetcher(
        store,
        http_client,
        ttl=settings.cache_ttl,
        prefix=settings.CACHE_PREFIX,
        sweeper=sweeper if settings.CACHE_SWEEP_AFTER_WRITE else None,
    )
    registry = build_registry(fetcher, base_url=settings.UEX_API_BASE_URL)

    app.state.cache_store = store
    app.state.sweeper = sweeper
    app.state.registry = registry
    app.state.chat_service = ChatService(
        build_llm_client(settings), registry, settings, http_client=http_client
    )
    logger.info(
        f"Startup: {app.title} v{app.version} starting "
        f"({settings.CACHE_TYPE} cache, {len(registry)} tools)..."
    )
    yield

    # Shutdown
    await http_client.aclose()
    await store.close()
    logger.info("Shutdown: App shutting down...")
