from fastapi import APIRouter

from startrader.api.v1.endpoints.cache import router as cache_router
from startrader.api.v1.endpoints.chat import router as chat_router
from startrader.api.v1.endpoints.tools import router as tools_router

router = APIRouter(prefix="/api/v1")
router.include_router(chat_router)
router.include_router(tools_router)
router.include_router(cache_router)
