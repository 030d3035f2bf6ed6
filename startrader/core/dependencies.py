import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from startrader.cache.sweeper import CacheSweeper
from startrader.core.config import settings
from startrader.services.chat import ChatService
from startrader.tools.registry import ToolRegistry
from startrader.utils.logging import get_logger

bearer_scheme = HTTPBearer(
    auto_error=False, scheme_name="CronBearer", description="Value of CRON_SECRET"
)


def get_registry(request: Request) -> ToolRegistry:
    return request.app.state.registry


def get_sweeper(request: Request) -> CacheSweeper:
    return request.app.state.sweeper


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


async def verify_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
):
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not settings.cron_secret_configured:
        get_logger().warning("Rejecting sweep request: CRON_SECRET is not configured")
        raise unauthorized
    if credentials is None or not secrets.compare_digest(
        credentials.credentials, settings.CRON_SECRET
    ):
        get_logger().warning("Unauthorized request - missing or invalid CRON_SECRET")
        raise unauthorized


RegistryDependency = Annotated[ToolRegistry, Depends(get_registry)]
SweeperDependency = Annotated[CacheSweeper, Depends(get_sweeper)]
ChatServiceDependency = Annotated[ChatService, Depends(get_chat_service)]
