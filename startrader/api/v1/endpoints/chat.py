from fastapi import APIRouter

from startrader.core.dependencies import ChatServiceDependency
from startrader.core.responses import send_success
from startrader.schemas.chat import ChatRequest

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("")
async def chat(request: ChatRequest, chat_service: ChatServiceDependency):
    reply = await chat_service.reply(request.messages)
    return send_success(message="Reply generated", data=reply)
