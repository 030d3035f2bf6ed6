from typing import List, Literal

from pydantic import BaseModel, Field as PydanticField


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = ""


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = PydanticField(..., min_length=1)


class ChatReply(BaseModel):
    content: str
    tool_calls: List[str] = PydanticField(default_factory=list)
