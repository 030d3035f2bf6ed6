import json
from typing import Any, Dict, List, Optional, Sequence

import httpx
from openai import AsyncOpenAI

from startrader.core.config import Settings
from startrader.core.exceptions.errors import StarTraderError
from startrader.schemas.chat import ChatMessage, ChatReply
from startrader.services.prompts import (
    KNOWLEDGE_BASE_HEADER,
    KNOWLEDGE_BASE_UNAVAILABLE,
    LLM_DISABLED_MESSAGE,
    SYSTEM_PROMPT,
    TOOL_RESULT_TRUNCATED,
)
from startrader.tools.registry import ToolRegistry
from startrader.utils.logging import get_logger

logger = get_logger()


def build_llm_client(settings: Settings) -> Optional[AsyncOpenAI]:
    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set; chat replies are disabled")
        return None
    return AsyncOpenAI(api_key=settings.OPENAI_API_KEY)


def estimate_tokens(content: Optional[str]) -> float:
    # Rough estimate: one token is about four characters
    return len(content or "") / 4


def message_tokens(message: Dict[str, Any]) -> float:
    tokens = estimate_tokens(message.get("content"))
    for call in message.get("tool_calls") or []:
        tokens += estimate_tokens(call["function"]["arguments"])
    return tokens


def group_turns(messages: Sequence[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    """Group messages so each assistant ``tool_calls`` message stays with its replies."""
    turns: List[List[Dict[str, Any]]] = []
    for message in messages:
        if message["role"] == "tool" and turns:
            turns[-1].append(message)
        else:
            turns.append([message])
    return turns


def truncate_text(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    if limit <= len(TOOL_RESULT_TRUNCATED):
        return content[:limit]
    return content[: limit - len(TOOL_RESULT_TRUNCATED)] + TOOL_RESULT_TRUNCATED


class ChatService:
    """Runs a chat turn against the LLM, executing any tools it asks for.

    History is trimmed to the most recent messages that fit the input token
    budget, and re-fitted to it after every tool round. Each model response
    carrying tool calls is answered with one tool
    message per call; tool failures are reported back to the model as an
    ``{"error": ...}`` payload so it can explain them to the user.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        registry: ToolRegistry,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client = client
        self.registry = registry
        self.http_client = http_client
        self.model = settings.OPENAI_MODEL
        self.max_output_tokens = settings.MAX_OUTPUT_TOKENS
        self.max_input_tokens = settings.max_input_tokens
        self.recent_messages = settings.CHAT_RECENT_MESSAGES
        self.max_tool_iterations = settings.CHAT_MAX_TOOL_ITERATIONS
        self.knowledge_base_url = settings.KNOWLEDGE_BASE_URL
        self._knowledge_base: Optional[str] = None

    def trim_history(
        self, messages: Sequence[Dict[str, Any]], system_prompt: str
    ) -> List[Dict[str, Any]]:
        recent = list(messages)[-self.recent_messages :] if self.recent_messages else []
        total = estimate_tokens(system_prompt)
        kept: List[Dict[str, Any]] = []
        for message in reversed(recent):
            tokens = estimate_tokens(message.get("content"))
            if total + tokens > self.max_input_tokens:
                break
            kept.insert(0, message)
            total += tokens
        return kept

    def fit_conversation(self, conversation: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Shrink a running conversation back under the input budget.

        The system message is always kept. Whole turns are dropped oldest
        first; if the latest turn alone is still too large, its tool results
        are cut down to share the remaining budget.
        """
        system, turns = conversation[0], group_turns(conversation[1:])
        total = sum(message_tokens(m) for m in conversation)
        while total > self.max_input_tokens and len(turns) > 1:
            dropped = turns.pop(0)
            total -= sum(message_tokens(m) for m in dropped)

        if total > self.max_input_tokens and turns:
            latest = turns[-1]
            results = [m for m in latest if m["role"] == "tool"]
            if results:
                fixed = total - sum(message_tokens(m) for m in results)
                available = max(self.max_input_tokens - fixed, 0)
                limit = int(available * 4) // len(results)
                turns[-1] = [
                    {**m, "content": truncate_text(m["content"], limit)}
                    if m["role"] == "tool"
                    else m
                    for m in latest
                ]
                logger.warning(f"Tool results truncated to {limit} characters each")

        return [system, *(m for turn in turns for m in turn)]

    async def load_knowledge_base(self) -> str:
        if self._knowledge_base is not None:
            return self._knowledge_base
        if self.http_client is None:
            return KNOWLEDGE_BASE_UNAVAILABLE
        try:
            response = await self.http_client.get(self.knowledge_base_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Error fetching the knowledge base: {exc!r}")
            return KNOWLEDGE_BASE_UNAVAILABLE
        self._knowledge_base = response.text
        return self._knowledge_base

    async def system_prompt(self) -> str:
        if not self.knowledge_base_url:
            return SYSTEM_PROMPT
        knowledge_base = await self.load_knowledge_base()
        return f"{SYSTEM_PROMPT}\n\n{KNOWLEDGE_BASE_HEADER}{knowledge_base}"

    async def reply(self, messages: Sequence[ChatMessage]) -> ChatReply:
        if self.client is None:
            return ChatReply(content=LLM_DISABLED_MESSAGE)

        system_prompt = await self.system_prompt()
        history = self.trim_history([m.model_dump() for m in messages], system_prompt)
        conversation: List[Dict[str, Any]] = [
            {"role": "system", "content": system_prompt},
            *history,
        ]
        tools = self.registry.openai_tools()
        called: List[str] = []

        content = ""
        for iteration in range(self.max_tool_iterations + 1):
            if iteration:
                conversation = self.fit_conversation(conversation)
            request: Dict[str, Any] = {
                "model": self.model,
                "messages": conversation,
                "max_tokens": self.max_output_tokens,
            }
            # The final round is answer-only so the loop always terminates
            if iteration < self.max_tool_iterations:
                request["tools"] = tools
                request["tool_choice"] = "auto"

            response = await self.client.chat.completions.create(**request)
            message = response.choices[0].message
            content = message.content or ""
            tool_calls = message.tool_calls or []
            if not tool_calls:
                return ChatReply(content=content, tool_calls=called)

            logger.info(
                f"Model requested tools: {', '.join(tc.function.name for tc in tool_calls)}"
            )
            conversation.append(
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.function.name,
                                "arguments": tc.function.arguments,
                            },
                        }
                        for tc in tool_calls
                    ],
                }
            )
            for tc in tool_calls:
                called.append(tc.function.name)
                conversation.append(
                    {
                        "role": "tool",
                        "tool_call_id": tc.id,
                        "content": await self._run_tool_call(
                            tc.function.name, tc.function.arguments
                        ),
                    }
                )

        logger.warning("Tool iteration limit reached without a final answer")
        return ChatReply(content=content, tool_calls=called)

    async def _run_tool_call(self, name: str, raw_arguments: Optional[str]) -> str:
        try:
            args = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError:
            return json.dumps({"error": f"Arguments for {name} are not valid JSON."})
        if not isinstance(args, dict):
            return json.dumps({"error": f"Arguments for {name} must be an object."})

        try:
            result = await self.registry.run_function(name, args)
        except StarTraderError as exc:
            return json.dumps({"error": exc.message})
        return result if isinstance(result, str) else json.dumps(result)
