import json

import httpx

from startrader.schemas.chat import ChatMessage
from startrader.services.chat import ChatService, estimate_tokens, message_tokens
from startrader.services.prompts import (
    KNOWLEDGE_BASE_UNAVAILABLE,
    LLM_DISABLED_MESSAGE,
    SYSTEM_PROMPT,
    TOOL_RESULT_TRUNCATED,
)

from conftest import FakeLLM, completion


def user(content):
    return ChatMessage(role="user", content=content)


def test_estimate_tokens_is_a_quarter_of_the_characters():
    assert estimate_tokens("abcdefgh") == 2
    assert estimate_tokens(None) == 0


def test_trim_history_keeps_only_recent_messages(registry, chat_settings):
    service = ChatService(None, registry, chat_settings)
    messages = [{"role": "user", "content": f"m{i}"} for i in range(15)]

    kept = service.trim_history(messages, "system")

    assert [m["content"] for m in kept] == [f"m{i}" for i in range(5, 15)]


def test_trim_history_respects_input_budget(registry, chat_settings):
    # 1000 - 200 = 800 tokens of input, i.e. 3200 characters
    service = ChatService(None, registry, chat_settings)
    messages = [
        {"role": "user", "content": "a" * 2000},
        {"role": "assistant", "content": "b" * 1000},
        {"role": "user", "content": "c" * 1000},
    ]

    kept = service.trim_history(messages, "s" * 400)

    assert [m["content"][0] for m in kept] == ["b", "c"]


def test_trim_history_stops_at_first_message_over_budget(registry, chat_settings):
    service = ChatService(None, registry, chat_settings)
    messages = [
        {"role": "user", "content": "short"},
        {"role": "user", "content": "x" * 4000},
        {"role": "user", "content": "latest"},
    ]
    assert [m["content"] for m in service.trim_history(messages, "")] == ["latest"]


async def test_reply_without_llm_client(registry, chat_settings):
    reply = await ChatService(None, registry, chat_settings).reply([user("hi")])
    assert reply.content == LLM_DISABLED_MESSAGE
    assert reply.tool_calls == []


async def test_plain_answer_needs_one_model_call(registry, chat_settings, upstream):
    llm = FakeLLM(completion("Hello, hauler."))
    reply = await ChatService(llm, registry, chat_settings).reply([user("hi")])

    assert reply.content == "Hello, hauler."
    assert len(llm.calls) == 1
    request = llm.calls[0]
    assert request["model"] == "gpt-test"
    assert request["max_tokens"] == 200
    assert request["tool_choice"] == "auto"
    assert len(request["tools"]) == len(registry)
    assert request["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert request["messages"][1] == {"role": "user", "content": "hi"}
    assert upstream.call_count == 0


async def test_tool_calls_are_executed_and_fed_back(registry, chat_settings, upstream):
    llm = FakeLLM(
        completion(
            tool_calls=[
                ("get_commodity_prices", {"commodity_name": "Laranite"}),
                ("data_extract", {}),
            ]
        ),
        completion("Sell Laranite at Area18."),
    )

    reply = await ChatService(llm, registry, chat_settings).reply([user("Where to sell?")])

    assert reply.content == "Sell Laranite at Area18."
    assert reply.tool_calls == ["get_commodity_prices", "data_extract"]
    assert upstream.call_count == 2

    follow_up = llm.calls[1]["messages"]
    assistant, prices, routes = follow_up[-3:]
    assert assistant["role"] == "assistant"
    assert [tc["function"]["name"] for tc in assistant["tool_calls"]] == [
        "get_commodity_prices",
        "data_extract",
    ]
    assert prices["role"] == "tool" and prices["tool_call_id"] == "call_0"
    assert json.loads(prices["content"])["data"][0]["params"] == {"commodity_name": "Laranite"}
    assert routes["content"] == "route,profit\nA-B,1000"


async def test_tool_errors_are_reported_to_the_model(registry, chat_settings, upstream):
    llm = FakeLLM(
        completion(
            tool_calls=[
                ("get_cities", {}),
                ("not_a_real_tool", {}),
                ("get_moons", "{not json"),
            ]
        ),
        completion("Sorry, I could not look that up."),
    )

    reply = await ChatService(llm, registry, chat_settings).reply([user("cities?")])

    assert reply.content == "Sorry, I could not look that up."
    assert upstream.call_count == 0
    tool_messages = [m for m in llm.calls[1]["messages"] if m["role"] == "tool"]
    errors = [json.loads(m["content"])["error"] for m in tool_messages]
    assert "At least one parameter is required" in errors[0]
    assert "not_a_real_tool" in errors[1]
    assert "not valid JSON" in errors[2]


async def test_upstream_failure_becomes_tool_error(registry, chat_settings, upstream):
    upstream.status_code = 502
    llm = FakeLLM(
        completion(tool_calls=[("get_planets", {"id_star_system": 64})]),
        completion("UEX is down right now."),
    )

    reply = await ChatService(llm, registry, chat_settings).reply([user("planets")])

    assert reply.content == "UEX is down right now."
    tool_message = llm.calls[1]["messages"][-1]
    assert "502" in json.loads(tool_message["content"])["error"]


async def test_tool_loop_ends_with_an_answer_only_round(registry, chat_settings):
    looping = [completion(tool_calls=[("get_commodities", {})]) for _ in range(3)]
    llm = FakeLLM(*looping, completion("Final answer."))

    reply = await ChatService(llm, registry, chat_settings).reply([user("loop")])

    assert reply.content == "Final answer."
    assert reply.tool_calls == ["get_commodities"] * 3
    assert len(llm.calls) == 4
    assert "tools" not in llm.calls[-1]


async def test_knowledge_base_is_appended_and_fetched_once(registry, chat_settings):
    hits = []

    def handler(request):
        hits.append(request)
        return httpx.Response(200, text="Commodity 7 is Laranite.")

    settings = chat_settings.model_copy(update={"KNOWLEDGE_BASE_URL": "https://kb.test/kb.txt"})
    service = ChatService(
        FakeLLM(completion("a"), completion("b")),
        registry,
        settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    await service.reply([user("one")])
    await service.reply([user("two")])

    assert len(hits) == 1
    system = service.client.calls[1]["messages"][0]["content"]
    assert system.startswith(SYSTEM_PROMPT)
    assert system.endswith("Commodity 7 is Laranite.")


async def test_unreachable_knowledge_base_falls_back(registry, chat_settings):
    def handler(request):
        return httpx.Response(404, text="gone")

    settings = chat_settings.model_copy(update={"KNOWLEDGE_BASE_URL": "https://kb.test/kb.txt"})
    service = ChatService(
        None,
        registry,
        settings,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    assert (await service.system_prompt()).endswith(KNOWLEDGE_BASE_UNAVAILABLE)


def conversation_tokens(messages):
    return sum(message_tokens(m) for m in messages)


async def test_oversized_tool_result_is_cut_to_the_input_budget(
    registry, chat_settings, upstream
):
    upstream.body = json.dumps({"status": "ok", "data": "x" * 20000})
    llm = FakeLLM(
        completion(tool_calls=[("get_commodities", {})]),
        completion("Here are the commodities."),
    )

    reply = await ChatService(llm, registry, chat_settings).reply([user("commodities?")])

    assert reply.content == "Here are the commodities."
    follow_up = llm.calls[1]["messages"]
    assert conversation_tokens(follow_up) <= chat_settings.max_input_tokens
    assert follow_up[0]["content"] == SYSTEM_PROMPT
    assistant, result = follow_up[-2:]
    assert assistant["tool_calls"][0]["id"] == "call_0"
    assert result["tool_call_id"] == "call_0"
    assert result["content"].endswith(TOOL_RESULT_TRUNCATED)


async def test_oldest_turns_are_dropped_before_tool_results(
    registry, chat_settings, upstream
):
    upstream.body = json.dumps({"status": "ok", "data": "y" * 1600})
    llm = FakeLLM(
        completion(tool_calls=[("get_commodities", {})]),
        completion("Done."),
    )
    history = [user("a" * 1200), user("which commodities?")]

    await ChatService(llm, registry, chat_settings).reply(history)

    assert [m["content"] for m in llm.calls[0]["messages"][1:]] == [
        "a" * 1200,
        "which commodities?",
    ]
    follow_up = llm.calls[1]["messages"]
    assert conversation_tokens(follow_up) <= chat_settings.max_input_tokens
    assert [m["role"] for m in follow_up] == ["system", "user", "assistant", "tool"]
    assert follow_up[1]["content"] == "which commodities?"
    assert not follow_up[-1]["content"].endswith(TOOL_RESULT_TRUNCATED)
    assert json.loads(follow_up[-1]["content"])["data"] == "y" * 1600


def test_fit_conversation_keeps_tool_replies_with_their_call(registry, chat_settings):
    service = ChatService(None, registry, chat_settings)
    call = {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {"id": "c1", "type": "function", "function": {"name": "get_cities", "arguments": "{}"}}
        ],
    }
    conversation = [
        {"role": "system", "content": "s"},
        call,
        {"role": "tool", "tool_call_id": "c1", "content": "r" * 2000},
        {"role": "user", "content": "u" * 2000},
    ]

    fitted = service.fit_conversation(conversation)

    assert fitted == [conversation[0], conversation[3]]
