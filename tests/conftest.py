import copy
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from startrader.cache.proxy import CachedFetcher
from startrader.cache.stores import InMemoryCacheStore
from startrader.cache.sweeper import CacheSweeper
from startrader.core.config import Settings
from startrader.core.dependencies import get_chat_service, get_registry, get_sweeper
from startrader.services.chat import ChatService
from startrader.tools.registry import build_registry

BASE_URL = "https://api.uexcorp.test/2.0"
TTL = timedelta(hours=1)
START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable stand-in for ``utcnow``."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeUpstream:
    """MockTransport handler that echoes the request path and query back as JSON."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.error = None
        self.body = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return httpx.Response(self.status_code, text=self.body)
        if request.url.path.endswith("/data_extract"):
            return httpx.Response(self.status_code, text="route,profit\nA-B,1000")
        return httpx.Response(
            self.status_code,
            json={
                "status": "ok",
                "data": [
                    {
                        "path": request.url.path,
                        "params": dict(request.url.params),
                        "call": len(self.requests),
                    }
                ],
            },
        )

    @property
    def call_count(self) -> int:
        return len(self.requests)


class FakeCompletions:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(copy.deepcopy(kwargs))
        return self.responses.pop(0)


class FakeLLM:
    """Mimics the slice of ``AsyncOpenAI`` the chat service touches."""

    def __init__(self, *responses):
        self.chat = SimpleNamespace(completions=FakeCompletions(responses))

    @property
    def calls(self):
        return self.chat.completions.calls


def completion(content=None, tool_calls=()):
    calls = [
        SimpleNamespace(
            id=f"call_{i}",
            type="function",
            function=SimpleNamespace(
                name=name,
                arguments=args if isinstance(args, str) else json.dumps(args),
            ),
        )
        for i, (name, args) in enumerate(tool_calls)
    ]
    message = SimpleNamespace(content=content, tool_calls=calls or None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryCacheStore(clock=clock)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def http_client(upstream):
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream))


@pytest.fixture
def sweeper(store, clock):
    return CacheSweeper(store, prefix="cache/", ttl=TTL, clock=clock)


@pytest.fixture
def fetcher(store, http_client, clock):
    return CachedFetcher(store, http_client, ttl=TTL, prefix="cache/", clock=clock)


@pytest.fixture
def registry(fetcher):
    return build_registry(fetcher, base_url=BASE_URL)


@pytest.fixture
def chat_settings():
    return Settings(
        OPENAI_API_KEY="test-key",
        OPENAI_MODEL="gpt-test",
        MAX_TPM=1000,
        MAX_OUTPUT_TOKENS=200,
        CHAT_RECENT_MESSAGES=10,
        CHAT_MAX_TOOL_ITERATIONS=3,
        KNOWLEDGE_BASE_URL=None,
    )


@pytest.fixture
def client(registry, sweeper, chat_settings):
    """TestClient wired to the in-memory store and the fake upstream."""
    chat_service = ChatService(
        FakeLLM(completion("Quantanium sells best at CRU-L1.")), registry, chat_settings
    )
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_sweeper] = lambda: sweeper
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    yield TestClient(app)
    app.dependency_overrides.clear()
