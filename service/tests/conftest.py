"""
Shared fixtures: an in-memory Redis stand-in, a small service registry,
a scripted AI client and a Bot API stand-in so no test touches the network.
"""

import json
from types import SimpleNamespace
from typing import Optional

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ai_router.config import parse_service_registry
from ai_router.services.ai_client import AIClientError
from ai_router.services.session_store import SessionStore
from ai_router.telegram_bot import telegram_api
from ai_router.telegram_bot.dispatcher import CommandDispatcher

BOT_TOKEN = "123456:SECRET-TOKEN"


REGISTRY_JSON = """
{
    "demo": {"baseUrl": "https://openai.example/v1", "apiKey": "sk-demo", "models": ["m1", "m2"], "type": "openai"},
    "claude": {"baseUrl": "https://anthropic.example/v1", "apiKey": "sk-ant", "models": ["c1", "c2"], "type": "anthropic"}
}
"""


class FakeRedis:
    """Async get/set with TTL bookkeeping. Set `fail = True` to simulate an outage."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.fail = False

    async def get(self, name):
        if self.fail:
            raise RedisConnectionError("redis down")
        return self.data.get(name)

    async def set(self, name, value, ex=None):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.data[name] = value
        self.ttls[name] = ex
        return True


class BotAPI:
    """
    MockTransport handler standing in for api.telegram.org.

    Every request is recorded as (method, json body). Queue responses per
    method with `reply`; an exception instance is raised instead of
    answered. Unqueued calls get {"ok": true}.
    """

    def __init__(self):
        self.requests: list[tuple[str, dict]] = []
        self.queued: dict[str, list] = {}
        self.urls: list[str] = []

    def reply(self, method: str, *responses):
        self.queued.setdefault(method, []).extend(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        self.urls.append(str(request.url))
        self.requests.append((method, json.loads(request.content)))
        queued = self.queued.get(method)
        if queued:
            response = queued.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return httpx.Response(200, json={"ok": True, "result": True})

    def calls(self, method: str) -> list[dict]:
        return [body for name, body in self.requests if name == method]


class FakeAIClient:
    """Records calls; returns `answer` or raises `error`."""

    def __init__(self, answer: str = "42", error: Optional[str] = None):
        self.answer = answer
        self.error = error
        self.calls: list[dict] = []

    async def call(self, config, model, prompt, image_url=None):
        self.calls.append({"config": config, "model": model, "prompt": prompt, "image_url": image_url})
        if self.error:
            raise AIClientError(self.error)
        return self.answer


@pytest.fixture
def registry():
    return parse_service_registry(REGISTRY_JSON)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(fake_redis):
    return SessionStore(fake_redis, ttl_seconds=30 * 24 * 60 * 60)


@pytest.fixture
def bot_api(monkeypatch):
    """Route the real Bot API wrappers through a BotAPI recorder."""
    api = BotAPI()
    monkeypatch.setattr(telegram_api, "_transport", httpx.MockTransport(api))
    monkeypatch.setattr(telegram_api, "get_settings", lambda: SimpleNamespace(telegram_bot_token=BOT_TOKEN))
    return api


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def dispatcher(registry, store, ai_client):
    return CommandDispatcher(registry, store, ai_client)
