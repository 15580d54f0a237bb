"""Shared test fixtures for pytest.

ENVIRONMENT is pinned to ``test`` before the app is imported so settings are
built from defaults instead of a local .env file, and pydantic-ai is blocked
from ever reaching a real model provider.
"""

import os
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from pydantic_ai import models
from pydantic_ai.messages import ModelMessage
from pydantic_ai.models.function import AgentInfo, FunctionModel


os.environ["ENVIRONMENT"] = "test"
for _key in ("UPSTASH_REDIS_REST_URL", "UPSTASH_REDIS_REST_TOKEN"):
    os.environ.pop(_key, None)

# Block any real model requests in tests
models.ALLOW_MODEL_REQUESTS = False

from core.config import get_settings  # noqa: E402
from core.ratelimit import get_ratelimiter  # noqa: E402
from main import app  # noqa: E402
from services.ai import agents  # noqa: E402


StreamFunction = Callable[[list[ModelMessage], AgentInfo], AsyncIterator[str]]


def fragments_stream(*fragments: str) -> StreamFunction:
    """Build a FunctionModel stream function that yields ``fragments`` in order."""

    async def stream(
        messages: list[ModelMessage], info: AgentInfo
    ) -> AsyncIterator[str]:
        for fragment in fragments:
            yield fragment

    return stream


def parse_sse(body: str) -> list[str]:
    """Return the data payloads of an SSE body, in order."""
    events = []
    for block in body.strip().split("\n\n"):
        if block.startswith("data: "):
            events.append(block[len("data: ") :])
    return events


def _clear_agent_caches() -> None:
    agents.get_analysis_agent.cache_clear()
    agents.get_rewrite_agent.cache_clear()
    agents.get_change_analysis_agent.cache_clear()


@pytest.fixture(autouse=True)
def _reset_cached_singletons() -> Generator[None, None, None]:
    """Keep cached settings, limiter and agents from leaking between tests."""
    yield
    get_settings.cache_clear()
    get_ratelimiter.cache_clear()
    _clear_agent_caches()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the ASGI app (no network)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def use_function_model(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[[StreamFunction], FunctionModel]:
    """Swap the provider model behind every agent for a FunctionModel.

    The real agents are still built, so their instructions and tools are
    exercised; only the completion is scripted.
    """

    def install(stream_function: StreamFunction) -> FunctionModel:
        model = FunctionModel(stream_function=stream_function)
        monkeypatch.setattr(agents, "_create_model", lambda: model)
        _clear_agent_caches()
        return model

    return install
