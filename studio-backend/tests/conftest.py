"""
Pytest Configuration and Shared Fixtures

Settings, fake generation backends with an ordered event log, a started
studio engine and an HTTP client bound to the app over ASGI.
"""

import asyncio
import json
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Dict, List, Optional, Sequence

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient

from api.dependencies import set_studio_engine
from app import create_app
from config.settings import RuntimeSettings, Settings
from core.ai.backends import BackendKind, GenerationBackend, GenerationOptions, ModelSpec
from core.errors import GenerationError, LoadError
from core.runtime.engine import StudioEngine
from core.runtime.registry import RuntimeRegistry, teardown_runtime_registry


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interactions"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time to run"
    )


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings for tests; nothing is read from disk or the environment."""
    return Settings(
        environment="test",
        runtimes=RuntimeSettings(execution_timeout=5.0),
    )


@pytest.fixture(autouse=True)
def reset_process_state():
    """Drop the process-wide registry and engine after each test."""
    yield
    teardown_runtime_registry()
    set_studio_engine(None)


# =============================================================================
# Fake Generation Backends
# =============================================================================

class FakeBackend(GenerationBackend):
    """
    In-memory backend that records load/unload order into a shared log.

    Replies are streamed as the given chunks. ``fail_load`` makes every load
    fail; ``fail_after`` raises GenerationError after that many chunks.
    """

    def __init__(
        self,
        kind: BackendKind,
        models: Sequence[ModelSpec],
        events: List[str],
        reply: Sequence[str] = ("Hello", ", ", "world"),
        multimodal: bool = False,
        fail_load: bool = False,
        fail_after: Optional[int] = None,
    ):
        self.kind = kind
        self.supports_multimodal = multimodal
        super().__init__(f"http://fake/{kind.value}", models)
        self.events = events
        self.reply = list(reply)
        self.fail_load = fail_load
        self.fail_after = fail_after
        self.load_calls = 0
        self.seen_messages: List[List[Dict[str, Any]]] = []
        self.seen_parts: List[List[Any]] = []
        self.seen_options: List[GenerationOptions] = []

    async def load(self, model_id: str, on_progress=None) -> None:
        self.events.append(f"{self.id}:load-start:{model_id}")
        await asyncio.sleep(0)
        await super().load(model_id, on_progress)
        self.events.append(f"{self.id}:load-done:{model_id}")

    async def unload(self) -> None:
        self.events.append(f"{self.id}:unload-start")
        await asyncio.sleep(0)
        await super().unload()
        self.events.append(f"{self.id}:unload-done")

    async def _verify(self, model_id: str, on_progress) -> None:
        self.load_calls += 1
        await asyncio.sleep(0.01)
        if self.fail_load:
            raise LoadError(f"{model_id} refused to load")

    async def _reply(self) -> AsyncIterator[str]:
        for index, chunk in enumerate(self.reply):
            if self.fail_after is not None and index >= self.fail_after:
                raise GenerationError("server went away", backend_id=self.id)
            await asyncio.sleep(0)
            yield chunk

    async def stream_chat(self, messages, options) -> AsyncIterator[str]:
        self._require_loaded()
        self.seen_messages.append(list(messages))
        self.seen_options.append(options)
        async for chunk in self._reply():
            yield chunk

    async def stream_multimodal(self, parts, options) -> AsyncIterator[str]:
        self._require_loaded()
        self.seen_parts.append(list(parts))
        self.seen_options.append(options)
        async for chunk in self._reply():
            yield chunk


@pytest.fixture
def event_log() -> List[str]:
    return []


@pytest.fixture
def multimodal_backend(event_log) -> FakeBackend:
    return FakeBackend(
        BackendKind.MULTIMODAL,
        [ModelSpec(id="vision-model", name="Vision", size="2.8GB", category="large")],
        event_log,
        multimodal=True,
    )


@pytest.fixture
def chat_backend(event_log) -> FakeBackend:
    return FakeBackend(
        BackendKind.CHAT_COMPLETION,
        [
            ModelSpec(id="chat-model", name="Chat", size="~2GB", category="medium"),
            ModelSpec(id="chat-model-large", name="Chat Large", size="~4GB", category="large"),
        ],
        event_log,
    )


# =============================================================================
# HTTP Mock Helpers
# =============================================================================

def sse_body(events: List[Any], done: bool = True) -> bytes:
    """Encode events as an SSE body with ``data:`` lines."""
    lines = [f"data: {json.dumps(event)}\n\n" for event in events]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


@pytest.fixture
def mock_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.MockTransport]:
    """Factory for httpx.MockTransport that records every request."""

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
        def recording(request: httpx.Request) -> httpx.Response:
            build.requests.append(request)
            return handler(request)

        return httpx.MockTransport(recording)

    build.requests = []
    return build


# =============================================================================
# Registry / Engine / App Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def registry() -> AsyncGenerator[RuntimeRegistry, None]:
    """Standalone registry over the built-in descriptor table."""
    registry = RuntimeRegistry(execution_timeout=5.0)
    yield registry
    registry.release_all()


@pytest_asyncio.fixture
async def engine(test_settings, multimodal_backend, chat_backend) -> AsyncGenerator[StudioEngine, None]:
    """Started studio engine over the fake backends."""
    engine = StudioEngine(test_settings, backends=[multimodal_backend, chat_backend])
    await engine.start()
    yield engine
    await engine.stop()


@pytest_asyncio.fixture
async def client(test_settings, engine) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API testing."""
    set_studio_engine(engine)
    app = create_app(test_settings)
    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def read_ndjson(response: httpx.Response) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


@pytest.fixture
def ndjson() -> Callable[[httpx.Response], List[Dict[str, Any]]]:
    return read_ndjson


@pytest.fixture
def sse() -> Callable[..., bytes]:
    return sse_body
