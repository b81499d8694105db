"""
Unit Tests: AI Orchestrator

Backend switch-over ordering, single-flight loads, chunk framing and input
routing, using the in-memory backends from conftest.
"""

import asyncio

import pytest

from core.ai.backends import GenerationOptions
from core.ai.orchestrator import AIOrchestrator
from core.ai.prompting import ImageInput
from core.errors import GenerationError, LoadError, NotLoadedError, StreamConsumedError, UnknownModelError

pytestmark = pytest.mark.unit

MESSAGES = [{"role": "user", "content": "hi"}]


@pytest.fixture
def orchestrator(multimodal_backend, chat_backend):
    return AIOrchestrator([chat_backend, multimodal_backend])


# =============================================================================
# Catalog
# =============================================================================

class TestCatalog:
    """Test model listing and resolution."""

    def test_multimodal_models_listed_first(self, orchestrator):
        ids = [m.id for m in orchestrator.list_models()]
        assert ids == ["vision-model", "chat-model", "chat-model-large"]

    def test_models_tagged_with_backend(self, orchestrator):
        by_id = {m.id: m for m in orchestrator.list_models()}
        assert by_id["vision-model"].backend_id == "multimodal"
        assert by_id["vision-model"].supports_multimodal is True
        assert by_id["chat-model"].backend_id == "chat-completion"

    @pytest.mark.asyncio
    async def test_unknown_model(self, orchestrator):
        with pytest.raises(UnknownModelError):
            await orchestrator.load("nope")


# =============================================================================
# Load / Unload
# =============================================================================

class TestLoad:
    """Test switch-over and single-flight loading."""

    @pytest.mark.asyncio
    async def test_switch_unloads_before_loading(self, orchestrator, event_log):
        await orchestrator.load("vision-model")
        await orchestrator.load("chat-model")

        assert event_log.index("multimodal:unload-done") < event_log.index("chat-completion:load-start:chat-model")
        assert orchestrator.status()["backend_id"] == "chat-completion"
        assert orchestrator.status()["current_model"] == "chat-model"

    @pytest.mark.asyncio
    async def test_same_backend_model_switch(self, orchestrator, chat_backend, event_log):
        await orchestrator.load("chat-model")
        await orchestrator.load("chat-model-large")

        assert event_log == [
            "chat-completion:load-start:chat-model",
            "chat-completion:load-done:chat-model",
            "chat-completion:unload-start",
            "chat-completion:unload-done",
            "chat-completion:load-start:chat-model-large",
            "chat-completion:load-done:chat-model-large",
        ]
        assert chat_backend.current_model == "chat-model-large"

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_flight(self, orchestrator, chat_backend):
        await asyncio.gather(
            orchestrator.load("chat-model"),
            orchestrator.load("chat-model"),
            orchestrator.load("chat-model"),
        )

        assert chat_backend.load_calls == 1
        assert orchestrator.is_loaded()

    @pytest.mark.asyncio
    async def test_reload_of_active_model_is_noop(self, orchestrator, chat_backend):
        await orchestrator.load("chat-model")
        await orchestrator.load("chat-model")

        assert chat_backend.load_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_different_models_serialised(self, orchestrator, event_log):
        await asyncio.gather(
            orchestrator.load("vision-model"),
            orchestrator.load("chat-model"),
        )

        starts = [e for e in event_log if ":load-start:" in e]
        assert len(starts) == 2
        # The second load never overlaps the first
        first_done = event_log.index(starts[0].replace("load-start", "load-done"))
        assert first_done < event_log.index(starts[1])
        assert orchestrator.status()["current_model"] in {"vision-model", "chat-model"}

    @pytest.mark.asyncio
    async def test_failed_load_leaves_nothing_loaded(self, multimodal_backend, chat_backend):
        chat_backend.fail_load = True
        orchestrator = AIOrchestrator([multimodal_backend, chat_backend])
        await orchestrator.load("vision-model")

        with pytest.raises(LoadError):
            await orchestrator.load("chat-model")

        assert orchestrator.is_loaded() is False
        assert multimodal_backend.current_model is None
        with pytest.raises(NotLoadedError):
            orchestrator.generate(MESSAGES)

    @pytest.mark.asyncio
    async def test_concurrent_waiters_share_failure(self, chat_backend, multimodal_backend):
        chat_backend.fail_load = True
        orchestrator = AIOrchestrator([multimodal_backend, chat_backend])

        results = await asyncio.gather(
            orchestrator.load("chat-model"),
            orchestrator.load("chat-model"),
            return_exceptions=True,
        )

        assert all(isinstance(r, LoadError) for r in results)
        assert chat_backend.load_calls == 1

    @pytest.mark.asyncio
    async def test_progress_forwarded(self, orchestrator):
        events = []
        await orchestrator.load("chat-model", events.append)

        assert [e.status for e in events] == ["initializing", "ready"]
        assert events[-1].progress_percent == 100

    @pytest.mark.asyncio
    async def test_unload(self, orchestrator, chat_backend):
        await orchestrator.load("chat-model")
        await orchestrator.unload()
        await orchestrator.unload()

        assert orchestrator.status() == {
            "is_loaded": False,
            "is_loading": False,
            "current_model": None,
            "backend_id": None,
            "supports_multimodal": False,
        }
        assert chat_backend.current_model is None


# =============================================================================
# Generation
# =============================================================================

class TestGenerate:
    """Test chunk framing and input routing."""

    @pytest.mark.asyncio
    async def test_generate_before_load(self, orchestrator):
        with pytest.raises(NotLoadedError):
            orchestrator.generate(MESSAGES)

    @pytest.mark.asyncio
    async def test_chunks_end_with_single_final(self, orchestrator):
        await orchestrator.load("chat-model")

        chunks = [chunk async for chunk in orchestrator.generate(MESSAGES)]

        assert [c.is_final for c in chunks] == [False, False, False, True]
        assert chunks[-1].text == ""
        assert "".join(c.text for c in chunks) == "Hello, world"

    @pytest.mark.asyncio
    async def test_stream_single_use(self, orchestrator):
        await orchestrator.load("chat-model")
        stream = orchestrator.generate(MESSAGES)

        assert await stream.collect() == "Hello, world"
        assert stream.completed is True
        assert stream.chunk_count == 3
        with pytest.raises(StreamConsumedError):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_lazy_until_iterated(self, orchestrator, chat_backend):
        await orchestrator.load("chat-model")
        orchestrator.generate(MESSAGES)

        assert chat_backend.seen_messages == []

    @pytest.mark.asyncio
    async def test_failure_has_no_final_chunk(self, orchestrator, chat_backend):
        chat_backend.fail_after = 1
        await orchestrator.load("chat-model")
        chunks = []

        with pytest.raises(GenerationError):
            async for chunk in orchestrator.generate(MESSAGES):
                chunks.append(chunk)

        assert [c.text for c in chunks] == ["Hello"]
        assert not any(c.is_final for c in chunks)

    @pytest.mark.asyncio
    async def test_images_reach_multimodal_backend(self, orchestrator, multimodal_backend):
        await orchestrator.load("vision-model")

        await orchestrator.generate(MESSAGES, images=["aGVsbG8="]).collect()

        parts = multimodal_backend.seen_parts[0]
        assert ImageInput(data="aGVsbG8=") in parts
        assert multimodal_backend.seen_messages == []

    @pytest.mark.asyncio
    async def test_images_ignored_on_text_backend(self, orchestrator, chat_backend):
        await orchestrator.load("chat-model")

        await orchestrator.generate(MESSAGES, images=["aGVsbG8="]).collect()

        assert chat_backend.seen_messages == [MESSAGES]
        assert chat_backend.seen_parts == []

    @pytest.mark.asyncio
    async def test_multimodal_without_images_uses_chat_path(self, orchestrator, multimodal_backend):
        await orchestrator.load("vision-model")

        await orchestrator.generate(MESSAGES).collect()

        assert multimodal_backend.seen_messages == [MESSAGES]

    @pytest.mark.asyncio
    async def test_options_merged_over_defaults(self, multimodal_backend, chat_backend):
        orchestrator = AIOrchestrator(
            [multimodal_backend, chat_backend],
            GenerationOptions(temperature=0.2, max_tokens=64),
        )
        await orchestrator.load("chat-model")

        await orchestrator.generate(MESSAGES, {"temperature": 1.1, "top_p": None, "unknown": 1}).collect()

        options = chat_backend.seen_options[0]
        assert options.temperature == 1.1
        assert options.max_tokens == 64
        assert options.top_p == 0.9

    @pytest.mark.asyncio
    async def test_generate_to_callback(self, orchestrator):
        await orchestrator.load("chat-model")
        received = []

        text = await orchestrator.generate_to_callback(MESSAGES, lambda t, final: received.append((t, final)))

        assert text == "Hello, world"
        assert received[-1] == ("", True)
        assert len(received) == 4
