"""
AI Orchestrator

Routes model loads and generations between the chat-completion backend and
the multimodal backend behind one interface. Only one backend holds a loaded
model at a time; switching unloads the previous one before the next load
starts.

@.architecture
Incoming: core/runtime/engine.py, api/v1/endpoints/models.py, api/v1/endpoints/chat.py --- {str model_id, List[Dict] messages, Dict options, Sequence images, progress callbacks}
Processing: list_models(), load(), unload(), generate(), generate_to_callback(), status() --- {5 jobs: backend_resolution, switch_over, single_flight_loading, input_routing, stream_normalisation}
Outgoing: core/ai/backends/*.py, api/v1/endpoints/*.py --- {GenerationStream, ModelInfo, Dict status}
"""

from typing import Any, Callable, Dict, List, Optional, Sequence
import asyncio
import logging

from core.ai.backends.base import (
    BackendKind,
    GenerationBackend,
    GenerationOptions,
    ModelInfo,
    ProgressCallback,
)
from core.ai.prompting import build_multimodal_input
from core.ai.streaming import GenerationSession, GenerationStream
from core.errors import LoadError, NotLoadedError, UnknownModelError

logger = logging.getLogger(__name__)


class AIOrchestrator:
    """
    Dual-backend model orchestrator.

    Loads and unloads are serialised by one lock. Concurrent load() calls for
    the same model share a single in-flight load.
    """

    def __init__(
        self,
        backends: Sequence[GenerationBackend],
        defaults: Optional[GenerationOptions] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            backends: Generation backends; multimodal ones are listed first
            defaults: Sampling defaults merged under per-call options
        """
        ordered = sorted(backends, key=lambda b: 0 if b.kind is BackendKind.MULTIMODAL else 1)
        self.backends: List[GenerationBackend] = ordered
        self.defaults = defaults or GenerationOptions()

        self._lock = asyncio.Lock()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._active: Optional[GenerationBackend] = None
        self._active_model: Optional[str] = None
        self._loading_model: Optional[str] = None

    # ============================================================================
    # CATALOG
    # ============================================================================

    def list_models(self) -> List[ModelInfo]:
        """All models, multimodal backend's first."""
        models: List[ModelInfo] = []
        for backend in self.backends:
            models.extend(backend.list_models())
        return models

    def resolve(self, model_id: str) -> GenerationBackend:
        for backend in self.backends:
            if backend.owns(model_id):
                return backend
        raise UnknownModelError(f"Unknown model: {model_id}")

    # ============================================================================
    # LOAD / UNLOAD
    # ============================================================================

    async def load(self, model_id: str, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Load a model, switching backends if needed.

        Raises:
            UnknownModelError: no backend owns the id
            LoadError: backend failed; nothing is left loaded
        """
        backend = self.resolve(model_id)

        if self._active is backend and self._active_model == model_id:
            return

        inflight = self._inflight.get(model_id)
        if inflight is not None:
            await asyncio.shield(inflight)
            return

        future = asyncio.get_running_loop().create_future()
        self._inflight[model_id] = future
        try:
            async with self._lock:
                if not (self._active is backend and self._active_model == model_id):
                    await self._switch_to(backend, model_id, on_progress)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            future.exception()
            raise
        else:
            future.set_result(None)
        finally:
            self._inflight.pop(model_id, None)

    async def _switch_to(
        self,
        backend: GenerationBackend,
        model_id: str,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        if self._active is not None:
            logger.info(f"Switching model: {self._active_model} ({self._active.id}) -> {model_id} ({backend.id})")
            await self._unload_locked()

        self._loading_model = model_id
        try:
            await backend.load(model_id, on_progress)
        except LoadError:
            logger.error(f"Model load failed: {model_id}")
            raise
        except Exception as e:
            logger.error(f"Model load failed: {model_id}: {e}")
            raise LoadError(f"Failed to load model '{model_id}': {e}") from e
        finally:
            self._loading_model = None

        self._active = backend
        self._active_model = model_id
        logger.info(f"Active model: {model_id} on {backend.id}")

    async def unload(self) -> None:
        """Unload the active model. No-op when idle."""
        async with self._lock:
            await self._unload_locked()

    async def _unload_locked(self) -> None:
        backend, model_id = self._active, self._active_model
        if backend is None:
            return
        self._active = None
        self._active_model = None
        try:
            await backend.unload()
            logger.info(f"Unloaded model: {model_id} ({backend.id})")
        except Exception as e:
            logger.error(f"Failed to unload {model_id} ({backend.id}): {e}")

    async def close(self) -> None:
        """Unload and close every backend's HTTP client."""
        await self.unload()
        for backend in self.backends:
            await backend.close()

    # ============================================================================
    # GENERATION
    # ============================================================================

    def generate(
        self,
        messages: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None,
        images: Sequence[Any] = (),
    ) -> GenerationStream:
        """
        Start a generation.

        Image input is honoured only when the active backend is multimodal;
        otherwise the plain chat path is used and images are ignored.

        Returns:
            Lazy GenerationStream; nothing is sent until it is iterated

        Raises:
            NotLoadedError: no model is loaded
        """
        backend = self._active
        if backend is None or self._active_model is None:
            raise NotLoadedError("No AI model loaded")

        merged = self.defaults.merged(options)
        session = GenerationSession(
            backend_id=backend.id,
            model_id=self._active_model,
            messages=list(messages),
            images=tuple(images),
        )

        if backend.supports_multimodal and session.images:
            parts = build_multimodal_input(session.messages, session.images)
            source = backend.stream_multimodal(parts, merged)
        else:
            if session.images:
                logger.debug(f"Ignoring {len(session.images)} image(s): {backend.id} is text-only")
            source = backend.stream_chat(session.messages, merged)

        return GenerationStream(source, session)

    async def generate_to_callback(
        self,
        messages: List[Dict[str, Any]],
        on_chunk: Callable[[str, bool], Any],
        options: Optional[Dict[str, Any]] = None,
        images: Sequence[Any] = (),
    ) -> str:
        """Callback form of generate(). Returns the full response text."""
        stream = self.generate(messages, options, images)
        async for chunk in stream:
            on_chunk(chunk.text, chunk.is_final)
        return stream.text

    # ============================================================================
    # STATUS
    # ============================================================================

    def is_loaded(self) -> bool:
        return self._active is not None

    def is_loading(self) -> bool:
        return self._loading_model is not None

    def supports_multimodal(self) -> bool:
        return self._active is not None and self._active.supports_multimodal

    def current_model_info(self) -> Optional[ModelInfo]:
        if self._active is None or self._active_model is None:
            return None
        return self._active.model_info(self._active_model)

    def status(self) -> Dict[str, Any]:
        return {
            "is_loaded": self.is_loaded(),
            "is_loading": self.is_loading(),
            "current_model": self._active_model,
            "backend_id": self._active.id if self._active else None,
            "supports_multimodal": self.supports_multimodal(),
        }

    def get_health_status(self) -> Dict[str, Any]:
        return {
            **self.status(),
            "backends": [backend.get_health_status() for backend in self.backends],
        }
