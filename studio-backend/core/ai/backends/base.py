"""
Generation Backend Base Classes

Shared model catalog, load state, progress reporting and HTTP client
management for the AI generation backends. Both backends talk to a
locally-running inference server over HTTP.

@.architecture
Incoming: core/ai/orchestrator.py, core/ai/backends/chat_completion.py, core/ai/backends/multimodal.py --- {model ids, progress callbacks, GenerationOptions}
Processing: load(), unload(), list_models(), owns(), get_client(), stream_sse() --- {5 jobs: catalog_management, load_state, progress_reporting, http_client_lifecycle, sse_parsing}
Outgoing: core/ai/orchestrator.py --- {ModelInfo, ProgressEvent, AsyncIterator[str] text deltas}
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence
import asyncio
import json
import logging

import httpx

from core.ai.streaming import ProgressEvent
from core.errors import GenerationError, LoadError, NotLoadedError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Any]


class BackendKind(str, Enum):
    """Generation backend kinds"""
    CHAT_COMPLETION = "chat-completion"
    MULTIMODAL = "multimodal"


@dataclass(frozen=True)
class ModelSpec:
    """Configured catalog entry"""
    id: str
    name: str = ""
    size: str = ""
    category: str = ""
    description: str = ""


@dataclass(frozen=True)
class ModelInfo:
    """Catalog entry tagged with its owning backend"""
    id: str
    name: str
    size: str
    category: str
    description: str
    backend_id: str
    supports_multimodal: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "category": self.category,
            "description": self.description,
            "backend_id": self.backend_id,
            "supports_multimodal": self.supports_multimodal,
        }


@dataclass(frozen=True)
class GenerationOptions:
    """Sampling parameters sent with every generation request"""
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 0.9
    seed: int = 0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    stop_sequences: List[str] = field(default_factory=list)

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "GenerationOptions":
        """Copy with per-call overrides applied; None values are ignored."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        updates = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **updates)


@dataclass(frozen=True)
class HTTPTimeouts:
    connect: float = 5.0
    read: float = 120.0
    write: float = 30.0
    pool: float = 5.0


class GenerationBackend(ABC):
    """
    Abstract base for generation backends.

    A backend owns the models in its catalog and holds at most one of them
    loaded. Subclasses implement server verification and the streaming call.
    """

    kind: BackendKind
    supports_multimodal: bool = False

    def __init__(
        self,
        base_url: str,
        models: Sequence[ModelSpec],
        timeouts: Optional[HTTPTimeouts] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize backend.

        Args:
            base_url: Inference server base URL
            models: Model catalog
            timeouts: HTTP timeouts
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._models: Dict[str, ModelSpec] = {spec.id: spec for spec in models}
        self._timeouts = timeouts or HTTPTimeouts()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()
        self.current_model: Optional[str] = None
        self.logger = logging.getLogger(f"ai.{self.kind.value}")

    @property
    def id(self) -> str:
        return self.kind.value

    # ============================================================================
    # CATALOG
    # ============================================================================

    def list_models(self) -> List[ModelInfo]:
        return [self._info(spec) for spec in self._models.values()]

    def owns(self, model_id: str) -> bool:
        return model_id in self._models

    def model_info(self, model_id: str) -> Optional[ModelInfo]:
        spec = self._models.get(model_id)
        return self._info(spec) if spec else None

    def _info(self, spec: ModelSpec) -> ModelInfo:
        return ModelInfo(
            id=spec.id,
            name=spec.name or spec.id,
            size=spec.size,
            category=spec.category,
            description=spec.description,
            backend_id=self.id,
            supports_multimodal=self.supports_multimodal,
        )

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    def is_loaded(self) -> bool:
        return self.current_model is not None

    async def load(self, model_id: str, on_progress: Optional[ProgressCallback] = None) -> None:
        """
        Make a model ready for generation.

        Raises:
            LoadError: server unreachable or model unavailable
        """
        if not self.owns(model_id):
            raise LoadError(f"Model '{model_id}' is not served by {self.id}")

        self._report(on_progress, ProgressEvent("initializing", 0, message=f"Preparing {model_id}"))
        try:
            await self._verify(model_id, on_progress)
        except LoadError as e:
            self._report(on_progress, ProgressEvent("error", 0, message=e.message, error=True))
            raise
        except httpx.HTTPError as e:
            message = f"Failed to reach {self.id} server at {self.base_url}: {e}"
            self._report(on_progress, ProgressEvent("error", 0, message=message, error=True))
            raise LoadError(message) from e

        self.current_model = model_id
        self._report(on_progress, ProgressEvent("ready", 100, message=f"{model_id} ready"))
        self.logger.info(f"Model loaded: {model_id}")

    async def unload(self) -> None:
        """Release the loaded model and the HTTP client."""
        previous = self.current_model
        self.current_model = None
        await self.close()
        if previous:
            self.logger.info(f"Model unloaded: {previous}")

    @abstractmethod
    async def _verify(self, model_id: str, on_progress: Optional[ProgressCallback]) -> None:
        """Check the server can serve ``model_id``. Raise LoadError if not."""

    def _report(self, on_progress: Optional[ProgressCallback], event: ProgressEvent) -> None:
        if on_progress is None:
            return
        try:
            on_progress(event)
        except Exception as e:
            self.logger.warning(f"Progress callback failed: {e}")

    # ============================================================================
    # GENERATION
    # ============================================================================

    @abstractmethod
    def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        """Stream text deltas for a role/content message list."""

    def stream_multimodal(self, parts: List[Any], options: GenerationOptions) -> AsyncIterator[str]:
        raise GenerationError(f"{self.id} backend does not accept image input", backend_id=self.id)

    def _require_loaded(self) -> str:
        if self.current_model is None:
            raise NotLoadedError(f"No model loaded on {self.id}")
        return self.current_model

    # ============================================================================
    # HTTP CLIENT MANAGEMENT
    # ============================================================================

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        async with self._client_lock:
            if self._client is None or self._client.is_closed:
                timeout = httpx.Timeout(
                    connect=self._timeouts.connect,
                    read=self._timeouts.read,
                    write=self._timeouts.write,
                    pool=self._timeouts.pool,
                )
                self._client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
                    transport=self._transport,
                    headers={"User-Agent": "PolyglotStudio/1.0"},
                )
                self.logger.debug(f"Created HTTP client for {self.base_url}")
            return self._client

    @asynccontextmanager
    async def client_context(self):
        """
        Context manager for HTTP client access. The client is reset after any
        error so a broken connection pool is not reused.
        """
        client = await self.get_client()
        try:
            yield client
        except Exception:
            await self.close()
            raise

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is not None and not self._client.is_closed:
                await self._client.aclose()
            self._client = None

    async def stream_sse(self, path: str, payload: Dict[str, Any]) -> AsyncIterator[Dict[str, Any]]:
        """
        POST a streaming request and yield decoded ``data:`` events.

        Stops at ``[DONE]``. Lines that are not JSON are skipped.

        Raises:
            GenerationError: transport failure or non-2xx response
        """
        url = f"{self.base_url}{path}"
        try:
            async with self.client_context() as client:
                async with client.stream("POST", url, json=payload) as resp:
                    if resp.status_code >= 400:
                        body = (await resp.aread()).decode("utf-8", "replace")[:500]
                        raise GenerationError(
                            f"{self.id} server returned {resp.status_code}: {body}",
                            backend_id=self.id,
                        )

                    async for line in resp.aiter_lines():
                        if not line or not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        try:
                            event = json.loads(data)
                        except ValueError:
                            continue
                        if isinstance(event, dict):
                            yield event
        except httpx.HTTPError as e:
            raise GenerationError(f"{self.id} stream failed: {e}", backend_id=self.id) from e

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "backend_id": self.id,
            "base_url": self.base_url,
            "current_model": self.current_model,
            "models": len(self._models),
            "http_client_open": self._client is not None and not self._client.is_closed,
        }
