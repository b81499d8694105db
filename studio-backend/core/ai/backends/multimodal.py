"""
Multimodal Backend

llama.cpp-style completion server hosting a vision-capable Gemma model. Takes
one prompt string plus ``image_data``; images are referenced inline as
``[img-N]``.

@.architecture
Incoming: core/ai/orchestrator.py --- {model id, List[Dict] messages, List[PromptPart] interleaved input, GenerationOptions}
Processing: _verify(), stream_chat(), stream_multimodal(), _payload() --- {3 jobs: health_check, prompt_rendering, image_referencing}
Outgoing: core/ai/orchestrator.py --- {AsyncIterator[str] content deltas, ProgressEvent}
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from core.ai.backends.base import (
    BackendKind,
    GenerationBackend,
    GenerationOptions,
    ModelSpec,
    ProgressCallback,
)
from core.ai.prompting import ImageInput, PromptPart, render_turns
from core.ai.streaming import ProgressEvent
from core.errors import LoadError

DEFAULT_MODELS = [
    ModelSpec(
        id="gemma-3n-E2B-it",
        name="Gemma 3n E2B (Multimodal)",
        size="2.8GB",
        category="large",
        description="Vision and text model for screenshots and diagrams",
    ),
    ModelSpec(
        id="gemma-3-270m-it-q8",
        name="Gemma 3 270M",
        size="263MB",
        category="small",
        description="Small text-only Gemma for quick answers",
    ),
]


class MultimodalBackend(GenerationBackend):
    """Streaming completion over ``POST {base}/completion``"""

    kind = BackendKind.MULTIMODAL
    supports_multimodal = True

    def __init__(self, base_url: str, models: Optional[Sequence[ModelSpec]] = None, **kwargs):
        super().__init__(base_url, list(models) if models else DEFAULT_MODELS, **kwargs)

    async def _verify(self, model_id: str, on_progress: Optional[ProgressCallback]) -> None:
        self._report(on_progress, ProgressEvent("connecting", 10, message=f"Contacting {self.base_url}"))

        async with self.client_context() as client:
            resp = await client.get(f"{self.base_url}/health")

        # llama.cpp answers 503 while the weights are still loading
        if resp.status_code == 503:
            raise LoadError(f"{self.id} server is still loading its model")
        if resp.status_code >= 400:
            raise LoadError(f"{self.id} server returned {resp.status_code} for /health")

        self._report(on_progress, ProgressEvent("verifying_model", 50, message=f"{model_id} reachable"))

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        self._require_loaded()
        async for delta in self._stream(render_turns(messages), [], options):
            yield delta

    async def stream_multimodal(
        self,
        parts: List[PromptPart],
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        self._require_loaded()
        prompt = ""
        images: List[Dict[str, Any]] = []
        for part in parts:
            if isinstance(part, ImageInput):
                image_id = len(images) + 1
                images.append({"id": image_id, "data": part.data})
                prompt += f"[img-{image_id}]"
            else:
                prompt += part

        async for delta in self._stream(prompt, images, options):
            yield delta

    async def _stream(
        self,
        prompt: str,
        images: List[Dict[str, Any]],
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        async for event in self.stream_sse("/completion", self._payload(prompt, images, options)):
            content = event.get("content")
            if content:
                yield content
            if event.get("stop"):
                break

    def _payload(
        self,
        prompt: str,
        images: List[Dict[str, Any]],
        options: GenerationOptions,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": prompt,
            "stream": True,
            "n_predict": options.max_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
            "seed": options.seed,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
            "stop": ["<end_of_turn>", *options.stop_sequences],
        }
        if images:
            payload["image_data"] = images
        return payload
