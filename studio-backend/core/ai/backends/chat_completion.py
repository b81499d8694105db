"""
Chat-Completion Backend

OpenAI-compatible local server (LM Studio, llama.cpp ``server`` in OpenAI
mode). Accepts role/content message arrays only.

@.architecture
Incoming: core/ai/orchestrator.py --- {model id, List[Dict] messages, GenerationOptions}
Processing: _verify(), stream_chat(), estimate_model_size() --- {3 jobs: model_verification, sse_streaming, size_estimation}
Outgoing: core/ai/orchestrator.py --- {AsyncIterator[str] content deltas, ProgressEvent}
"""

from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple
import re

from core.ai.backends.base import (
    BackendKind,
    GenerationBackend,
    GenerationOptions,
    ModelSpec,
    ProgressCallback,
)
from core.ai.streaming import ProgressEvent
from core.errors import LoadError

# Checked in order; first match wins.
_SIZE_TABLE: List[Tuple[Tuple[str, ...], str, str]] = [
    (("0.5b", "500m"), "~300MB", "small"),
    (("1.1b", "1b"), "~600MB", "small"),
    (("2.7b", "2b"), "~1.5GB", "medium"),
    (("3b",), "~2GB", "medium"),
    (("7b",), "~4GB", "large"),
    (("8b",), "~4.5GB", "large"),
    (("13b",), "~7GB", "large"),
    (("70b",), "~35GB", "large"),
]

FALLBACK_MODELS = [
    ModelSpec(
        id="TinyLlama-1.1B-Chat-v1.0-q4f16_1-MLC",
        name="TinyLlama 1.1B",
        description="Fast, lightweight chat model",
    ),
    ModelSpec(
        id="Phi-2-q4f16_1-MLC",
        name="Phi-2",
        description="Compact model tuned for reasoning and code",
    ),
    ModelSpec(
        id="Mistral-7B-Instruct-v0.3-q4f16_1-MLC",
        name="Mistral 7B Instruct",
        description="General purpose instruction model",
    ),
]


def estimate_model_size(model_id: str) -> Tuple[str, str]:
    """
    Guess (size, category) from the parameter count in a model id.

    >>> estimate_model_size("Llama-3.2-1B-Instruct")
    ('~600MB', 'small')
    """
    lowered = model_id.lower()
    for markers, size, category in _SIZE_TABLE:
        for marker in markers:
            if re.search(rf"(?<![\d.]){re.escape(marker)}(?![a-z])", lowered):
                return size, category
    return "~2GB", "large"


def _with_estimates(spec: ModelSpec) -> ModelSpec:
    if spec.size and spec.category:
        return spec
    size, category = estimate_model_size(spec.id)
    return ModelSpec(
        id=spec.id,
        name=spec.name or spec.id,
        size=spec.size or size,
        category=spec.category or category,
        description=spec.description,
    )


class ChatCompletionBackend(GenerationBackend):
    """Streaming chat over ``POST {base}/chat/completions``"""

    kind = BackendKind.CHAT_COMPLETION
    supports_multimodal = False

    def __init__(self, base_url: str, models: Optional[Sequence[ModelSpec]] = None, **kwargs):
        catalog = list(models) if models else FALLBACK_MODELS
        super().__init__(base_url, [_with_estimates(spec) for spec in catalog], **kwargs)

    async def _verify(self, model_id: str, on_progress: Optional[ProgressCallback]) -> None:
        self._report(on_progress, ProgressEvent("connecting", 10, message=f"Contacting {self.base_url}"))

        async with self.client_context() as client:
            resp = await client.get(f"{self.base_url}/models")
            if resp.status_code >= 400:
                raise LoadError(f"{self.id} server returned {resp.status_code} for /models")
            try:
                payload = resp.json()
            except ValueError as e:
                raise LoadError(f"{self.id} server sent an invalid /models response") from e

        self._report(on_progress, ProgressEvent("verifying_model", 50, message=f"Checking {model_id}"))

        served = {entry.get("id") for entry in payload.get("data", []) if isinstance(entry, dict)}
        if model_id not in served:
            raise LoadError(f"Model '{model_id}' is not available on {self.base_url}")

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        model = self._require_loaded()
        payload: Dict[str, Any] = {
            "model": model,
            "stream": True,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "top_p": options.top_p,
            "seed": options.seed,
            "frequency_penalty": options.frequency_penalty,
            "presence_penalty": options.presence_penalty,
        }
        if options.stop_sequences:
            payload["stop"] = list(options.stop_sequences)

        async for event in self.stream_sse("/chat/completions", payload):
            choices = event.get("choices") or [{}]
            delta = choices[0].get("delta", {}).get("content")
            if delta:
                yield delta
