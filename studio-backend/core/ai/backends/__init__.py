"""Generation backends for the AI orchestrator."""

from .base import (
    BackendKind,
    GenerationBackend,
    GenerationOptions,
    HTTPTimeouts,
    ModelInfo,
    ModelSpec,
)
from .chat_completion import ChatCompletionBackend, estimate_model_size
from .multimodal import MultimodalBackend

__all__ = [
    "BackendKind",
    "GenerationBackend",
    "GenerationOptions",
    "HTTPTimeouts",
    "ModelInfo",
    "ModelSpec",
    "ChatCompletionBackend",
    "MultimodalBackend",
    "estimate_model_size",
]
