"""
AI orchestration: dual-backend model management and streaming generation.
"""

from .backends import (
    BackendKind,
    ChatCompletionBackend,
    GenerationBackend,
    GenerationOptions,
    ModelInfo,
    ModelSpec,
    MultimodalBackend,
)
from .orchestrator import AIOrchestrator
from .streaming import GenerationChunk, GenerationSession, GenerationStream, ProgressEvent

__all__ = [
    "AIOrchestrator",
    "BackendKind",
    "ChatCompletionBackend",
    "GenerationBackend",
    "GenerationChunk",
    "GenerationOptions",
    "GenerationSession",
    "GenerationStream",
    "ModelInfo",
    "ModelSpec",
    "MultimodalBackend",
    "ProgressEvent",
]
