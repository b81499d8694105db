"""
Generation Streaming Primitives

Chunk, progress and session records plus GenerationStream, the lazy,
single-use async iterator every generate() call returns.

@.architecture
Incoming: core/ai/orchestrator.py, core/ai/backends/*.py --- {AsyncIterator[str] text deltas, progress updates}
Processing: GenerationStream.__aiter__(), collect(), ProgressEvent.to_dict() --- {4 jobs: chunk_framing, terminal_chunk, error_normalisation, single_use_guard}
Outgoing: core/ai/orchestrator.py, api/v1/endpoints/chat.py, api/v1/endpoints/models.py --- {GenerationChunk, ProgressEvent, str full text}
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from core.errors import GenerationError, StreamConsumedError


@dataclass(frozen=True)
class GenerationChunk:
    """One streamed piece of a response. Exactly one chunk per stream is final."""
    text: str
    is_final: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "is_final": self.is_final}


@dataclass(frozen=True)
class ProgressEvent:
    """Model load progress, forwarded verbatim from the backend."""
    status: str
    progress_percent: int
    message: Optional[str] = None
    error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status, "progress_percent": self.progress_percent}
        if self.message is not None:
            data["message"] = self.message
        if self.error:
            data["error"] = True
        return data


@dataclass
class GenerationSession:
    """Inputs of one generate() call."""
    backend_id: str
    model_id: str
    messages: List[Dict[str, Any]]
    images: Sequence[Any] = field(default_factory=tuple)


class GenerationStream:
    """
    Async iterator over GenerationChunk.

    Nothing is sent to the backend until iteration starts. Iterating a second
    time raises StreamConsumedError. Any backend failure surfaces as
    GenerationError and no final chunk is produced for a failed stream.
    """

    def __init__(self, source: AsyncIterator[str], session: GenerationSession):
        self.session = session
        self._source = source
        self._consumed = False
        self._parts: List[str] = []
        self.completed = False

    @property
    def backend_id(self) -> str:
        return self.session.backend_id

    @property
    def text(self) -> str:
        """Text received so far."""
        return "".join(self._parts)

    @property
    def chunk_count(self) -> int:
        return len(self._parts)

    def __aiter__(self) -> AsyncIterator[GenerationChunk]:
        if self._consumed:
            raise StreamConsumedError("Generation stream has already been consumed")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[GenerationChunk]:
        try:
            async for delta in self._source:
                if not delta:
                    continue
                self._parts.append(delta)
                yield GenerationChunk(text=delta, is_final=False)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Generation failed: {e}", backend_id=self.backend_id) from e

        self.completed = True
        yield GenerationChunk(text="", is_final=True)

    async def collect(self) -> str:
        """Drain the stream and return the full response text."""
        async for _ in self:
            pass
        return self.text
