"""
Chat Endpoints

Streaming assistant replies built from the live editor context.

@.architecture
Incoming: api/v1/router.py, Frontend (HTTP POST) --- {HTTP requests to /v1/chat/stream with ChatRequest}
Processing: stream_chat(), build_messages(), _chunk_stream() --- {4 jobs: context_assembly, template_selection, response_streaming, metrics_recording}
Outgoing: core/context/assembler.py, core/ai/orchestrator.py, monitoring/metrics.py, Frontend (HTTP) --- {message lists, GenerationStream, NDJSON {"text","is_final"} lines}
"""

from typing import Any, AsyncIterator, Dict, List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from api.dependencies import get_studio_engine, setup_request_context
from api.middleware import error_payload
from api.v1.endpoints.models import NDJSON, ndjson_line
from api.v1.schemas.common import ErrorResponse
from api.v1.schemas.chat import ChatRequest
from core.ai.streaming import GenerationStream
from core.errors import StudioError
from core.runtime.engine import StudioEngine
from monitoring import get_logger, studio_metrics

logger = get_logger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"], responses={409: {"model": ErrorResponse}})


def build_messages(engine: StudioEngine, request: ChatRequest) -> List[Dict[str, Any]]:
    """Template prompt when one is named, otherwise the free-form context build."""
    assembler = engine.assembler
    language = request.language or engine.context.current_language

    if request.template == "quick":
        return assembler.quick(request.message)
    if request.template == "explain":
        return assembler.explain(request.code, language)
    if request.template == "generate":
        return assembler.generate(request.message, language)
    if request.template == "fix":
        return assembler.fix(request.code, request.error, language)
    if request.template == "review":
        return assembler.review(request.code, language)

    return assembler.build(request.message, request.flags.to_flags(engine.default_flags()))


@router.post(
    "/stream",
    summary="Stream chat response",
    description="Assemble editor context and stream the reply as NDJSON lines"
)
async def stream_chat(
    request: ChatRequest,
    engine: StudioEngine = Depends(get_studio_engine),
    _context: dict = Depends(setup_request_context),
) -> StreamingResponse:
    """
    Stream an assistant reply.

    With no model loaded this fails before streaming with NotLoadedError (409).
    Failures after the first byte end the stream with one {"error": ...} line.
    """
    messages = build_messages(engine, request)
    stream = engine.orchestrator.generate(messages, request.options, request.images)

    logger.info(
        "Chat stream started",
        backend=stream.backend_id,
        template=request.template or "context",
        messages=len(messages),
        images=len(request.images),
    )

    return StreamingResponse(
        _chunk_stream(stream),
        media_type=NDJSON,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _chunk_stream(stream: GenerationStream) -> AsyncIterator[str]:
    metrics = studio_metrics()
    backend_id = stream.backend_id

    try:
        async for chunk in stream:
            if not chunk.is_final:
                metrics['generated_chunks_total'].inc(backend=backend_id)
            yield ndjson_line(chunk.to_dict())
    except StudioError as e:
        metrics['generations_total'].inc(backend=backend_id, status="error")
        logger.error("Chat stream failed", backend=backend_id, error=e.message)
        yield ndjson_line(error_payload(e))
        return

    metrics['generations_total'].inc(backend=backend_id, status="success")
    logger.info("Chat stream complete", backend=backend_id, chunks=stream.chunk_count)
