"""
Model Management Endpoints

Endpoints for AI model discovery, loading and unloading.

@.architecture
Incoming: api/v1/router.py, Frontend (HTTP) --- {HTTP requests to /v1/models, /v1/models/status, /v1/models/load, /v1/models/unload}
Processing: list_models(), model_status(), load_model(), unload_model(), _progress_stream() --- {4 jobs: model_discovery, model_loading, progress_streaming, metrics_recording}
Outgoing: core/ai/orchestrator.py, monitoring/metrics.py, Frontend (HTTP) --- {ModelsListResponse, ModelStatusResponse, NDJSON ProgressEvent stream, SuccessResponse}
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from api.dependencies import get_orchestrator, setup_request_context
from api.middleware import error_payload
from api.v1.schemas.common import ErrorResponse, SuccessResponse
from api.v1.schemas.models import LoadModelRequest, ModelSchema, ModelsListResponse, ModelStatusResponse
from core.ai.orchestrator import AIOrchestrator
from core.ai.streaming import ProgressEvent
from core.errors import StudioError
from monitoring import get_logger, studio_metrics

logger = get_logger(__name__)
router = APIRouter(
    tags=["models"],
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)

NDJSON = "application/x-ndjson"


def ndjson_line(data: Dict[str, Any]) -> str:
    return json.dumps(data) + "\n"


# =============================================================================
# Discovery
# =============================================================================

@router.get(
    "/models",
    response_model=ModelsListResponse,
    summary="List available models",
    description="Every model of every backend, multimodal first"
)
async def list_models(
    orchestrator: AIOrchestrator = Depends(get_orchestrator),
) -> ModelsListResponse:
    models = [ModelSchema(**info.to_dict()) for info in orchestrator.list_models()]
    return ModelsListResponse(models=models, count=len(models))


@router.get(
    "/models/status",
    response_model=ModelStatusResponse,
    summary="Active model status",
)
async def model_status(
    orchestrator: AIOrchestrator = Depends(get_orchestrator),
) -> ModelStatusResponse:
    info = orchestrator.current_model_info()
    return ModelStatusResponse(
        **orchestrator.status(),
        model=ModelSchema(**info.to_dict()) if info else None,
    )


# =============================================================================
# Load / Unload
# =============================================================================

@router.post(
    "/models/load",
    summary="Load model",
    description="Make a model active. Progress events are streamed as NDJSON lines"
)
async def load_model(
    request: LoadModelRequest,
    orchestrator: AIOrchestrator = Depends(get_orchestrator),
    _context: dict = Depends(setup_request_context),
) -> StreamingResponse:
    """
    Load a model with streamed progress.

    Unknown ids fail before the stream starts (404). A failed load ends the
    stream with one {"error": ...} line.
    """
    backend = orchestrator.resolve(request.model_id)
    logger.info("Model load requested", model_id=request.model_id, backend=backend.id)

    return StreamingResponse(
        _progress_stream(orchestrator, request.model_id, backend.id),
        media_type=NDJSON,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


async def _progress_stream(orchestrator: AIOrchestrator, model_id: str, backend_id: str) -> AsyncIterator[str]:
    metrics = studio_metrics()

    if orchestrator.status()["current_model"] == model_id:
        yield ndjson_line(ProgressEvent("ready", 100, "Model already loaded").to_dict())
        return

    events: asyncio.Queue = asyncio.Queue()
    task = asyncio.create_task(orchestrator.load(model_id, events.put_nowait))
    task.add_done_callback(lambda _: events.put_nowait(None))

    while True:
        event = await events.get()
        if event is None:
            break
        yield ndjson_line(event.to_dict())

    try:
        await task
    except StudioError as e:
        metrics['model_loads_total'].inc(backend=backend_id, status="error")
        logger.error("Model load failed", model_id=model_id, error=e.message)
        yield ndjson_line(error_payload(e))
        return

    metrics['model_loads_total'].inc(backend=backend_id, status="success")
    logger.info("Model loaded", model_id=model_id, backend=backend_id)


@router.post(
    "/models/unload",
    response_model=SuccessResponse,
    summary="Unload model",
)
async def unload_model(
    orchestrator: AIOrchestrator = Depends(get_orchestrator),
    _context: dict = Depends(setup_request_context),
) -> SuccessResponse:
    previous = orchestrator.status()["current_model"]
    await orchestrator.unload()
    logger.info("Model unloaded", model_id=previous)
    return SuccessResponse(
        message="Model unloaded" if previous else "No model was loaded",
        data={"model_id": previous},
    )
