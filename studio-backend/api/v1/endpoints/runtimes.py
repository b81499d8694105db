"""
Runtime Endpoints

Discovery, loading, execution and release of language and database runtimes.

@.architecture
Incoming: api/v1/router.py, Frontend (HTTP) --- {HTTP requests to /v1/runtimes, /v1/runtimes/{id}, /v1/runtimes/{id}/load, /v1/runtimes/{id}/execute, X-Entitlement header}
Processing: list_runtimes(), get_runtime(), load_runtime(), execute_code(), release_runtime() --- {5 jobs: descriptor_listing, entitlement_gating, runtime_loading, code_execution, metrics_recording}
Outgoing: core/runtime/registry.py, core/runtime/manager.py, core/context/state.py, monitoring/metrics.py, Frontend (HTTP) --- {RuntimeListResponse, RuntimeStateResponse, ExecuteResponse, SuccessResponse}
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_entitlement, get_registry, get_studio_engine, setup_request_context
from api.v1.schemas.common import ErrorResponse, SuccessResponse
from api.v1.schemas.runtimes import (
    ExecuteRequest,
    ExecuteResponse,
    RuntimeInfo,
    RuntimeListResponse,
    RuntimeStateResponse,
)
from core.context.state import ErrorEntry
from core.errors import StudioError
from core.runtime.descriptors import Category, Status, Tier
from core.runtime.engine import StudioEngine
from core.runtime.registry import RuntimeRegistry
from monitoring import get_logger, set_request_context, studio_metrics

logger = get_logger(__name__)
router = APIRouter(
    prefix="/runtimes",
    tags=["runtimes"],
    responses={code: {"model": ErrorResponse} for code in (403, 404, 409, 501)},
)


# =============================================================================
# Discovery
# =============================================================================

@router.get(
    "",
    response_model=RuntimeListResponse,
    summary="List runtimes",
    description="Descriptor table with optional filters, plus aggregate counts"
)
async def list_runtimes(
    status: Optional[Status] = Query(None, description="implemented or planned"),
    tier: Optional[Tier] = Query(None, description="free, pro or enterprise"),
    category: Optional[Category] = Query(None, description="language or database"),
    registry: RuntimeRegistry = Depends(get_registry),
) -> RuntimeListResponse:
    descriptors = registry.list_descriptors()
    if status is not None:
        descriptors = [d for d in descriptors if d.status == status]
    if tier is not None:
        descriptors = [d for d in descriptors if d.tier == tier]
    if category is not None:
        descriptors = [d for d in descriptors if d.category == category]

    return RuntimeListResponse(
        runtimes=[RuntimeInfo.from_descriptor(d) for d in descriptors],
        stats=registry.stats(),
        count=len(descriptors),
    )


@router.get(
    "/{runtime_id}",
    response_model=RuntimeStateResponse,
    summary="Describe runtime",
)
async def get_runtime(
    runtime_id: str,
    registry: RuntimeRegistry = Depends(get_registry),
) -> RuntimeStateResponse:
    """Raises UnknownRuntimeError (404) for ids outside the descriptor table."""
    descriptor = registry.describe(runtime_id)
    return RuntimeStateResponse.from_runtime(descriptor, registry.peek(runtime_id))


# =============================================================================
# Load / Execute / Release
# =============================================================================

@router.post(
    "/{runtime_id}/load",
    response_model=RuntimeStateResponse,
    summary="Load runtime",
    description="Load a runtime and, by default, make it the current language"
)
async def load_runtime(
    runtime_id: str,
    select: bool = Query(True, description="Make this the current language"),
    entitlement: Tier = Depends(get_entitlement),
    engine: StudioEngine = Depends(get_studio_engine),
    _context: dict = Depends(setup_request_context),
) -> RuntimeStateResponse:
    set_request_context(runtime_id=runtime_id)
    metrics = studio_metrics()

    try:
        if select:
            runtime = await engine.runtime_manager.switch_language(runtime_id, entitlement)
        else:
            runtime = await engine.registry.acquire(runtime_id, entitlement)
    except StudioError as e:
        metrics['runtime_loads_total'].inc(runtime=runtime_id, status="error")
        logger.warning("Runtime load refused", runtime_id=runtime_id, error=type(e).__name__)
        raise

    metrics['runtime_loads_total'].inc(runtime=runtime_id, status="success")
    metrics['runtimes_cached'].set(len(engine.registry.cached_ids()))
    logger.info("Runtime ready", runtime_id=runtime_id, version=runtime.get_version(), selected=select)

    return RuntimeStateResponse.from_runtime(engine.registry.describe(runtime_id), runtime)


@router.post(
    "/{runtime_id}/execute",
    response_model=ExecuteResponse,
    summary="Execute code",
    description="Run code on a loaded runtime. Errors in the code are returned in the result"
)
async def execute_code(
    runtime_id: str,
    request: ExecuteRequest,
    entitlement: Tier = Depends(get_entitlement),
    engine: StudioEngine = Depends(get_studio_engine),
    _context: dict = Depends(setup_request_context),
) -> ExecuteResponse:
    """
    Execute code.

    The runtime must already be loaded; otherwise NotLoadedError (409).
    Failed executions are also recorded as recent errors for the assistant.
    """
    set_request_context(runtime_id=runtime_id)
    metrics = studio_metrics()

    runtime = engine.registry.get(runtime_id, entitlement)
    result = await runtime.execute(request.code, request.options)

    outcome = "success" if result.success else "error"
    metrics['executions_total'].inc(runtime=runtime_id, status=outcome)
    metrics['execution_duration_seconds'].observe(result.execution_time_ms / 1000, runtime=runtime_id)

    if result.error is not None:
        engine.context.add_recent_error(
            ErrorEntry(kind=result.error.kind, message=result.error.message, line=result.error.line)
        )
        logger.debug("Execution failed", runtime_id=runtime_id, kind=result.error.kind)

    return ExecuteResponse.from_result(runtime_id, result)


@router.delete(
    "/{runtime_id}",
    response_model=SuccessResponse,
    summary="Release runtime",
    description="Dispose the cached runtime instance; the next load starts fresh"
)
async def release_runtime(
    runtime_id: str,
    engine: StudioEngine = Depends(get_studio_engine),
    _context: dict = Depends(setup_request_context),
) -> SuccessResponse:
    engine.registry.describe(runtime_id)
    released = engine.release_runtime(runtime_id)
    studio_metrics()['runtimes_cached'].set(len(engine.registry.cached_ids()))

    logger.info("Runtime released", runtime_id=runtime_id, released=released)
    return SuccessResponse(
        message=f"Runtime {runtime_id} released" if released else f"Runtime {runtime_id} was not loaded",
        data={"runtime_id": runtime_id, "released": released},
    )
