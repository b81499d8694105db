"""
Context Endpoints

Editor-state updates that feed the assistant's context.

@.architecture
Incoming: api/v1/router.py, Frontend editor (HTTP) --- {HTTP requests to /v1/context, /v1/context/errors, /v1/context/summary}
Processing: update_context(), add_error(), clear_errors(), context_summary() --- {3 jobs: editor_state_sync, error_tracking, summary_reporting}
Outgoing: core/context/state.py, Frontend (HTTP) --- {ConversationContext mutations, ContextSummaryResponse}
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_context, setup_request_context
from api.v1.schemas.context import ContextSummaryResponse, ContextUpdate, ErrorReport
from core.context.state import ConversationContext, ErrorEntry, FileRef
from monitoring import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/context", tags=["context"])


@router.put(
    "",
    response_model=ContextSummaryResponse,
    summary="Update editor state",
)
async def update_context(
    update: ContextUpdate,
    context: ConversationContext = Depends(get_context),
    _context: dict = Depends(setup_request_context),
) -> ContextSummaryResponse:
    if update.current_file is not None:
        context.set_current_file(FileRef(**update.current_file.model_dump()), update.code)
    elif update.code is not None:
        context.on_content_change(update.code)

    if update.language:
        context.current_language = update.language
    if update.selection is not None:
        context.on_selection_change(update.selection)
    if update.cursor is not None:
        context.on_cursor_change(update.cursor.line, update.cursor.column)

    if update.open_files is not None:
        context.open_files = []
        for file in update.open_files:
            context.add_open_file(FileRef(**file.model_dump()))

    logger.debug("Editor context updated", fields=sorted(update.model_dump(exclude_unset=True)))
    return ContextSummaryResponse(**context.summary())


@router.post(
    "/errors",
    response_model=ContextSummaryResponse,
    summary="Record an error",
    description="Newest first; only the most recent few are kept"
)
async def add_error(
    report: ErrorReport,
    context: ConversationContext = Depends(get_context),
) -> ContextSummaryResponse:
    context.add_recent_error(ErrorEntry(kind=report.kind, message=report.message, line=report.line))
    return ContextSummaryResponse(**context.summary())


@router.delete(
    "/errors",
    response_model=ContextSummaryResponse,
    summary="Clear recorded errors",
)
async def clear_errors(
    context: ConversationContext = Depends(get_context),
) -> ContextSummaryResponse:
    context.clear_recent_errors()
    return ContextSummaryResponse(**context.summary())


@router.get(
    "/summary",
    response_model=ContextSummaryResponse,
    summary="Editor state summary",
)
async def context_summary(
    context: ConversationContext = Depends(get_context),
) -> ContextSummaryResponse:
    return ContextSummaryResponse(**context.summary())
