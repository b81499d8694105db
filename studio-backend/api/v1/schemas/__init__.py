"""
API V1 Schemas

Pydantic models for request/response validation.
"""

from .common import (
    SuccessResponse,
    ErrorBody,
    ErrorResponse,
    HealthStatus,
)

from .health import (
    SimpleHealthResponse,
    HealthCheckResponse,
)

from .runtimes import (
    RuntimeInfo,
    RuntimeListResponse,
    RuntimeStateResponse,
    ExecuteRequest,
    ExecuteResponse,
)

from .models import (
    ModelSchema,
    ModelsListResponse,
    ModelStatusResponse,
    LoadModelRequest,
)

from .chat import (
    ChatRequest,
    ContextFlagsSchema,
)

from .context import (
    ContextUpdate,
    ErrorReport,
    ContextSummaryResponse,
)

__all__ = [
    # Common
    "SuccessResponse",
    "ErrorBody",
    "ErrorResponse",
    "HealthStatus",
    # Health
    "SimpleHealthResponse",
    "HealthCheckResponse",
    # Runtimes
    "RuntimeInfo",
    "RuntimeListResponse",
    "RuntimeStateResponse",
    "ExecuteRequest",
    "ExecuteResponse",
    # Models
    "ModelSchema",
    "ModelsListResponse",
    "ModelStatusResponse",
    "LoadModelRequest",
    # Chat
    "ChatRequest",
    "ContextFlagsSchema",
    # Context
    "ContextUpdate",
    "ErrorReport",
    "ContextSummaryResponse",
]
