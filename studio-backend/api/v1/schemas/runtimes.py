"""
Runtime Schemas

Pydantic models for runtime discovery, loading and execution endpoints.

@.architecture
Incoming: api/v1/endpoints/runtimes.py --- {RuntimeDescriptor, ExecutionResult, JSON request payloads}
Processing: Pydantic validation and serialization, from_descriptor(), from_result() --- {2 jobs: data_validation, serialization}
Outgoing: api/v1/endpoints/runtimes.py --- {RuntimeInfo, RuntimeListResponse, RuntimeStateResponse, ExecuteRequest, ExecuteResponse validated models}
"""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.runtime.base import BaseRuntime, ExecutionResult
from core.runtime.descriptors import RuntimeDescriptor


# =============================================================================
# Descriptor Models
# =============================================================================

class RuntimeInfo(BaseModel):
    """Static description of one runtime."""
    id: str
    display_name: str
    category: str
    tier: str
    status: str
    size_estimate: str
    lazy: bool = True
    description: str = ""
    icon: str = ""

    @classmethod
    def from_descriptor(cls, descriptor: RuntimeDescriptor) -> "RuntimeInfo":
        return cls(**descriptor.to_dict())


class RuntimeListResponse(BaseModel):
    """Descriptor table plus aggregate counts."""
    runtimes: List[RuntimeInfo]
    stats: Dict[str, int]
    count: int = 0


class RuntimeStateResponse(BaseModel):
    """Descriptor plus the live instance state, when one exists."""
    runtime: RuntimeInfo
    state: str = "unloaded"
    version: Optional[str] = None
    cached: bool = False

    @classmethod
    def from_runtime(cls, descriptor: RuntimeDescriptor, runtime: Optional[BaseRuntime]) -> "RuntimeStateResponse":
        if runtime is None:
            return cls(runtime=RuntimeInfo.from_descriptor(descriptor))
        return cls(
            runtime=RuntimeInfo.from_descriptor(descriptor),
            state=runtime.get_state().value,
            version=runtime.get_version(),
            cached=True,
        )


# =============================================================================
# Execution Models
# =============================================================================

class ExecuteRequest(BaseModel):
    """Code to run on a loaded runtime."""
    code: str = Field(..., max_length=1_000_000)
    options: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "code": "x = 21\nx * 2",
                "options": {},
            }
        }


class ExecutionErrorInfo(BaseModel):
    kind: str
    message: str
    line: Optional[int] = None


class ExecuteResponse(BaseModel):
    """Outcome of one execution. User-code errors live in `error`."""
    runtime_id: str
    success: bool
    output: str = ""
    return_value: Any = None
    error: Optional[ExecutionErrorInfo] = None
    execution_time_ms: float = 0.0

    @classmethod
    def from_result(cls, runtime_id: str, result: ExecutionResult) -> "ExecuteResponse":
        return cls(
            runtime_id=runtime_id,
            success=result.success,
            output=result.output,
            return_value=jsonable_value(result.return_value),
            error=ExecutionErrorInfo(**result.error.to_dict()) if result.error else None,
            execution_time_ms=result.execution_time_ms,
        )


def jsonable_value(value: Any) -> Any:
    """Values JSON cannot carry are returned as their repr()."""
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value
