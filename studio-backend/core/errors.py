"""
Studio Error Taxonomy

Typed exceptions shared by the runtime registry, the runtime contract, the AI
orchestrator and the API layer.

@.architecture
Incoming: core/runtime/*.py, core/ai/*.py, core/context/*.py --- {raise sites for orchestration and engine failures}
Processing: StudioError hierarchy with HTTP status hints --- {2 jobs: error_classification, status_mapping}
Outgoing: api/middleware/error_handler.py, api/v1/endpoints/*.py --- {typed exceptions carrying status_code}
"""

from typing import Optional


class StudioError(Exception):
    """Base class for every error raised by the orchestration core."""

    status_code: int = 500

    def __init__(self, message: str, *, runtime_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.runtime_id = runtime_id


class UnknownRuntimeError(StudioError):
    """No descriptor is registered for the requested id."""

    status_code = 404


class UnknownModelError(StudioError):
    """Neither AI backend owns the requested model id."""

    status_code = 404


class UnavailableError(StudioError):
    """A descriptor exists but its engine is not implemented yet."""

    status_code = 501


class EntitlementError(StudioError):
    """The caller's tier does not cover the requested descriptor."""

    status_code = 403


class NotLoadedError(StudioError):
    """execute()/generate() was called before a successful load()."""

    status_code = 409


class RuntimeDisposedError(StudioError):
    """The instance was disposed and cannot be used again."""

    status_code = 409


class LoadError(StudioError):
    """Engine initialisation failed. The owner is back in the Unloaded state."""

    status_code = 503


class ExecutionError(StudioError):
    """
    Engine raised while running user code.

    Adapters raise this internally; BaseRuntime captures it into
    ExecutionResult.error so it never crosses the runtime boundary.
    """

    status_code = 422

    def __init__(
        self,
        message: str,
        *,
        kind: str = "Error",
        line: Optional[int] = None,
        output: str = "",
        runtime_id: Optional[str] = None,
    ):
        super().__init__(message, runtime_id=runtime_id)
        self.kind = kind
        self.line = line
        self.output = output


class GenerationError(StudioError):
    """A streaming generation failed. No partial result counts as success."""

    status_code = 502

    def __init__(self, message: str, *, backend_id: Optional[str] = None):
        super().__init__(message)
        self.backend_id = backend_id


class StreamConsumedError(StudioError):
    """A GenerationStream was iterated a second time."""

    status_code = 409


__all__ = [
    "StudioError",
    "UnknownRuntimeError",
    "UnknownModelError",
    "UnavailableError",
    "EntitlementError",
    "NotLoadedError",
    "RuntimeDisposedError",
    "LoadError",
    "ExecutionError",
    "GenerationError",
    "StreamConsumedError",
]
