"""
Global Error Handler Middleware - API Layer

Converts any exception that escapes an endpoint into a JSON error body.
Studio errors keep their message and carry their own status code; anything
else becomes a 500 whose message is sanitised outside development.

@.architecture
Incoming: app.py (middleware registration), exceptions from endpoints --- {FastAPI Request objects, StudioError and other exceptions}
Processing: dispatch(), _handle_error(), _classify_error(), _build_error_response(), _log_error() --- {4 jobs: exception_catching, error_classification, response_formatting, logging}
Outgoing: monitoring/logging.py, Frontend (HTTP) --- {structured error logs, JSONResponse {"error": {code, message, type, hint}}}
"""

import logging
import traceback
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.errors import StudioError

logger = logging.getLogger(__name__)


class ErrorHandlerConfig:
    """Configuration for error handler."""

    def __init__(
        self,
        include_traceback: bool = False,
        sanitize_errors: bool = True,
        log_errors: bool = True,
        hints: Optional[Dict[int, str]] = None
    ):
        """
        Args:
            include_traceback: Include traceback in response (dev only)
            sanitize_errors: Hide messages of unexpected exceptions
            log_errors: Log errors to logger
            hints: Hint text per HTTP status code
        """
        self.include_traceback = include_traceback
        self.sanitize_errors = sanitize_errors
        self.log_errors = log_errors
        self.hints = hints or self._default_hints()

    @staticmethod
    def _default_hints() -> Dict[int, str]:
        return {
            400: "Invalid request",
            403: "Your entitlement does not include this runtime",
            404: "Unknown runtime or model id",
            409: "Load the runtime or model first",
            422: "Validation error",
            500: "Internal server error",
            501: "This runtime is planned but not implemented yet",
            502: "The inference server failed during generation",
            503: "Engine or inference server unavailable",
        }


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for global error handling."""

    def __init__(self, app: ASGIApp, config: Optional[ErrorHandlerConfig] = None):
        super().__init__(app)
        self.config = config or ErrorHandlerConfig()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            return self._handle_error(request, e)

    def _handle_error(self, request: Request, error: Exception) -> JSONResponse:
        status_code, message, error_type = self._classify_error(error)

        if self.config.log_errors:
            self._log_error(request, error, status_code)

        return JSONResponse(
            status_code=status_code,
            content=self._build_error_response(
                status_code,
                message,
                error_type,
                error if self.config.include_traceback else None,
            ),
        )

    def _classify_error(self, error: Exception) -> Tuple[int, str, str]:
        """
        Returns:
            (status_code, message, error_type)
        """
        error_type = type(error).__name__

        if isinstance(error, StudioError):
            return error.status_code, error.message, error_type
        if hasattr(error, "status_code"):
            return error.status_code, str(getattr(error, "detail", error)), error_type

        message = "An error occurred processing your request" if self.config.sanitize_errors else str(error)
        return 500, message, error_type

    def _build_error_response(
        self,
        status_code: int,
        error_message: str,
        error_type: str,
        error: Optional[Exception] = None
    ) -> Dict[str, Any]:
        response: Dict[str, Any] = {
            "error": {
                "code": status_code,
                "message": error_message,
                "type": error_type,
            }
        }

        if status_code in self.config.hints:
            response["error"]["hint"] = self.config.hints[status_code]

        if error is not None:
            response["error"]["traceback"] = traceback.format_exception(
                type(error), error, error.__traceback__
            )

        return response

    def _log_error(self, request: Request, error: Exception, status_code: int) -> None:
        context = {
            "method": request.method,
            "path": str(request.url.path),
            "status_code": status_code,
            "error_type": type(error).__name__,
        }

        if status_code >= 500 and not isinstance(error, StudioError):
            logger.error(f"Server error: {error}", extra=context, exc_info=True)
        elif status_code >= 500:
            logger.error(f"Studio error: {error}", extra=context)
        else:
            logger.warning(f"Client error: {error}", extra=context)


def error_payload(error: StudioError) -> Dict[str, Any]:
    """Error body for a StudioError reported inside an already-started stream."""
    return {
        "error": {
            "code": error.status_code,
            "message": error.message,
            "type": type(error).__name__,
        }
    }


def create_error_handler_middleware(development: bool = False):
    """
    Create error handler middleware with environment-appropriate config.

    Args:
        development: Whether running in development mode

    Returns:
        Middleware class and kwargs for FastAPI
    """
    config = ErrorHandlerConfig(
        include_traceback=development,
        sanitize_errors=not development,
        log_errors=True,
    )
    return (ErrorHandlerMiddleware, {"config": config})
