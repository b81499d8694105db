"""
API Middleware Layer

Error handling for request/response processing. CORS is added directly via
FastAPI in app.py.
"""

from .error_handler import (
    ErrorHandlerMiddleware,
    ErrorHandlerConfig,
    create_error_handler_middleware,
    error_payload,
)

__all__ = [
    'ErrorHandlerMiddleware',
    'ErrorHandlerConfig',
    'create_error_handler_middleware',
    'error_payload',
]
