"""
Structured Logging - Monitoring Layer

Structured logging for the studio backend:
- JSON formatting for log aggregation
- Context injection (request ID, session ID, runtime ID)
- Configurable log levels per module

@.architecture
Incoming: app.py, main.py, api/dependencies.py, api/v1/endpoints/*.py --- {str log_level, str format_type, Dict[str, str] module_levels, str request_id/session_id/runtime_id}
Processing: configure_logging(), JSONFormatter.format(), set_request_context(), StructuredLogger._log_with_context() --- {4 jobs: context_injection, formatting, log_configuration, structured_logging}
Outgoing: sys.stdout, Log files, api layer --- {StructuredLogger instances, JSON formatted logs, context variables}
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Context variables for request tracking
request_id_ctx: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
session_id_ctx: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
runtime_id_ctx: ContextVar[Optional[str]] = ContextVar('runtime_id', default=None)

_CONTEXT_VARS = {
    'request_id': request_id_ctx,
    'session_id': session_id_ctx,
    'runtime_id': runtime_id_ctx,
}

# Libraries that log far more than the studio needs
NOISY_LOGGERS = {
    'httpx': 'WARNING',
    'httpcore': 'WARNING',
    'asyncio': 'WARNING',
    'uvicorn.access': 'WARNING',
}


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    One JSON object per line with timestamp, level, logger, message, any
    request context that is set, exception details and extra fields.
    """

    def __init__(self, include_traceback: bool = True, include_context: bool = True):
        """
        Initialize JSON formatter.

        Args:
            include_traceback: Include exception traceback in output
            include_context: Include context variables (request_id, session_id, runtime_id)
        """
        super().__init__()
        self.include_traceback = include_traceback
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if self.include_context:
            for key, var in _CONTEXT_VARS.items():
                value = var.get()
                if value:
                    log_data[key] = value

        if record.exc_info and self.include_traceback:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, 'extra_fields'):
            log_data['extra'] = record.extra_fields

        return json.dumps(log_data, default=str)


class ContextFilter(logging.Filter):
    """
    Logging filter that adds context variables to log records.

    Lets the text formatter reference %(request_id)s and friends.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, var in _CONTEXT_VARS.items():
            setattr(record, key, var.get() or '-')
        return True


class StructuredLogger:
    """
    Wrapper for a stdlib logger that accepts keyword fields.

        logger.info("Runtime loaded", runtime_id="python", elapsed_ms=12.5)
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    def _log_with_context(self, level: int, message: str, **kwargs: Any) -> None:
        extra = {'extra_fields': kwargs} if kwargs else {}
        self._logger.log(level, message, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log_with_context(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._logger.exception(message, extra={'extra_fields': kwargs} if kwargs else {})


def configure_logging(
    level: str = "INFO",
    format_type: str = "json",
    log_file: Optional[Path] = None,
    enable_console: bool = True,
    module_levels: Optional[Dict[str, str]] = None
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ("json" or "text")
        log_file: Optional file path for log output
        enable_console: Enable console (stdout) logging
        module_levels: Per-module log levels (e.g. {"runtime.sqlite": "DEBUG"})
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_type == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | [%(request_id)s] | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(ContextFilter())
        handlers.append(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(ContextFilter())
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []
    for handler in handlers:
        root_logger.addHandler(handler)

    for module_name, module_level in {**NOISY_LOGGERS, **(module_levels or {})}.items():
        logging.getLogger(module_name).setLevel(getattr(logging, module_level.upper(), logging.INFO))


def get_logger(name: str) -> StructuredLogger:
    """
    Get structured logger for module.

    Args:
        name: Logger name (usually __name__)
    """
    return StructuredLogger(name)


def set_request_context(
    request_id: Optional[str] = None,
    session_id: Optional[str] = None,
    runtime_id: Optional[str] = None,
) -> None:
    """Set context variables for the current request."""
    if request_id:
        request_id_ctx.set(request_id)
    if session_id:
        session_id_ctx.set(session_id)
    if runtime_id:
        runtime_id_ctx.set(runtime_id)


def clear_request_context() -> None:
    """Clear all context variables."""
    for var in _CONTEXT_VARS.values():
        var.set(None)


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


# Default configuration presets
LOGGING_PRESETS = {
    'development': {
        'level': 'INFO',
        'format_type': 'text',
        'enable_console': True,
        'module_levels': {'runtime': 'DEBUG'},
    },
    'production': {
        'level': 'INFO',
        'format_type': 'json',
        'enable_console': True,
        'module_levels': {},
    },
    'testing': {
        'level': 'WARNING',
        'format_type': 'text',
        'enable_console': True,
        'module_levels': {},
    },
}


def configure_from_preset(preset: str = 'development', **overrides: Any) -> None:
    """
    Configure logging from preset.

    Args:
        preset: Preset name ('development', 'production', or 'testing')
        **overrides: Override preset values
    """
    if preset not in LOGGING_PRESETS:
        raise ValueError(f"Unknown preset: {preset}. Available: {list(LOGGING_PRESETS.keys())}")

    config = dict(LOGGING_PRESETS[preset])
    config.update(overrides)
    configure_logging(**config)
