"""
Structured logging for the generation service.

Every record carries the request, caller and generation session it was
emitted under (bound through context variables), so one generation can be
followed from the HTTP request that started it through its background task.
Records go to a JSON log and a text log, both rotated daily.
"""

import functools
import inspect
import json
import logging
import logging.handlers
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
_user_id: ContextVar[Optional[str]] = ContextVar('user_id', default=None)
_session_id: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
_operation: ContextVar[Optional[str]] = ContextVar('operation', default=None)

_CONTEXT_VARS = (
    ("request_id", _request_id),
    ("user_id", _user_id),
    ("session_id", _session_id),
    ("operation", _operation),
)

# Third-party loggers that are too chatty at INFO
_NOISY_LOGGERS = ("aiosqlite", "asyncio", "httpx", "sqlalchemy.engine")

LOG_BACKUP_DAYS = 30
CONTEXT_VALUE_LIMIT = 500


def bound_context() -> Dict[str, str]:
    """Context fields bound to the current task, without empty ones."""
    return {name: var.get() for name, var in _CONTEXT_VARS if var.get()}


def _exception_fields(exc_info) -> Dict[str, Any]:
    exc_type, exc_value, exc_tb = exc_info
    return {
        "type": exc_type.__name__ if exc_type else None,
        "message": str(exc_value) if exc_value else None,
        "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
    }


class StructuredJSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            **bound_context(),
        }
        event = getattr(record, 'event', None)
        if event:
            entry["event"] = event
        entry["message"] = record.getMessage()

        context = getattr(record, 'context', None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = _exception_fields(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Headline plus indented `key: value` lines for the bound and extra context."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        lines = [f"{timestamp} {record.levelname:8s} [{record.name}] {record.funcName}() - {record.getMessage()}"]

        fields = dict(bound_context())
        event = getattr(record, 'event', None)
        if event:
            fields["event"] = event
        context = getattr(record, 'context', None)
        if isinstance(context, dict):
            fields.update(context)
        elif context:
            fields["context"] = context

        for key, value in fields.items():
            lines.extend(self._field_lines(key, value))

        if record.exc_info:
            exception = _exception_fields(record.exc_info)
            lines.append(f"  exception: {exception['type']}: {exception['message']}")
            for chunk in exception["traceback"]:
                lines.extend(f"    {line}" for line in chunk.rstrip().split('\n'))

        return '\n'.join(lines)

    @staticmethod
    def _field_lines(key: str, value: Any):
        if isinstance(value, (dict, list)):
            rendered = json.dumps(value, indent=2, ensure_ascii=False, default=str)
            return [f"  {key}:"] + [f"    {line}" for line in rendered.split('\n')]
        text = str(value)
        if len(text) > CONTEXT_VALUE_LIMIT:
            text = text[:CONTEXT_VALUE_LIMIT] + "... (truncated)"
        return [f"  {key}: {text}"]


def _daily_file_handler(path: Path, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=str(path),
        when='midnight',
        interval=1,
        backupCount=LOG_BACKUP_DAYS,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Initialize the logging system.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files. If None, uses <project root>/logs/
        console: Also write the text format to stderr
    """
    log_dir = Path(log_dir) if log_dir else Path(__file__).resolve().parent.parent.parent / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    root_logger.addHandler(_daily_file_handler(log_dir / "generation.log.json", StructuredJSONFormatter(), level))
    root_logger.addHandler(_daily_file_handler(log_dir / "generation.log", HumanReadableFormatter(), level))
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(HumanReadableFormatter())
        root_logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    log_event(
        level="INFO",
        logger=__name__,
        operation="logging_setup",
        event="logging_initialized",
        message="Logging system initialized",
        context={"log_level": log_level, "log_dir": str(log_dir), "console": console},
    )


def generate_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def set_request_id(request_id: Optional[str]) -> None:
    _request_id.set(request_id)


def set_user_id(user_id: Optional[str]) -> None:
    """Bind the calling user to the current context."""
    _user_id.set(user_id)


def set_session_id(session_id: Optional[str]) -> None:
    """Bind a generation session id to the current context."""
    _session_id.set(session_id)


def log_event(
    level: str,
    logger: str,
    operation: Optional[str] = None,
    event: Optional[str] = None,
    message: str = "",
    context: Optional[Dict[str, Any]] = None,
    exc_info: Optional[BaseException] = None,
    function: Optional[str] = None,
) -> None:
    """
    Log a structured event.

    Args:
        level: Log level name
        logger: Logger name (usually the module path)
        operation: High-level operation, bound only for this record
        event: Event type, e.g. "operation_start"
        message: Human-readable message
        context: Operation-specific data
        exc_info: Exception to attach
        function: Originating function, recorded in the context when given
    """
    log_method = getattr(logging.getLogger(logger), level.lower(), logging.getLogger(logger).info)

    extra: Dict[str, Any] = {}
    if event:
        extra['event'] = event
    if context or function:
        extra['context'] = dict(context or {})
        if function:
            extra['context'].setdefault("function", function)

    token = _operation.set(operation) if operation else None
    try:
        log_method(message, extra=extra, exc_info=exc_info)
    finally:
        if token is not None:
            _operation.reset(token)


def log_operation_start(
    logger: str,
    function: str,
    operation: str,
    message: str = "",
    context: Optional[Dict[str, Any]] = None
) -> None:
    log_event(
        level="INFO",
        logger=logger,
        function=function,
        operation=operation,
        event="operation_start",
        message=message or f"Starting {operation}",
        context=context
    )


def log_operation_complete(
    logger: str,
    function: str,
    operation: str,
    message: str = "",
    context: Optional[Dict[str, Any]] = None,
    duration: Optional[float] = None
) -> None:
    context = dict(context or {})
    if duration is not None:
        context["duration_seconds"] = round(duration, 3)

    log_event(
        level="INFO",
        logger=logger,
        function=function,
        operation=operation,
        event="operation_complete",
        message=message or f"Completed {operation}",
        context=context
    )


def log_operation_error(
    logger: str,
    function: str,
    operation: str,
    error: BaseException,
    message: str = "",
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log a failed operation with the error type, message and traceback."""
    context = dict(context or {})
    context["error_type"] = type(error).__name__
    context["error_message"] = str(error)

    log_event(
        level="ERROR",
        logger=logger,
        function=function,
        operation=operation,
        event="operation_error",
        message=message or f"Error in {operation}",
        context=context,
        exc_info=error
    )


def operation_logger(operation_name: str):
    """
    Decorator that logs start, completion (with duration) and errors of a
    sync or async function under `operation_name`.

    Usage:
        @operation_logger("session_cleanup")
        async def run_cleanup(...):
            ...
    """
    def decorator(func):
        logger_name = func.__module__
        function_name = func.__name__

        def _started() -> float:
            log_operation_start(logger=logger_name, function=function_name, operation=operation_name)
            return time.monotonic()

        def _finished(started: float, result: Any) -> None:
            log_operation_complete(
                logger=logger_name,
                function=function_name,
                operation=operation_name,
                context={"result": str(result)[:CONTEXT_VALUE_LIMIT]},
                duration=time.monotonic() - started,
            )

        def _failed(started: float, error: BaseException) -> None:
            log_operation_error(
                logger=logger_name,
                function=function_name,
                operation=operation_name,
                error=error,
                context={"duration_seconds": round(time.monotonic() - started, 3)},
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = _started()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _failed(started, e)
                    raise
                _finished(started, result)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = _started()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failed(started, e)
                raise
            _finished(started, result)
            return result
        return wrapper
    return decorator
