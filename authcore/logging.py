"""
Structured logging for the auth service.

structlog renders through the stdlib logging module: colored console output
in development, one JSON object per line everywhere else. Context bound with
bind_context (request id, user id) is merged into every entry until cleared.

Refresh secrets, access tokens and authorization codes are never log fields.
"""

import logging
import sys
import time
from collections.abc import Callable, Mapping, MutableMapping
from functools import wraps
from typing import Any, TypeVar

import structlog
from structlog.types import Processor

F = TypeVar("F", bound=Callable[..., Any])

SERVICE_NAME = "panopticon_auth"

_configured_level: str | None = None


def _use_console_renderer() -> bool:
    from .config import get_settings

    settings = get_settings()
    return settings.debug or settings.env.lower() == "development"


def _add_service_name(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> Mapping[str, Any] | str | bytes | bytearray | tuple[Any, ...]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def get_processors(console: bool | None = None) -> list[Processor]:
    """Processor chain; ``console`` defaults to the environment's choice."""
    if console is None:
        console = _use_console_renderer()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _add_service_name,
    ]
    if console:
        processors.append(structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback))
    else:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return processors


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog and the root logger. Repeat calls with the same level are no-ops."""
    global _configured_level
    if _configured_level == level.upper():
        return

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=get_processors(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured_level = level.upper()


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


# =============================================================================
# Context
# =============================================================================


def bind_context(**kwargs: Any) -> None:
    """Attach fields to every later entry in this context (request, task)."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """
    Bind fields for the duration of a ``with`` block.

        with LogContext(provider="github"):
            logger.info("code_exchange_started")  # carries provider
    """

    def __init__(self, **fields: Any):
        self.fields = fields

    def __enter__(self) -> "LogContext":
        bind_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        unbind_context(*self.fields)
        return False


# =============================================================================
# Component boundaries
# =============================================================================


def log_boundary(
    component: str,
    logger: structlog.stdlib.BoundLogger | None = None,
    result_fields: Callable[[Any], Mapping[str, Any]] | None = None,
) -> Callable[[F], F]:
    """
    Log ``<component>_entry``, ``<component>_exit`` and ``<component>_error``
    around a core operation.

    Only the operation name, timing and error type are recorded. Arguments
    are left out because they carry codes, secrets and tokens. Client errors
    (AuthError below 500) log at warning, everything else at error; the
    exception is always re-raised unchanged. ``result_fields`` maps the
    return value to extra fields for the exit entry, which is then logged at
    info instead of debug.

        @log_boundary("session_manager", result_fields=lambda s: {"session_id": s.session_id})
        def create_session(self, user_id: str) -> IssuedSession: ...
    """

    def decorator(func: F) -> F:
        boundary_logger = logger or get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            operation = func.__name__
            started = time.perf_counter()
            boundary_logger.debug(f"{component}_entry", operation=operation)
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                from .errors import AuthError

                is_client_error = isinstance(exc, AuthError) and exc.status_code < 500
                emit = boundary_logger.warning if is_client_error else boundary_logger.error
                emit(
                    f"{component}_error",
                    operation=operation,
                    error_type=type(exc).__name__,
                    error_code=getattr(exc, "code", None),
                    duration_seconds=round(time.perf_counter() - started, 3),
                )
                raise
            extra = dict(result_fields(result)) if result_fields else {}
            emit = boundary_logger.info if extra else boundary_logger.debug
            emit(
                f"{component}_exit",
                operation=operation,
                duration_seconds=round(time.perf_counter() - started, 3),
                **extra,
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


# =============================================================================
# ASGI
# =============================================================================


class RequestLoggingMiddleware:
    """Log start and completion of each HTTP request with status and duration."""

    def __init__(self, app):
        self.app = app
        self.logger = get_logger("http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        path = scope.get("path", "")
        started = time.perf_counter()
        status_code = 500

        async def send_with_status(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        self.logger.info("request_started", method=method, path=path)
        try:
            await self.app(scope, receive, send_with_status)
        finally:
            if status_code >= 500:
                emit = self.logger.error
            elif status_code >= 400:
                emit = self.logger.warning
            else:
                emit = self.logger.info
            emit(
                "request_complete",
                method=method,
                path=path,
                status_code=status_code,
                duration_seconds=round(time.perf_counter() - started, 3),
            )
            clear_context()


__all__ = [
    "LogContext",
    "RequestLoggingMiddleware",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_processors",
    "log_boundary",
    "unbind_context",
]
