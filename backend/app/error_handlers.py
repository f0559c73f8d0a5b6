"""
Exception handlers for FastAPI.

Security:
- Request IDs are logged server-side for tracing but NOT exposed to clients
- Generic error messages for 500 errors to prevent information disclosure
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from authcore.errors import AuthError, Unauthorized
from authcore.logging import get_logger

logger = get_logger("backend.errors")


def _get_request_id() -> str:
    """Current request ID from the logging context, for server-side logs only."""
    return structlog.contextvars.get_contextvars().get("request_id", "-")


def _response_payload(detail: str, status_code: int, code: str | None = None) -> dict:
    """
    Create error response payload.

    Does NOT include request_id; request IDs are logged server-side only.
    """
    payload = {"detail": detail, "status_code": status_code}
    if code is not None:
        payload["code"] = code
    return payload


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        log_method = logger.error if exc.status_code >= 500 else logger.warning
        log_method(
            "auth_error",
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
            request_id=_get_request_id(),
        )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_response_payload(exc.detail, exc.status_code, exc.code),
            headers=headers,
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning(
            "http_exception",
            detail=exc.detail,
            status_code=exc.status_code,
            request_id=_get_request_id(),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_response_payload(str(exc.detail), exc.status_code),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        # Full details stay server-side
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            request_id=_get_request_id(),
        )
        return JSONResponse(
            status_code=500,
            content=_response_payload("Internal server error", 500, "INTERNAL_ERROR"),
        )
