# app/core/errors.py
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import DomainError, InternalError, ValidationError

logger = logging.getLogger(__name__)


def envelope(
    success: bool,
    message: Optional[str] = None,
    data: Any = None,
    error: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build the {success, message?, data?, error?} body every endpoint returns."""
    body: Dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    return body


def _error_response(status_code: int, message: str, error: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(False, message=message, error=error),
        headers=headers,
    )


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        if isinstance(exc, InternalError):
            logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(exc.status_code, exc.message, exc.code, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(400, _first_validation_message(exc), ValidationError.__name__)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(exc.status_code, message, "HTTPError", headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = "Internal server error"
        if settings.debug and not settings.is_production:
            message = f"{message}: {exc}"
        return _error_response(500, message, InternalError.__name__)
