"""Translation of application errors into JSON HTTP responses.

``STATUS_CODES`` is the only place that maps an error variant to a status
code. Handlers are registered on the app by ``register_exception_handlers``.
"""

import traceback
from typing import Any, Dict, Optional, Type
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.errors import (
    AppError,
    Conflict,
    Forbidden,
    Internal,
    InvalidCredentials,
    InvalidOrExpired,
    NotFound,
    TokenExpired,
    TokenMalformed,
    TokenVerificationError,
    Unauthorized,
    ValidationError,
)

logger = structlog.get_logger(__name__)

STATUS_CODES: Dict[Type[AppError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    Conflict: status.HTTP_409_CONFLICT,
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    TokenExpired: status.HTTP_401_UNAUTHORIZED,
    TokenMalformed: status.HTTP_401_UNAUTHORIZED,
    TokenVerificationError: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidOrExpired: status.HTTP_400_BAD_REQUEST,
    Internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
    AppError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(error: AppError) -> int:
    """Exact variant lookup; an unlisted subclass is a programming error."""
    try:
        return STATUS_CODES[type(error)]
    except KeyError:
        raise TypeError(f"No status code mapped for {type(error).__name__}")


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


def error_body(
    *,
    message: str,
    code: str,
    status_code: int,
    correlation_id: str,
    debug: bool,
    details: Any = None,
    exc: Optional[BaseException] = None,
) -> Dict[str, Any]:
    """Build the JSON error envelope; details and stack only in debug mode."""
    body: Dict[str, Any] = {
        "status": "error",
        "error": message,
        "code": code,
        "statusCode": status_code,
        "correlationId": correlation_id,
    }
    if debug:
        if details is not None:
            body["details"] = details
        if exc is not None:
            body["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
    return body


def register_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Attach the error handlers to ``app``."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        status_code = status_code_for(exc)
        correlation_id = _correlation_id(request)

        log = logger.error if status_code >= 500 else logger.info
        log(
            "request_failed",
            code=exc.code,
            status_code=status_code,
            path=request.url.path,
        )

        headers = {"X-Correlation-Id": correlation_id}
        if status_code == status.HTTP_401_UNAUTHORIZED:
            headers["WWW-Authenticate"] = "Bearer"

        return JSONResponse(
            status_code=status_code,
            content=error_body(
                message=exc.message,
                code=exc.code,
                status_code=status_code,
                correlation_id=correlation_id,
                debug=debug,
                details=exc.details,
                exc=exc,
            ),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return 400 naming the first invalid field."""
        correlation_id = _correlation_id(request)

        errors = exc.errors()
        if errors:
            first_error = errors[0]
            field = ".".join(
                str(loc) for loc in first_error.get("loc", ["unknown"]) if loc != "body"
            )
            message = first_error.get("msg", "Validation failed")
            detail = f"Field '{field}': {message}"
        else:
            detail = "Request validation failed"

        logger.warning("validation_error", detail=detail, path=request.url.path)

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                message=detail,
                code=ValidationError.code,
                status_code=status.HTTP_400_BAD_REQUEST,
                correlation_id=correlation_id,
                debug=debug,
                details=[
                    {"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors
                ],
            ),
            headers={"X-Correlation-Id": correlation_id},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Framework-raised errors such as 404 for unknown routes."""
        correlation_id = _correlation_id(request)
        code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                message=str(exc.detail),
                code=code,
                status_code=exc.status_code,
                correlation_id=correlation_id,
                debug=debug,
            ),
            headers={"X-Correlation-Id": correlation_id, **(exc.headers or {})},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = _correlation_id(request)
        logger.exception("unhandled_exception", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                message="Internal Server Error",
                code=Internal.code,
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                correlation_id=correlation_id,
                debug=debug,
                details=str(exc),
                exc=exc,
            ),
            headers={"X-Correlation-Id": correlation_id},
        )
