"""
Error handler middleware.

Renders domain exceptions, request validation errors and anything
unexpected as the same JSON envelope:

    {"error": "...", "correlation_id": "...", "details": {...}}
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from hvac_dispatch.lib.errors import AppException
from hvac_dispatch.lib.logging import get_logger, get_correlation_id

logger = get_logger(__name__)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or get_correlation_id() or "unknown"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handler for domain exceptions (not found, conflict, invalid
    transition, validation, data source failure).
    """
    correlation_id = _correlation_id(request)
    
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Application error: {exc.message}",
        extra={
            "correlation_id": correlation_id,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )
    
    response_content = {
        "error": exc.message,
        "correlation_id": correlation_id,
    }
    if exc.details:
        response_content["details"] = exc.details
    
    return JSONResponse(status_code=exc.status_code, content=response_content)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handler for request body / query validation errors."""
    correlation_id = _correlation_id(request)
    
    errors = [
        {
            "loc": list(error["loc"]),
            "msg": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    
    logger.warning(
        "Validation error",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
            "errors": errors,
        },
    )
    
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "correlation_id": correlation_id,
            "details": {"errors": errors},
        },
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handler for routing-level HTTP errors (unknown path, wrong method)."""
    correlation_id = _correlation_id(request)
    
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "correlation_id": correlation_id,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "correlation_id": correlation_id,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Logs the stack trace and answers with a generic 500."""
    correlation_id = _correlation_id(request)
    
    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "correlation_id": correlation_id,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "correlation_id": correlation_id,
        },
    )
