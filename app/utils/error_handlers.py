"""
Global exception handlers for FastAPI application.
"""

from typing import Union
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.utils.exceptions import ListenerException, SignatureError, status_code_for


async def listener_exception_handler(
    request: Request, exc: ListenerException
) -> JSONResponse:
    """Handle application exceptions, including upstream failures."""
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} -> {status_code}: {exc.message} [{exc.error_code}]")

    # signature failures never echo details back to the caller
    details = {} if isinstance(exc, SignatureError) else exc.details

    return JSONResponse(
        status_code=status_code,
        content={
            "message": exc.message,
            "error_code": exc.error_code,
            "details": details,
            "type": "listener_error",
        }
    )


async def http_exception_handler(
    request: Request, exc: Union[HTTPException, StarletteHTTPException]
) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(f"HTTP Exception on {request.method} {request.url.path}: {exc.status_code} {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "message": str(exc.detail),
            "error_code": f"HTTP_{exc.status_code}",
            "details": {},
            "type": "http_error",
        }
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation exceptions as 400s."""
    formatted_errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        formatted_errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning(f"Validation failed on {request.method} {request.url.path}: {formatted_errors}")

    return JSONResponse(
        status_code=400,
        content={
            "message": "Validation failed",
            "error_code": "VALIDATION_ERROR",
            "details": {"errors": formatted_errors},
            "type": "validation_error",
        }
    )


async def general_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Handle general exceptions."""
    logger.opt(exception=exc).error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "message": "Internal server error",
            "error_code": "INTERNAL_SERVER_ERROR",
            "details": {
                "exception_type": type(exc).__name__,
                "debug_message": str(exc) if request.app.debug else None,
            },
            "type": "internal_error",
        }
    )
