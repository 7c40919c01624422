"""
SCM Event Listener - Main FastAPI application entry point.
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.endpoints import health
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.dependencies import close_resilient_client
from app.core.logging_config import configure_logging
from app.middleware.rate_limiting import RateLimitConfig, RateLimitMiddleware
from app.utils.error_handlers import (
    listener_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from app.utils.exceptions import ListenerException


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging(settings)
    settings.validate_required()
    logger.info(f"Application configuration loaded: {settings.masked()}")
    logger.info(f"Starting {settings.PROJECT_NAME} {settings.VERSION}...")
    yield
    await close_resilient_client()
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Registers SCM webhooks and event subscriptions with Unizo and relays verified events",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
    debug=settings.DEBUG,
)

# Add exception handlers
app.add_exception_handler(ListenerException, listener_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Add custom middleware
app.add_middleware(
    RateLimitMiddleware,
    config=RateLimitConfig(
        requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    ),
    redis_url=settings.RATE_LIMIT_REDIS_URL,
)

app.include_router(health.router)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.middleware("http")
async def add_request_id_header(request: Request, call_next):
    """Add request ID header for tracing."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.info(f"{request.method} {request.url.path}")
        response = await call_next(request)

    response.headers["X-Request-ID"] = request_id
    return response
