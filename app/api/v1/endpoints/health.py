"""
Health check endpoints for container orchestration.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.config import Settings, get_settings
from app.core.dependencies import get_gateway
from app.integrations.unizo.gateway import UpstreamGateway

router = APIRouter(prefix="/health", tags=["Health"])

SERVICE_NAME = "scm-event-listener"


def _status(status: str, **extra: Any) -> Dict[str, Any]:
    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        **extra,
    }


@router.get("")
async def health():
    """Basic health check."""
    return _status("healthy")


@router.get("/readiness")
async def readiness():
    return _status("ok", message="Service is ready to accept traffic")


@router.get("/liveness")
async def liveness():
    return _status("ok", message="Service is running correctly")


@router.get("/detailed")
async def detailed_health(
    gateway: UpstreamGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    """Check that the Unizo API answers a one-page repository listing."""
    start_time = time.time()
    try:
        await gateway.list_repositories(settings.TARGET_ORGANIZATION)
    except Exception as e:
        logger.error(f"Detailed health check failed: {e}")
        return JSONResponse(status_code=503, content=_status("unhealthy", error=str(e)))

    latency_ms = (time.time() - start_time) * 1000
    return _status(
        "healthy",
        checks={"unizoApi": {"status": "healthy", "latency": f"{latency_ms:.0f}ms"}},
    )
