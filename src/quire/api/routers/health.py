"""Health check endpoints for the quire job queue.

Provides Kubernetes-compatible liveness and readiness probes:
- /health/live  - Liveness probe (always returns OK if process is running)
- /health/ready - Readiness probe (checks Redis connectivity)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from quire.store.redis import ping_redis

router = APIRouter(tags=["health"])

REDIS_CHECK_TIMEOUT = 5.0  # seconds


async def check_redis(request: Request) -> dict[str, Any]:
    """Check Redis connectivity for the job queue attached to the app."""
    service = getattr(request.app.state, "job_service", None)
    if service is None:
        return {"status": "down", "message": "Job queue not initialized"}

    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(ping_redis(service.redis), timeout=REDIS_CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        healthy = False
        message: str | None = "Redis check timed out"
    else:
        message = None if healthy else "Redis check failed"

    result: dict[str, Any] = {
        "status": "up" if healthy else "down",
        "latency_ms": round((time.monotonic() - start) * 1000, 2),
    }
    if message:
        result["message"] = message
    return result


@router.get("/health/live")
async def live() -> dict[str, str]:
    """Liveness probe.

    Returns OK if the process is running.
    """
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe.

    Returns 200 when Redis answers a ping, 503 otherwise.
    """
    redis_check = await check_redis(request)
    healthy = redis_check["status"] == "up"
    return JSONResponse(
        content={
            "status": "healthy" if healthy else "unhealthy",
            "checks": {"redis": redis_check},
        },
        status_code=200 if healthy else 503,
    )
