"""FastAPI application factory for quire.

Creates the application with:
- Job administration routers (/jobs)
- Liveness and readiness probes
- Prometheus metrics
- Lifecycle management for the Redis-backed job queue and its worker
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from quire.api.routers import health, jobs
from quire.api.routers import metrics as metrics_router
from quire.config import Settings, settings
from quire.observability import configure_logging, get_metrics
from quire.runtime import create_runtime

logger = logging.getLogger(__name__)


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The job queue service is built on startup and attached to
    ``app.state.job_service``. With ``run_worker_in_app`` enabled the worker
    runs inside the API process; otherwise run ``quire worker`` separately.
    """
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(json_format=cfg.use_json_logs, level=cfg.log_level)
        get_metrics(enabled=cfg.enable_metrics)

        logger.info(f"Starting {cfg.app_name} ({cfg.env})")
        runtime = create_runtime(cfg)
        app.state.runtime = runtime
        app.state.job_service = runtime.jobs

        if cfg.run_worker_in_app:
            await runtime.jobs.start_worker()

        logger.info(f"{cfg.app_name} startup complete")

        yield

        logger.info(f"Shutting down {cfg.app_name}")
        await runtime.close()
        app.state.job_service = None
        logger.info(f"{cfg.app_name} shutdown complete")

    app = FastAPI(
        title=cfg.app_name,
        description="Job queue with priority, delayed jobs and retry backoff",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(jobs.router)

    # Metrics endpoint (Prometheus)
    if cfg.enable_metrics:
        app.include_router(metrics_router.router)

    return app
