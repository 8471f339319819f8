"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request

from quire.jobs.service import JobQueueService


def get_job_service(request: Request) -> JobQueueService:
    """The job queue service attached to the application at startup."""
    service: JobQueueService | None = getattr(request.app.state, "job_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Job queue not initialized")
    return service
