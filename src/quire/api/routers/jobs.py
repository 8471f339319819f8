"""API router for background job administration.

Provides endpoints for:
- Submitting jobs
- Queue statistics
- Inspecting failed jobs
- Pruning old completed/failed entries
- Looking up a single job
"""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from quire.api.deps import get_job_service
from quire.errors import PayloadValidationError
from quire.jobs import BackoffPolicy, BackoffType, Job, JobQueueService, JobState

router = APIRouter(prefix="/jobs", tags=["Jobs"])


class BackoffSettings(BaseModel):
    initial: int = Field(..., ge=0, description="Initial delay in milliseconds")
    multiplier: float | None = Field(default=None, gt=0)
    max: int | None = Field(default=None, ge=0, description="Delay cap in milliseconds")


class BackoffRequest(BaseModel):
    type: Literal["fixed", "exponential"]
    settings: BackoffSettings

    def to_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            type=BackoffType(self.type),
            initial=self.settings.initial,
            multiplier=self.settings.multiplier,
            max=self.settings.max,
        )


class JobSubmitRequest(BaseModel):
    """Request to submit a new job."""

    type: str = Field(..., min_length=1, description="Job type (e.g., 'send_reminder')")
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Job type specific payload data",
    )
    priority: int = Field(default=0, description="Higher is dispatched first")
    attempts: int | None = Field(default=None, ge=1, le=25, description="Maximum attempts")
    delay: int = Field(default=0, ge=0, description="Delay in milliseconds")
    backoff: BackoffRequest | None = None
    metadata: dict[str, Any] | None = None


class JobSubmitResponse(BaseModel):
    id: str


class JobResponse(BaseModel):
    """Job details response."""

    id: str
    type: str
    payload: dict[str, Any]
    priority: int
    attempts: int
    max_attempts: int
    created_at: str
    scheduled_for: str | None = None
    backoff: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    last_error: str | None = None
    state: str | None = None

    @classmethod
    def from_job(cls, job: Job, state: JobState | None = None) -> JobResponse:
        """Create response from Job instance."""
        return cls(**job.to_dict(), state=state.value if state else None)


class QueueStatsResponse(BaseModel):
    """Queue statistics response."""

    ready: int
    scheduled: int
    completed: int
    failed: int


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    count: int


class CleanupResponse(BaseModel):
    completed: int
    failed: int


@router.post("", response_model=JobSubmitResponse, status_code=201)
async def submit_job(
    request: JobSubmitRequest,
    service: JobQueueService = Depends(get_job_service),
) -> JobSubmitResponse:
    """Submit a new background job.

    The job is queued (or scheduled, with a delay) and picked up by a worker.
    """
    try:
        job_id = await service.add_job(
            request.type,
            request.payload,
            priority=request.priority,
            attempts=request.attempts,
            delay=request.delay,
            backoff=request.backoff.to_policy() if request.backoff else None,
            metadata=request.metadata,
        )
    except (PayloadValidationError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return JobSubmitResponse(id=job_id)


@router.get("/stats", response_model=QueueStatsResponse)
async def get_queue_stats(
    service: JobQueueService = Depends(get_job_service),
) -> QueueStatsResponse:
    """Counts of jobs in each queue index."""
    return QueueStatsResponse(**await service.get_queue_stats())


@router.get("/failed", response_model=JobListResponse)
async def get_failed_jobs(
    limit: int = Query(10, ge=1, le=1000, description="Maximum jobs to return"),
    service: JobQueueService = Depends(get_job_service),
) -> JobListResponse:
    """Most recently failed jobs, newest first."""
    jobs = await service.get_failed_jobs(limit)
    return JobListResponse(jobs=[JobResponse.from_job(j) for j in jobs], count=len(jobs))


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_jobs(
    older_than_days: float = Query(7, gt=0, description="Retention threshold in days"),
    service: JobQueueService = Depends(get_job_service),
) -> CleanupResponse:
    """Prune completed and failed entries older than the threshold."""
    return CleanupResponse(**await service.cleanup(older_than_days))


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: str,
    service: JobQueueService = Depends(get_job_service),
) -> JobResponse:
    """Get job details by ID."""
    job = await service.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return JobResponse.from_job(job, await service.get_job_state(job_id))
