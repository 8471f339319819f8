"""Job queue service: the producer and operator facing entry point.

Composes a ``JobQueue`` (store operations) and a ``JobWorker`` (dispatch)
behind one explicitly constructed object with a clear lifecycle:

    service = JobQueueService(redis)
    service.register_processor("send_reminder", handle_reminder)
    await service.start_worker()

    job_id = await service.add_job("send_reminder", payload, priority=5)

    await service.close()  # stops the worker and closes Redis

It is also an async context manager that closes itself on exit.
"""

from __future__ import annotations

import logging
from datetime import datetime
from types import TracebackType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from quire.jobs.models import BackoffPolicy, Job, JobState, now_ms, to_epoch_ms
from quire.jobs.payloads import serialize_payload
from quire.jobs.queue import DEFAULT_JOB_TTL, JobQueue
from quire.jobs.worker import JobProcessor, JobWorker, WorkerConfig
from quire.store.keys import QueueKeys
from quire.store.redis import close_redis

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from quire.config import Settings

logger = logging.getLogger(__name__)


class JobQueueService:
    """Priority, delay-capable job queue with bounded automatic retry."""

    def __init__(
        self,
        redis: Redis,
        keys: QueueKeys | None = None,
        job_ttl: int = DEFAULT_JOB_TTL,
        default_max_attempts: int = 3,
        worker_config: WorkerConfig | None = None,
    ) -> None:
        self.redis = redis
        self.queue = JobQueue(
            redis,
            keys=keys,
            job_ttl=job_ttl,
            default_max_attempts=default_max_attempts,
        )
        self.worker = JobWorker(self.queue, worker_config)
        self._closed = False

    @classmethod
    def from_settings(cls, redis: Redis, settings: Settings) -> JobQueueService:
        """Build a service configured from application settings."""
        return cls(
            redis,
            keys=QueueKeys(settings.queue_prefix),
            job_ttl=settings.job_ttl_seconds,
            default_max_attempts=settings.default_max_attempts,
            worker_config=WorkerConfig(
                name=settings.worker_name,
                batch_size=settings.worker_batch_size,
                poll_interval=settings.worker_poll_interval,
                promote_interval=settings.worker_promote_interval,
                promote_batch_size=settings.worker_promote_batch_size,
                handler_timeout=settings.handler_timeout,
            ),
        )

    # -------------------------------------------------------------------------
    # Producers
    # -------------------------------------------------------------------------

    async def add_job(
        self,
        job_type: str,
        payload: BaseModel | dict[str, Any] | None = None,
        *,
        priority: int = 0,
        attempts: int | None = None,
        delay: int = 0,
        backoff: BackoffPolicy | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Add a job to the queue and return its id.

        Payloads of built-in job types are validated first.

        Raises:
            ValueError: Empty job type or attempts below 1
            PayloadValidationError: Payload doesn't match the job type's model
            redis.exceptions.RedisError: The store didn't accept the job
        """
        if not job_type:
            raise ValueError("Job type must be a non-empty string")

        return await self.queue.add_job(
            job_type,
            serialize_payload(job_type, payload),
            priority=priority,
            attempts=attempts,
            delay=delay,
            backoff=backoff,
            metadata=metadata,
        )

    async def schedule_job(
        self,
        job_type: str,
        payload: BaseModel | dict[str, Any] | None,
        schedule_for: datetime,
        *,
        priority: int = 0,
        attempts: int | None = None,
        backoff: BackoffPolicy | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Add a job that becomes ready at ``schedule_for``.

        Naive datetimes are taken as UTC; times in the past run immediately.
        """
        return await self.add_job(
            job_type,
            payload,
            priority=priority,
            attempts=attempts,
            delay=to_epoch_ms(schedule_for) - now_ms(),
            backoff=backoff,
            metadata=metadata,
        )

    def register_processor(self, job_type: str, processor: JobProcessor) -> None:
        """Associate a processor with a job type. The last registration wins."""
        self.worker.register_processor(job_type, processor)

    # -------------------------------------------------------------------------
    # Worker lifecycle
    # -------------------------------------------------------------------------

    async def start_worker(self) -> None:
        """Start dispatch and promotion loops. Idempotent."""
        await self.worker.start()

    async def stop_worker(self) -> None:
        """Stop dispatch and promotion loops. Idempotent."""
        await self.worker.stop()

    async def close(self) -> None:
        """Stop the worker and release the Redis connection."""
        if self._closed:
            return
        await self.stop_worker()
        await close_redis(self.redis)
        self._closed = True
        logger.info("Job queue service closed")

    async def __aenter__(self) -> JobQueueService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Operators
    # -------------------------------------------------------------------------

    async def get_job(self, job_id: str) -> Job | None:
        return await self.queue.get_job(job_id)

    async def get_job_state(self, job_id: str) -> JobState | None:
        """Index the job currently lives in, None once pruned or unknown."""
        return await self.queue.get_state(job_id)

    async def get_queue_stats(self) -> dict[str, int]:
        """Counts of the ready, scheduled, completed and failed indexes."""
        return await self.queue.get_queue_stats()

    async def get_failed_jobs(self, limit: int = 10) -> list[Job]:
        """Most recently failed jobs, including payload and last error."""
        return await self.queue.get_failed_jobs(limit)

    async def cleanup(self, older_than_days: float = 7) -> dict[str, int]:
        """Prune completed/failed index entries older than the threshold."""
        return await self.queue.cleanup(older_than_days)
