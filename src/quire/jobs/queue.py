"""Redis-backed job queue with priority and delayed execution.

Storage layout:
- One JSON record per job under ``{prefix}:job:{id}``, expiring after 7 days
- Sorted set ``ready`` scored by priority (highest dispatched first)
- Sorted set ``scheduled`` scored by due time in epoch ms
- Sorted sets ``completed`` and ``failed`` scored by outcome time in epoch ms

A job id lives in exactly one of the four indexes. Claiming is done with
``ZREM`` on ``ready``: only the caller that observes a removal count of one
owns the job, which keeps processing single-owner across worker processes.

Example:
    queue = JobQueue(create_redis(settings.redis_url))

    job_id = await queue.add_job("send_reminder", {"reviewer_id": "r-1", ...})
    job_id = await queue.add_job("send_notification", payload, delay=60_000)

    stats = await queue.get_queue_stats()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import orjson

from quire.jobs.models import (
    DEFAULT_MAX_ATTEMPTS,
    BackoffPolicy,
    Job,
    JobState,
    from_epoch_ms,
    new_job_id,
    now_ms,
)
from quire.observability.metrics import MetricsRegistry, get_metrics
from quire.store.keys import INDEX_NAMES, QueueKeys
from quire.store.redis import await_redis

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_JOB_TTL = 86400 * 7  # 7 days
DEFAULT_PROMOTE_BATCH = 100
DAY_MS = 86400 * 1000


class JobQueue:
    """Store-level job lifecycle operations.

    Dispatch (which processor runs, retry decisions) lives in JobWorker; this
    class only moves ids between indexes and keeps records up to date.
    """

    def __init__(
        self,
        redis: Redis,
        keys: QueueKeys | None = None,
        job_ttl: int = DEFAULT_JOB_TTL,
        default_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.redis = redis
        self.keys = keys or QueueKeys()
        self.job_ttl = job_ttl
        self.default_max_attempts = default_max_attempts
        self.metrics = metrics or get_metrics()

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    async def _save(self, job: Job) -> None:
        """Persist a job record, refreshing its retention window."""
        await await_redis(
            self.redis.set(
                self.keys.job(job.id),
                orjson.dumps(job.to_dict()),
                ex=self.job_ttl,
            )
        )

    async def get_job(self, job_id: str) -> Job | None:
        """Get job by ID.

        Returns:
            Job if the record exists, None if it never existed, expired,
            or cannot be decoded
        """
        data = await await_redis(self.redis.get(self.keys.job(job_id)))
        if data is None:
            return None

        try:
            return Job.from_dict(orjson.loads(data))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Corrupted job record {job_id}: {e}")
            return None

    # -------------------------------------------------------------------------
    # Producers
    # -------------------------------------------------------------------------

    async def add_job(
        self,
        job_type: str,
        payload: dict[str, Any] | None = None,
        *,
        priority: int = 0,
        attempts: int | None = None,
        delay: int = 0,
        backoff: BackoffPolicy | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Add a job to the queue.

        The job is stored and indexed; it never runs synchronously.

        Args:
            job_type: Processor key (e.g., "send_notification")
            payload: Processor-specific data, JSON serializable
            priority: Higher values are dispatched first among ready jobs
            attempts: Maximum attempts including the first (default 3)
            delay: Milliseconds before the job becomes ready
            backoff: Retry policy; None uses the default 10s/60s/300s ladder
            metadata: Free-form annotations, not interpreted by the queue

        Returns:
            Job ID for tracking
        """
        if not job_type:
            raise ValueError("Job type must be a non-empty string")

        max_attempts = attempts if attempts is not None else self.default_max_attempts
        if max_attempts < 1:
            raise ValueError("attempts must be at least 1")

        created = now_ms()
        due = created + max(delay, 0)

        job = Job(
            id=new_job_id(created),
            type=job_type,
            payload=payload or {},
            priority=priority,
            max_attempts=max_attempts,
            created_at=from_epoch_ms(created),
            scheduled_for=from_epoch_ms(due),
            backoff=backoff,
            metadata=metadata,
        )

        await self._save(job)

        if due <= created:
            await await_redis(self.redis.zadd(self.keys.ready, {job.id: priority}))
            logger.info(f"Job added: {job.id} ({job_type}, priority {priority})")
        else:
            await await_redis(self.redis.zadd(self.keys.scheduled, {job.id: due}))
            logger.info(f"Job scheduled: {job.id} ({job_type}) in {due - created}ms")

        if self.metrics.jobs_enqueued_total:
            self.metrics.jobs_enqueued_total.labels(job_type=job_type).inc()

        return job.id

    # -------------------------------------------------------------------------
    # Worker-side transitions
    # -------------------------------------------------------------------------

    async def ready_job_ids(self, limit: int) -> list[str]:
        """Highest-priority ready ids, without claiming them."""
        if limit <= 0:
            return []
        return list(await await_redis(self.redis.zrevrange(self.keys.ready, 0, limit - 1)))

    async def claim(self, job_id: str) -> Job | None:
        """Claim a ready job and count the attempt.

        ``ZREM`` is the claim: when it removes nothing another worker owns
        the job. A claimed job whose record is gone is dropped.

        Returns:
            The job with ``attempts`` incremented, or None if the claim was
            lost or the record is missing
        """
        removed = await await_redis(self.redis.zrem(self.keys.ready, job_id))
        if removed == 0:
            logger.debug(f"Job already claimed: {job_id}")
            return None

        job = await self.get_job(job_id)
        if job is None:
            logger.error(f"Job {job_id} data not found, dropping")
            return None

        job.attempts += 1
        await self._save(job)

        logger.info(f"Job claimed: {job.id} (attempt {job.attempts}/{job.max_attempts})")
        return job

    async def complete(self, job: Job) -> None:
        """Record a job in the completed index."""
        await await_redis(self.redis.zadd(self.keys.completed, {job.id: now_ms()}))
        logger.info(f"Job completed: {job.id}")

    async def fail(self, job: Job, error: str | None = None) -> None:
        """Record a job in the failed index, keeping its last error."""
        if error is not None:
            job.last_error = error
            await self._save(job)

        await await_redis(self.redis.zadd(self.keys.failed, {job.id: now_ms()}))
        logger.warning(f"Job failed permanently: {job.id} ({job.last_error})")

    async def retry(self, job: Job, delay: int, error: str | None = None) -> None:
        """Reschedule a job ``delay`` ms from now."""
        due = now_ms() + delay
        job.scheduled_for = from_epoch_ms(due)
        if error is not None:
            job.last_error = error
        await self._save(job)

        await await_redis(self.redis.zadd(self.keys.scheduled, {job.id: due}))
        logger.info(
            f"Job queued for retry: {job.id} in {delay}ms "
            f"(attempt {job.attempts}/{job.max_attempts})"
        )

    async def promote_due_jobs(self, limit: int = DEFAULT_PROMOTE_BATCH) -> int:
        """Move scheduled jobs whose due time has passed into ``ready``.

        Each move is a MULTI/EXEC pipeline of ``ZADD ready`` + ``ZREM scheduled``.
        Ids whose record has expired are removed from ``scheduled``.

        Returns:
            Number of jobs promoted
        """
        due_ids = await await_redis(
            self.redis.zrangebyscore(self.keys.scheduled, 0, now_ms(), start=0, num=limit)
        )
        if not due_ids:
            return 0

        promoted = 0
        for job_id in due_ids:
            job = await self.get_job(job_id)
            if job is None:
                await await_redis(self.redis.zrem(self.keys.scheduled, job_id))
                logger.warning(f"Scheduled job {job_id} has no record, removed")
                continue

            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zadd(self.keys.ready, {job_id: job.priority})
                pipe.zrem(self.keys.scheduled, job_id)
                await pipe.execute()
            promoted += 1

        if promoted:
            logger.info(f"Moved {promoted} scheduled jobs to ready queue")
        return promoted

    # -------------------------------------------------------------------------
    # Introspection and maintenance
    # -------------------------------------------------------------------------

    async def get_queue_stats(self) -> dict[str, int]:
        """Get queue statistics.

        Returns:
            Dict with ready, scheduled, completed and failed counts
        """
        async with self.redis.pipeline(transaction=False) as pipe:
            for name in INDEX_NAMES:
                pipe.zcard(self.keys.index(name))
            counts = await pipe.execute()

        stats = {name: int(count) for name, count in zip(INDEX_NAMES, counts)}

        if self.metrics.queue_depth:
            for name, count in stats.items():
                self.metrics.queue_depth.labels(index=name).set(count)

        return stats

    async def get_failed_jobs(self, limit: int = 10) -> list[Job]:
        """Most recently failed jobs, newest first.

        Ids whose record has already expired are skipped.
        """
        if limit <= 0:
            return []

        job_ids = await await_redis(self.redis.zrevrange(self.keys.failed, 0, limit - 1))
        jobs: list[Job] = []
        for job_id in job_ids:
            job = await self.get_job(job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    async def get_state(self, job_id: str) -> JobState | None:
        """Index the job id currently lives in, if any."""
        async with self.redis.pipeline(transaction=False) as pipe:
            for name in INDEX_NAMES:
                pipe.zscore(self.keys.index(name), job_id)
            scores = await pipe.execute()

        for name, score in zip(INDEX_NAMES, scores):
            if score is not None:
                return JobState(name)
        return None

    async def cleanup(self, older_than_days: float = 7) -> dict[str, int]:
        """Prune completed and failed entries recorded before the cutoff.

        Ready and scheduled entries are current work and are never pruned.
        Job records expire on their own TTL.

        Returns:
            Dict with the number of completed and failed entries removed
        """
        cutoff = now_ms() - int(older_than_days * DAY_MS)

        completed_removed = await await_redis(
            self.redis.zremrangebyscore(self.keys.completed, 0, cutoff)
        )
        failed_removed = await await_redis(
            self.redis.zremrangebyscore(self.keys.failed, 0, cutoff)
        )

        logger.info(
            f"Cleaned up {completed_removed} completed and {failed_removed} failed jobs"
        )
        return {"completed": int(completed_removed), "failed": int(failed_removed)}
