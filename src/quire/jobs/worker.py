"""Background worker for dispatching queued jobs.

Runs two independent periodic loops:
- dispatch: claims up to ``batch_size`` ready jobs (highest priority first)
  and runs their processors one after another
- promotion: moves scheduled jobs whose due time has passed into ``ready``

A loop finishes its current batch before sleeping, so batches never overlap
within one process. Processor errors are converted into retry or failure
bookkeeping and never escape the dispatch loop.

Example:
    worker = JobWorker(queue)
    worker.register_processor("send_reminder", handle_reminder)

    await worker.start()
    ...
    await worker.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from types import TracebackType

from quire.jobs.backoff import calculate_retry_delay
from quire.jobs.models import Job, JobResult, JobState
from quire.jobs.queue import DEFAULT_PROMOTE_BATCH, JobQueue
from quire.observability.logging import LogContext

logger = logging.getLogger(__name__)

# Type alias for job processors
JobProcessor = Callable[[Job], Awaitable[JobResult]]


@dataclass
class WorkerConfig:
    """Worker configuration."""

    # Worker identification
    name: str = "default"

    # Dispatch
    batch_size: int = 5
    poll_interval: float = 5.0

    # Promotion of scheduled jobs
    promote_interval: float = 30.0
    promote_batch_size: int = DEFAULT_PROMOTE_BATCH

    # Seconds a processor may run before the attempt counts as failed
    handler_timeout: float | None = 300.0


class JobWorker:
    """Dispatches ready jobs to registered processors."""

    def __init__(
        self,
        queue: JobQueue,
        config: WorkerConfig | None = None,
    ) -> None:
        self.queue = queue
        self.config = config or WorkerConfig()
        self._processors: dict[str, JobProcessor] = {}
        self._running = False
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return self._running

    def register_processor(self, job_type: str, processor: JobProcessor) -> None:
        """Register the processor for a job type. The last registration wins.

        Example:
            async def handle_reminder(job: Job) -> JobResult:
                await send(job.payload["reviewer_id"])
                return JobResult.ok()

            worker.register_processor("send_reminder", handle_reminder)
        """
        if job_type in self._processors:
            logger.info(f"Replacing processor for job type: {job_type}")
        self._processors[job_type] = processor
        logger.info(f"Registered processor for job type: {job_type}")

    def get_processor(self, job_type: str) -> JobProcessor | None:
        return self._processors.get(job_type)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the dispatch and promotion loops. No-op if already running."""
        if self._running:
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._tasks = [
            asyncio.create_task(
                self._run_periodic("dispatch", self.process_jobs, self.config.poll_interval)
            ),
            asyncio.create_task(
                self._run_periodic(
                    "promotion", self.move_scheduled_jobs, self.config.promote_interval
                )
            ),
        ]
        logger.info(f"Job queue worker started: {self.config.name}")

    async def stop(self) -> None:
        """Stop both loops, letting an in-flight batch finish. No-op if stopped."""
        if not self._running:
            return

        self._running = False
        self._stop_event.set()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

        logger.info(f"Job queue worker stopped: {self.config.name}")

    async def _run_periodic(
        self,
        name: str,
        tick: Callable[[], Awaitable[int]],
        interval: float,
    ) -> None:
        """Run ``tick`` every ``interval`` seconds until stopped.

        A failed tick is logged and the next one still fires.
        """
        with LogContext(worker=self.config.name):
            while not self._stop_event.is_set():
                try:
                    await tick()
                except Exception:
                    logger.exception(f"Error in {name} tick")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass

    # -------------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------------

    async def process_jobs(self) -> int:
        """Process one batch of ready jobs, highest priority first.

        Returns:
            Number of job ids examined
        """
        job_ids = await self.queue.ready_job_ids(self.config.batch_size)

        for job_id in job_ids:
            try:
                await self.process_job(job_id)
            except Exception:
                logger.exception(f"Error processing job {job_id}")

        return len(job_ids)

    async def move_scheduled_jobs(self) -> int:
        """Promote due scheduled jobs into the ready index."""
        return await self.queue.promote_due_jobs(self.config.promote_batch_size)

    async def process_job(self, job_id: str) -> JobState | None:
        """Claim and run a single ready job.

        Returns:
            The index the job ended up in, or None if the claim was lost or
            the record was missing
        """
        job = await self.queue.claim(job_id)
        if job is None:
            return None

        with LogContext(job_id=job.id, job_type=job.type):
            return await self._dispatch(job)

    async def _dispatch(self, job: Job) -> JobState:
        if job.exhausted:
            logger.error(f"Job {job.id} exceeded max attempts ({job.max_attempts})")
            await self.queue.fail(job)
            self._record_outcome(job, "exhausted")
            return JobState.FAILED

        processor = self._processors.get(job.type)
        if processor is None:
            logger.error(f"No processor found for job type: {job.type}")
            await self.queue.fail(job, f"No processor registered for job type: {job.type}")
            self._record_outcome(job, "no_processor")
            return JobState.FAILED

        logger.info(f"Processing job {job.id} (attempt {job.attempts}/{job.max_attempts})")
        result = await self._invoke(processor, job)

        if result.success:
            await self.queue.complete(job)
            self._record_outcome(job, "completed")
            return JobState.COMPLETED

        error = result.error or "Processor reported failure"
        if job.attempts_remaining:
            delay = calculate_retry_delay(job, result.retry_after)
            await self.queue.retry(job, delay, error)
            self._record_outcome(job, "retried")
            return JobState.SCHEDULED

        await self.queue.fail(job, error)
        self._record_outcome(job, "failed")
        return JobState.FAILED

    async def _invoke(self, processor: JobProcessor, job: Job) -> JobResult:
        """Run a processor, turning exceptions and timeouts into failure results."""
        start = time.perf_counter()
        try:
            if self.config.handler_timeout is None:
                result = await processor(job)
            else:
                result = await asyncio.wait_for(
                    processor(job), timeout=self.config.handler_timeout
                )
        except asyncio.TimeoutError:
            logger.error(f"Processor timed out for job {job.id}")
            return JobResult.failure(
                f"Processor timed out after {self.config.handler_timeout}s"
            )
        except Exception as e:
            logger.exception(f"Job processor error for {job.id}")
            return JobResult.failure(str(e) or type(e).__name__)
        finally:
            metrics = self.queue.metrics
            if metrics.job_duration_seconds:
                metrics.job_duration_seconds.labels(job_type=job.type).observe(
                    time.perf_counter() - start
                )

        if not isinstance(result, JobResult):
            return JobResult.failure(
                f"Processor returned {type(result).__name__}, expected JobResult"
            )
        return result

    def _record_outcome(self, job: Job, outcome: str) -> None:
        metrics = self.queue.metrics
        if metrics.jobs_processed_total:
            metrics.jobs_processed_total.labels(job_type=job.type, outcome=outcome).inc()

    async def __aenter__(self) -> JobWorker:
        """Context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Context manager exit."""
        await self.stop()
