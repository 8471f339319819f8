"""Tests for job worker functionality."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from quire.jobs.models import BackoffPolicy, Job, JobResult, JobState
from quire.jobs.queue import JobQueue
from quire.jobs.worker import JobWorker, WorkerConfig

NOW = 1_700_000_000_000


async def always_fail(job: Job) -> JobResult:
    return JobResult.failure("transient error")


class TestWorkerConfig:
    """Tests for WorkerConfig."""

    def test_default_config(self) -> None:
        """Default config has expected values."""
        config = WorkerConfig()

        assert config.name == "default"
        assert config.batch_size == 5
        assert config.poll_interval == 5.0
        assert config.promote_interval == 30.0
        assert config.promote_batch_size == 100
        assert config.handler_timeout == 300.0

    def test_custom_config(self) -> None:
        """Config accepts custom values."""
        config = WorkerConfig(name="custom-worker", batch_size=10, handler_timeout=None)

        assert config.name == "custom-worker"
        assert config.batch_size == 10
        assert config.handler_timeout is None


class TestProcessorRegistry:
    """Tests for processor registration."""

    @pytest.fixture
    def worker(self, queue: JobQueue) -> JobWorker:
        return JobWorker(queue)

    def test_register_processor(self, worker: JobWorker) -> None:
        async def handler(job: Job) -> JobResult:
            return JobResult.ok()

        worker.register_processor("export", handler)

        assert worker.get_processor("export") is handler

    def test_last_registration_wins(self, worker: JobWorker) -> None:
        async def first(job: Job) -> JobResult:
            return JobResult.ok()

        async def second(job: Job) -> JobResult:
            return JobResult.ok()

        worker.register_processor("export", first)
        worker.register_processor("export", second)

        assert worker.get_processor("export") is second

    def test_unknown_type(self, worker: JobWorker) -> None:
        assert worker.get_processor("nope") is None


class TestDispatch:
    """Tests for the processing step."""

    @pytest.fixture
    def worker(self, queue: JobQueue) -> JobWorker:
        return JobWorker(queue, WorkerConfig(name="test", batch_size=5))

    @pytest.mark.asyncio
    async def test_success_completes(self, worker: JobWorker, queue: JobQueue) -> None:
        seen: list[Job] = []

        async def handler(job: Job) -> JobResult:
            seen.append(job)
            return JobResult.ok({"sent": True})

        worker.register_processor("export", handler)
        job_id = await queue.add_job("export", {"a": 1})

        assert await worker.process_job(job_id) == JobState.COMPLETED
        assert seen[0].payload == {"a": 1}
        assert seen[0].attempts == 1

    @pytest.mark.asyncio
    async def test_priority_order(self, worker: JobWorker, queue: JobQueue) -> None:
        """A batch runs ready jobs from highest to lowest priority."""
        order: list[int] = []

        async def handler(job: Job) -> JobResult:
            order.append(job.priority)
            return JobResult.ok()

        worker.register_processor("export", handler)
        for priority in (5, 1, 9):
            await queue.add_job("export", {}, priority=priority)

        assert await worker.process_jobs() == 3
        assert order == [9, 5, 1]

    @pytest.mark.asyncio
    async def test_batch_size_limits_tick(self, queue: JobQueue) -> None:
        worker = JobWorker(queue, WorkerConfig(batch_size=2))
        worker.register_processor("export", AsyncMock(return_value=JobResult.ok()))
        for _ in range(3):
            await queue.add_job("export", {})

        assert await worker.process_jobs() == 2
        assert (await queue.get_queue_stats())["ready"] == 1

    @pytest.mark.asyncio
    async def test_default_retry_ladder(
        self, worker: JobWorker, queue: JobQueue, fake_redis, keys
    ) -> None:
        """Without a policy retries wait 10s then 60s, then the job fails."""
        worker.register_processor("flaky", always_fail)

        with patch("quire.jobs.queue.now_ms") as clock:
            clock.return_value = NOW
            job_id = await queue.add_job("flaky", {})

            assert await worker.process_job(job_id) == JobState.SCHEDULED
            assert fake_redis.zsets[keys.scheduled][job_id] == NOW + 10_000

            clock.return_value = NOW + 10_000
            assert await worker.move_scheduled_jobs() == 1
            assert await worker.process_job(job_id) == JobState.SCHEDULED
            assert fake_redis.zsets[keys.scheduled][job_id] == NOW + 10_000 + 60_000

            clock.return_value = NOW + 70_000
            assert await worker.move_scheduled_jobs() == 1
            assert await worker.process_job(job_id) == JobState.FAILED

        job = await queue.get_job(job_id)
        assert job is not None
        assert job.attempts == 3
        assert job.last_error == "transient error"
        assert await queue.get_state(job_id) == JobState.FAILED

    @pytest.mark.asyncio
    async def test_exponential_backoff_capped(
        self, worker: JobWorker, queue: JobQueue, fake_redis, keys
    ) -> None:
        """Exponential delays double per attempt up to the cap."""
        worker.register_processor("flaky", always_fail)
        policy = BackoffPolicy.exponential(initial=1000, max=5000)

        delays: list[int] = []
        with patch("quire.jobs.queue.now_ms") as clock:
            clock.return_value = NOW
            job_id = await queue.add_job("flaky", {}, attempts=5, backoff=policy)
            for _ in range(4):
                assert await worker.process_job(job_id) == JobState.SCHEDULED
                due = int(fake_redis.zsets[keys.scheduled][job_id])
                delays.append(due - clock.return_value)
                clock.return_value = due
                assert await worker.move_scheduled_jobs() == 1

        assert delays == [1000, 2000, 4000, 5000]

    @pytest.mark.asyncio
    async def test_long_running_exponential_job_rescheduled_at_cap(
        self, worker: JobWorker, queue: JobQueue, fake_redis, keys
    ) -> None:
        """A job deep into its retries is rescheduled at the cap, not lost."""
        worker.register_processor("flaky", always_fail)
        policy = BackoffPolicy.exponential(initial=1000, max=5000)

        with patch("quire.jobs.queue.now_ms", return_value=NOW):
            job_id = await queue.add_job("flaky", {}, attempts=5000, backoff=policy)
            job = await queue.get_job(job_id)
            assert job is not None
            job.attempts = 1100
            await queue._save(job)

            assert await worker.process_job(job_id) == JobState.SCHEDULED

        assert fake_redis.zsets[keys.scheduled][job_id] == NOW + 5000
        assert await queue.get_state(job_id) == JobState.SCHEDULED

    @pytest.mark.asyncio
    async def test_retry_after_overrides_policy(
        self, worker: JobWorker, queue: JobQueue, fake_redis, keys
    ) -> None:
        async def rate_limited(job: Job) -> JobResult:
            return JobResult.failure("slow down", retry_after=42_000)

        worker.register_processor("export", rate_limited)
        with patch("quire.jobs.queue.now_ms", return_value=NOW):
            job_id = await queue.add_job("export", {}, backoff=BackoffPolicy.fixed(1000))
            await worker.process_job(job_id)

        assert fake_redis.zsets[keys.scheduled][job_id] == NOW + 42_000

    @pytest.mark.asyncio
    async def test_missing_processor_fails_without_retry(
        self, worker: JobWorker, queue: JobQueue, fake_redis, keys
    ) -> None:
        """An unregistered type fails on the first attempt and is never retried."""
        job_id = await queue.add_job("unknown_type", {})

        assert await worker.process_job(job_id) == JobState.FAILED

        job = await queue.get_job(job_id)
        assert job is not None
        assert job.attempts == 1
        assert "unknown_type" in (job.last_error or "")
        assert keys.scheduled not in fake_redis.zsets

    @pytest.mark.asyncio
    async def test_processor_exception_is_retried(self, worker: JobWorker, queue: JobQueue) -> None:
        async def broken(job: Job) -> JobResult:
            raise RuntimeError("gateway down")

        worker.register_processor("export", broken)
        job_id = await queue.add_job("export", {})

        assert await worker.process_job(job_id) == JobState.SCHEDULED
        job = await queue.get_job(job_id)
        assert job is not None and job.last_error == "gateway down"

    @pytest.mark.asyncio
    async def test_single_attempt_fails_immediately(
        self, worker: JobWorker, queue: JobQueue
    ) -> None:
        worker.register_processor("export", always_fail)
        job_id = await queue.add_job("export", {}, attempts=1)

        assert await worker.process_job(job_id) == JobState.FAILED

    @pytest.mark.asyncio
    async def test_exhausted_job_not_run(
        self, worker: JobWorker, queue: JobQueue, fake_redis, keys
    ) -> None:
        """A job already past max attempts goes to failed without running."""
        handler = AsyncMock(return_value=JobResult.ok())
        worker.register_processor("export", handler)
        job_id = await queue.add_job("export", {}, attempts=2)
        job = await queue.get_job(job_id)
        assert job is not None
        job.attempts = 2
        await queue._save(job)

        assert await worker.process_job(job_id) == JobState.FAILED
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, queue: JobQueue) -> None:
        worker = JobWorker(queue, WorkerConfig(handler_timeout=0.01))

        async def slow(job: Job) -> JobResult:
            await asyncio.sleep(1)
            return JobResult.ok()

        worker.register_processor("export", slow)
        job_id = await queue.add_job("export", {})

        assert await worker.process_job(job_id) == JobState.SCHEDULED
        job = await queue.get_job(job_id)
        assert job is not None and "timed out" in (job.last_error or "")

    @pytest.mark.asyncio
    async def test_non_result_return_is_failure(self, worker: JobWorker, queue: JobQueue) -> None:
        async def sloppy(job: Job) -> JobResult:
            return {"done": True}  # type: ignore[return-value]

        worker.register_processor("export", sloppy)
        job_id = await queue.add_job("export", {}, attempts=1)

        assert await worker.process_job(job_id) == JobState.FAILED
        job = await queue.get_job(job_id)
        assert job is not None and "expected JobResult" in (job.last_error or "")

    @pytest.mark.asyncio
    async def test_lost_claim_is_noop(self, worker: JobWorker) -> None:
        handler = AsyncMock(return_value=JobResult.ok())
        worker.register_processor("export", handler)

        assert await worker.process_job("1-000000000") is None
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_outcome_metrics(self, queue: JobQueue) -> None:
        queue.metrics.jobs_processed_total = MagicMock()
        worker = JobWorker(queue)
        worker.register_processor("export", AsyncMock(return_value=JobResult.ok()))

        await worker.process_job(await queue.add_job("export", {}))

        queue.metrics.jobs_processed_total.labels.assert_called_once_with(
            job_type="export", outcome="completed"
        )

    @pytest.mark.asyncio
    async def test_tick_survives_job_errors(self, queue: JobQueue) -> None:
        """One job blowing up in bookkeeping doesn't stop the batch."""
        worker = JobWorker(queue)
        worker.register_processor("export", AsyncMock(return_value=JobResult.ok()))
        first = await queue.add_job("export", {}, priority=2)
        second = await queue.add_job("export", {}, priority=1)

        original_claim = queue.claim

        async def claim(job_id: str) -> Job | None:
            if job_id == first:
                raise ConnectionError("lost connection")
            return await original_claim(job_id)

        with patch.object(queue, "claim", side_effect=claim):
            assert await worker.process_jobs() == 2

        assert await queue.get_state(second) == JobState.COMPLETED


class TestLifecycle:
    """Tests for starting and stopping the loops."""

    @pytest.fixture
    def worker(self, queue: JobQueue) -> JobWorker:
        return JobWorker(queue, WorkerConfig(poll_interval=0.01, promote_interval=0.01))

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, worker: JobWorker) -> None:
        """Starting twice still runs exactly one dispatch and one promotion loop."""
        await worker.start()
        await worker.start()
        try:
            assert worker.running
            assert len(worker._tasks) == 2
        finally:
            await worker.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, worker: JobWorker) -> None:
        await worker.stop()
        await worker.start()
        await worker.stop()
        await worker.stop()

        assert not worker.running
        assert worker._tasks == []

    @pytest.mark.asyncio
    async def test_loops_process_and_promote(self, worker: JobWorker, queue: JobQueue) -> None:
        done = asyncio.Event()

        async def handler(job: Job) -> JobResult:
            done.set()
            return JobResult.ok()

        worker.register_processor("export", handler)
        job_id = await queue.add_job("export", {}, delay=1)

        async with worker:
            await asyncio.wait_for(done.wait(), timeout=2)

        assert await queue.get_state(job_id) == JobState.COMPLETED

    @pytest.mark.asyncio
    async def test_stop_waits_for_inflight_job(self, worker: JobWorker, queue: JobQueue) -> None:
        """Stopping lets the running processor finish and record its outcome."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def handler(job: Job) -> JobResult:
            started.set()
            await release.wait()
            return JobResult.ok()

        worker.register_processor("export", handler)
        job_id = await queue.add_job("export", {})

        await worker.start()
        await asyncio.wait_for(started.wait(), timeout=2)

        stopping = asyncio.create_task(worker.stop())
        await asyncio.sleep(0.05)
        assert not stopping.done()

        release.set()
        await asyncio.wait_for(stopping, timeout=2)

        assert await queue.get_state(job_id) == JobState.COMPLETED

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_loop(self, worker: JobWorker) -> None:
        calls = 0

        async def flaky_tick() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise ConnectionError("redis unavailable")
            worker._stop_event.set()
            return 0

        await worker._run_periodic("dispatch", flaky_tick, 0.01)

        assert calls == 2
