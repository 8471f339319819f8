"""Background job processing for quire.

Provides a Redis-backed job queue with:
- Priority ordering among ready jobs
- Delayed and scheduled execution
- Atomic single-owner claiming with ZREM
- Retry with fixed, exponential or laddered backoff
- Built-in notification and reviewer reminder processors

Example:
    from quire.jobs import JobQueueService

    service = JobQueueService(create_redis(settings.redis_url))
    service.register_processor("send_reminder", handle_reminder)
    await service.start_worker()

    job_id = await service.add_job("send_reminder", payload, priority=5)
    stats = await service.get_queue_stats()

    await service.close()
"""

from quire.jobs.backoff import DEFAULT_RETRY_LADDER, calculate_retry_delay
from quire.jobs.models import (
    DEFAULT_MAX_ATTEMPTS,
    BackoffPolicy,
    BackoffType,
    Job,
    JobResult,
    JobState,
)
from quire.jobs.payloads import (
    PAYLOAD_MODELS,
    SEND_NOTIFICATION,
    SEND_REMINDER,
    SendNotificationPayload,
    SendReminderPayload,
)
from quire.jobs.queue import DEFAULT_JOB_TTL, JobQueue
from quire.jobs.service import JobQueueService
from quire.jobs.tasks import register_builtin_processors
from quire.jobs.worker import JobProcessor, JobWorker, WorkerConfig

__all__ = [
    # Models
    "Job",
    "JobResult",
    "JobState",
    "BackoffPolicy",
    "BackoffType",
    "DEFAULT_MAX_ATTEMPTS",
    # Backoff
    "calculate_retry_delay",
    "DEFAULT_RETRY_LADDER",
    # Queue
    "JobQueue",
    "DEFAULT_JOB_TTL",
    # Worker
    "JobWorker",
    "JobProcessor",
    "WorkerConfig",
    # Service
    "JobQueueService",
    # Payloads
    "PAYLOAD_MODELS",
    "SEND_NOTIFICATION",
    "SEND_REMINDER",
    "SendNotificationPayload",
    "SendReminderPayload",
    # Tasks
    "register_builtin_processors",
]
