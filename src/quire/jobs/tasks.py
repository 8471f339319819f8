"""Built-in job processors.

- send_notification: deliver a queued or scheduled notification
- send_reminder: remind a reviewer about a pending invitation

Both delegate to ``NotificationService``. Errors are reported as failure
results, so the queue's retry policy decides what happens next.

Example:
    from quire.jobs.tasks import register_builtin_processors

    register_builtin_processors(service, notifications)
    await service.start_worker()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from quire.jobs.models import Job, JobResult
from quire.jobs.payloads import (
    SEND_NOTIFICATION,
    SEND_REMINDER,
    SendNotificationPayload,
    SendReminderPayload,
)

if TYPE_CHECKING:
    from quire.jobs.service import JobQueueService
    from quire.jobs.worker import JobProcessor
    from quire.notifications.service import NotificationService

logger = logging.getLogger(__name__)


def notification_processor(notifications: NotificationService) -> JobProcessor:
    """Build the ``send_notification`` processor.

    Payload:
        request: NotificationRequest to deliver on every configured channel

    Result:
        Per-channel delivery results; success only if every channel succeeded
    """

    async def process_notification(job: Job) -> JobResult:
        try:
            payload = SendNotificationPayload.model_validate(job.payload)
            outcome = await notifications.process_notification_sync(payload.request)
        except ValidationError as e:
            return JobResult.failure(f"Invalid notification payload: {e.error_count()} errors")
        except Exception as e:
            return JobResult.failure(str(e) or "Unknown notification error")

        results = {name: r.model_dump() for name, r in outcome.results.items()}
        if outcome.success:
            return JobResult.ok(results)

        failed = sorted(name for name, r in outcome.results.items() if not r.success)
        return JobResult(
            success=False,
            result=results,
            error=f"Delivery failed on: {', '.join(failed) or 'no channels'}",
        )

    return process_notification


def reminder_processor(notifications: NotificationService) -> JobProcessor:
    """Build the ``send_reminder`` processor.

    Payload:
        reviewer_id: Reviewer profile id
        invitation_token: Token of the pending invitation
        reminder_type: "first", "second" or "final"
        days_remaining: Days left to respond
    """

    async def process_reminder(job: Job) -> JobResult:
        try:
            payload = SendReminderPayload.model_validate(job.payload)
            outcome = await notifications.send_reviewer_reminder(
                payload.reviewer_id,
                payload.invitation_token,
                payload.reminder_type,
                payload.days_remaining,
            )
        except ValidationError as e:
            return JobResult.failure(f"Invalid reminder payload: {e.error_count()} errors")
        except Exception as e:
            return JobResult.failure(str(e) or "Unknown reminder error")

        if outcome.success:
            logger.info(f"Reminder sent: {payload.reminder_type} to {payload.reviewer_id}")
        return JobResult(
            success=outcome.success,
            result=outcome.model_dump(mode="json"),
            error=None if outcome.success else "Reminder delivery failed",
        )

    return process_reminder


def register_builtin_processors(
    service: JobQueueService,
    notifications: NotificationService,
) -> None:
    """Register the built-in processors with a job queue service."""
    service.register_processor(SEND_NOTIFICATION, notification_processor(notifications))
    service.register_processor(SEND_REMINDER, reminder_processor(notifications))
    logger.info("Registered built-in job processors")
