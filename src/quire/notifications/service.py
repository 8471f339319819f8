"""Notification routing between immediate delivery and the job queue.

Routing rules for ``send_notification``:
- a future ``schedule_for`` schedules a ``send_notification`` job
- ``urgent`` and ``high`` priority are delivered immediately
- ``normal`` and ``low`` are queued with the request's retry policy
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from quire.errors import InvitationNotFoundError, NotificationError
from quire.jobs.models import BackoffPolicy
from quire.jobs.payloads import SEND_NOTIFICATION, SendNotificationPayload
from quire.notifications.models import (
    ChannelResult,
    EmailNotification,
    InAppNotification,
    NotificationChannels,
    NotificationRequest,
    NotificationResult,
    ReminderType,
)
from quire.notifications.templates import REVIEWER_REMINDER

if TYPE_CHECKING:
    from quire.jobs.service import JobQueueService
    from quire.notifications.directory import InvitationDirectory
    from quire.notifications.senders import ChannelSender

logger = logging.getLogger(__name__)

QUEUE_PRIORITY = {"normal": 1, "low": 0}


class NotificationService:
    """Sends notifications now or hands them to the job queue."""

    def __init__(
        self,
        sender: ChannelSender,
        jobs: JobQueueService | None = None,
        invitations: InvitationDirectory | None = None,
        base_url: str = "http://localhost:3000",
    ) -> None:
        self.sender = sender
        self.jobs = jobs
        self.invitations = invitations
        self.base_url = base_url.rstrip("/")

    def _require_jobs(self) -> JobQueueService:
        if self.jobs is None:
            raise NotificationError("No job queue configured for deferred notifications")
        return self.jobs

    async def send_notification(self, request: NotificationRequest) -> NotificationResult:
        """Deliver, queue or schedule a notification according to its priority."""
        payload = SendNotificationPayload(request=request)

        if request.schedule_for is not None and _as_utc(request.schedule_for) > _utcnow():
            job_id = await self._require_jobs().schedule_job(
                SEND_NOTIFICATION, payload, request.schedule_for
            )
            return NotificationResult(
                success=True,
                metadata={
                    "scheduled": True,
                    "schedule_for": request.schedule_for.isoformat(),
                    "job_id": job_id,
                },
            )

        if request.priority in ("urgent", "high"):
            return await self.process_notification_sync(request)

        policy = request.retry_policy
        backoff_seconds = policy.backoff_seconds if policy else [10, 60, 300]
        job_id = await self._require_jobs().add_job(
            SEND_NOTIFICATION,
            payload,
            priority=QUEUE_PRIORITY.get(request.priority, 0),
            attempts=policy.max_attempts if policy else 3,
            backoff=BackoffPolicy.exponential(
                initial=backoff_seconds[0] * 1000,
                max=backoff_seconds[-1] * 1000,
            ),
        )
        return NotificationResult(success=True, metadata={"queued": True, "job_id": job_id})

    async def process_notification_sync(self, request: NotificationRequest) -> NotificationResult:
        """Deliver every configured channel now.

        Channels are independent: one failing channel doesn't stop the others,
        but makes the overall result unsuccessful.
        """
        channels = request.channels
        results: dict[str, ChannelResult] = {}

        if channels.email is not None:
            results["email"] = await self._deliver("email", self.sender.send_email, channels.email)
        if channels.in_app is not None:
            results["in_app"] = await self._deliver(
                "in_app", self.sender.send_in_app, channels.in_app
            )
        if channels.sms is not None:
            results["sms"] = await self._deliver("sms", self.sender.send_sms, channels.sms)

        return NotificationResult(
            success=all(r.success for r in results.values()),
            results=results,
            metadata=request.metadata,
        )

    async def _deliver(
        self,
        channel: str,
        send: Callable[[Any], Awaitable[ChannelResult]],
        message: BaseModel,
    ) -> ChannelResult:
        try:
            return await send(message)
        except Exception as e:
            logger.exception(f"Error sending {channel} notification")
            return ChannelResult(success=False, error=str(e) or type(e).__name__)

    async def send_reviewer_reminder(
        self,
        reviewer_id: str,
        invitation_token: str,
        reminder_type: ReminderType,
        days_remaining: int,
    ) -> NotificationResult:
        """Remind a reviewer about a pending invitation by email and in-app.

        Raises:
            InvitationNotFoundError: If no invitation matches the token
        """
        if self.invitations is None:
            raise NotificationError("No invitation directory configured")

        invitation = await self.invitations.get_invitation(invitation_token)
        if invitation is None:
            raise InvitationNotFoundError(invitation_token)

        response_url = f"{self.base_url}/review/respond/{invitation_token}"
        subject, body = REVIEWER_REMINDER.render(
            {
                "reviewer_name": invitation.reviewer_name,
                "manuscript_title": invitation.manuscript_title,
                "field_of_study": invitation.field_of_study or "",
                "days_remaining": str(days_remaining),
                "response_link": response_url,
                "reminder_type": reminder_type,
                "urgency_prefix": "FINAL REMINDER: " if reminder_type == "final" else "Reminder: ",
            }
        )
        details = {"reminder_type": reminder_type, "days_remaining": days_remaining}

        request = NotificationRequest(
            channels=NotificationChannels(
                email=EmailNotification(
                    to=invitation.reviewer_email,
                    subject=subject,
                    body=body,
                    template_id=REVIEWER_REMINDER.id,
                    tracking_id=invitation_token,
                    metadata=details,
                ),
                in_app=InAppNotification(
                    user_id=reviewer_id,
                    title=f"Reminder: Review Due in {days_remaining} Days",
                    message=f'Your review for "{invitation.manuscript_title}" is due soon.',
                    type="warning" if reminder_type == "final" else "info",
                    action_url=response_url,
                    metadata=details,
                ),
            ),
            priority="high" if reminder_type == "final" else "normal",
            metadata={"type": "reviewer_reminder", **details},
        )
        return await self.send_notification(request)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
