"""Notification request and result models."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

NotificationPriority = Literal["low", "normal", "high", "urgent"]
InAppType = Literal["info", "success", "warning", "error"]
ReminderType = Literal["first", "second", "final"]


class EmailNotification(BaseModel):
    to: str
    from_address: str | None = None
    subject: str
    body: str
    template_id: str | None = None
    tracking_id: str | None = None
    metadata: dict[str, Any] | None = None


class InAppNotification(BaseModel):
    user_id: str
    title: str
    message: str
    type: InAppType = "info"
    action_url: str | None = None
    metadata: dict[str, Any] | None = None


class SMSNotification(BaseModel):
    to: str
    message: str
    metadata: dict[str, Any] | None = None


class NotificationChannels(BaseModel):
    """Channels to deliver one notification on. Unset channels are skipped."""

    email: EmailNotification | None = None
    in_app: InAppNotification | None = None
    sms: SMSNotification | None = None


class RetryPolicy(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: list[int] = Field(default_factory=lambda: [10, 60, 300], min_length=1)


class NotificationRequest(BaseModel):
    channels: NotificationChannels
    priority: NotificationPriority = "normal"
    schedule_for: datetime | None = None
    retry_policy: RetryPolicy | None = None
    metadata: dict[str, Any] | None = None


class ChannelResult(BaseModel):
    success: bool
    message_id: str | None = None
    error: str | None = None


class NotificationResult(BaseModel):
    success: bool
    results: dict[str, ChannelResult] = Field(default_factory=dict)
    metadata: dict[str, Any] | None = None


class ReviewerInvitation(BaseModel):
    """Invitation details needed to render a reviewer reminder."""

    invitation_token: str
    reviewer_id: str
    reviewer_name: str
    reviewer_email: str
    manuscript_title: str
    field_of_study: str | None = None
