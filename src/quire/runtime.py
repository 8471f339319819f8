"""Runtime wiring for the job queue and its notification processors."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from quire.config import Settings
from quire.jobs.service import JobQueueService
from quire.jobs.tasks import register_builtin_processors
from quire.notifications.directory import HttpInvitationDirectory, InvitationDirectory
from quire.notifications.senders import ChannelSender, HttpChannelSender, LoggingChannelSender
from quire.notifications.service import NotificationService
from quire.store.redis import create_redis

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Services built for one process. Close it on shutdown."""

    jobs: JobQueueService
    notifications: NotificationService
    sender: ChannelSender
    invitations: InvitationDirectory | None = None

    async def close(self) -> None:
        await self.jobs.close()
        await self.sender.aclose()
        if self.invitations is not None:
            await self.invitations.aclose()


def create_sender(settings: Settings) -> ChannelSender:
    """Create a channel sender based on configuration."""
    if settings.notification_gateway_url:
        return HttpChannelSender(settings.notification_gateway_url, timeout=settings.http_timeout)

    logger.warning("No notification gateway configured, notifications will only be logged")
    return LoggingChannelSender()


def create_invitation_directory(settings: Settings) -> InvitationDirectory | None:
    if settings.journal_api_url:
        return HttpInvitationDirectory(settings.journal_api_url, timeout=settings.http_timeout)
    return None


def create_runtime(settings: Settings) -> Runtime:
    """Build the job queue service with the built-in processors registered."""
    jobs = JobQueueService.from_settings(create_redis(settings.redis_url), settings)
    sender = create_sender(settings)
    invitations = create_invitation_directory(settings)

    notifications = NotificationService(
        sender,
        jobs=jobs,
        invitations=invitations,
        base_url=settings.base_url,
    )
    register_builtin_processors(jobs, notifications)

    return Runtime(
        jobs=jobs,
        notifications=notifications,
        sender=sender,
        invitations=invitations,
    )
