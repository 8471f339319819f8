"""Notification delivery for quire.

Models, channel senders and invitation lookup. ``NotificationService``
lives in ``quire.notifications.service`` because it depends on the job queue.
"""

from quire.notifications.directory import HttpInvitationDirectory, InvitationDirectory
from quire.notifications.models import (
    ChannelResult,
    EmailNotification,
    InAppNotification,
    NotificationChannels,
    NotificationRequest,
    NotificationResult,
    RetryPolicy,
    ReviewerInvitation,
    SMSNotification,
)
from quire.notifications.senders import ChannelSender, HttpChannelSender, LoggingChannelSender

__all__ = [
    # Models
    "ChannelResult",
    "EmailNotification",
    "InAppNotification",
    "NotificationChannels",
    "NotificationRequest",
    "NotificationResult",
    "RetryPolicy",
    "ReviewerInvitation",
    "SMSNotification",
    # Senders
    "ChannelSender",
    "HttpChannelSender",
    "LoggingChannelSender",
    # Invitations
    "InvitationDirectory",
    "HttpInvitationDirectory",
]
