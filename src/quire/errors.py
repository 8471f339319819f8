"""Exception types raised by quire services."""

from __future__ import annotations


class QueueError(Exception):
    """Base class for job queue errors."""


class PayloadValidationError(QueueError, ValueError):
    """A payload does not match the model registered for its job type."""

    def __init__(self, job_type: str, message: str) -> None:
        super().__init__(f"Invalid payload for job type '{job_type}': {message}")
        self.job_type = job_type


class NotificationError(Exception):
    """Base class for notification delivery errors."""


class InvitationNotFoundError(NotificationError, LookupError):
    """No reviewer invitation matches the token."""

    def __init__(self, invitation_token: str) -> None:
        super().__init__("Invitation not found")
        self.invitation_token = invitation_token
