"""Typed payloads for the built-in job types.

Each built-in job type has one payload model. Producers may pass either the
model or a plain dict; dicts are validated before the job is accepted, so a
malformed payload is rejected at ``add_job`` instead of failing in the worker.
Job types without a registered model carry free-form dict payloads.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from quire.errors import PayloadValidationError
from quire.notifications.models import NotificationRequest, ReminderType

SEND_NOTIFICATION = "send_notification"
SEND_REMINDER = "send_reminder"


class SendNotificationPayload(BaseModel):
    request: NotificationRequest


class SendReminderPayload(BaseModel):
    reviewer_id: str
    invitation_token: str
    reminder_type: ReminderType
    days_remaining: int = Field(ge=0)


PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    SEND_NOTIFICATION: SendNotificationPayload,
    SEND_REMINDER: SendReminderPayload,
}


def serialize_payload(job_type: str, payload: BaseModel | dict[str, Any] | None) -> dict[str, Any]:
    """Validate a payload for its job type and return its JSON form.

    Raises:
        PayloadValidationError: If the payload doesn't match the job type's model
    """
    model = PAYLOAD_MODELS.get(job_type)

    if isinstance(payload, BaseModel):
        if model is not None and not isinstance(payload, model):
            raise PayloadValidationError(
                job_type, f"expected {model.__name__}, got {type(payload).__name__}"
            )
        return payload.model_dump(mode="json", exclude_none=True)

    data = payload or {}
    if model is None:
        return data

    try:
        return model.model_validate(data).model_dump(mode="json", exclude_none=True)
    except ValidationError as e:
        raise PayloadValidationError(job_type, str(e)) from e
