"""Email templates for reviewer notifications.

Templates use ``string.Template`` placeholders. Unknown placeholders are left
as-is so a missing variable never breaks delivery.
"""

from __future__ import annotations

from dataclasses import dataclass
from string import Template


@dataclass(frozen=True)
class EmailTemplate:
    id: str
    subject: str
    body: str

    def render(self, variables: dict[str, str]) -> tuple[str, str]:
        """Return the rendered (subject, body)."""
        return (
            Template(self.subject).safe_substitute(variables),
            Template(self.body).safe_substitute(variables),
        )


REVIEWER_REMINDER = EmailTemplate(
    id="review-reminder",
    subject="${urgency_prefix}Review Invitation - $manuscript_title",
    body=(
        "Dear $reviewer_name,\n\n"
        "This is a $reminder_type reminder about your invitation to review "
        "\"$manuscript_title\" ($field_of_study).\n\n"
        "Please respond within $days_remaining days:\n"
        "$response_link\n\n"
        "Thank you for supporting the peer review process."
    ),
)
