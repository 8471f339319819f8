"""Redis key schema for the job queue.

Key format: {prefix}:{kind}[:{name}]

Where:
- prefix: "quire" by default (namespace for a shared Redis)
- kind: "job" for serialized job records, "jobs" for the sorted-set indexes
- name: the job id, or the index name (ready, scheduled, completed, failed)
"""

from __future__ import annotations

from typing import Literal

IndexName = Literal["ready", "scheduled", "completed", "failed"]

INDEX_NAMES: tuple[IndexName, ...] = ("ready", "scheduled", "completed", "failed")


class QueueKeys:
    """Key generator following a consistent naming convention."""

    DEFAULT_PREFIX = "quire"

    def __init__(self, prefix: str = DEFAULT_PREFIX) -> None:
        self.prefix = prefix

    def job(self, job_id: str) -> str:
        """Key for a serialized job record."""
        return f"{self.prefix}:job:{job_id}"

    def index(self, name: IndexName) -> str:
        """Key for one of the sorted-set indexes."""
        return f"{self.prefix}:jobs:{name}"

    @property
    def ready(self) -> str:
        """Ready jobs, scored by priority."""
        return self.index("ready")

    @property
    def scheduled(self) -> str:
        """Delayed and retrying jobs, scored by due time (epoch ms)."""
        return self.index("scheduled")

    @property
    def completed(self) -> str:
        """Completed jobs, scored by completion time (epoch ms)."""
        return self.index("completed")

    @property
    def failed(self) -> str:
        """Failed jobs, scored by failure time (epoch ms)."""
        return self.index("failed")

