"""Job records and processor results."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

DEFAULT_MAX_ATTEMPTS = 3


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to epoch ms, treating naive values as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def new_job_id(created_ms: int | None = None) -> str:
    """Time-ordered id with a random suffix to avoid collisions."""
    ms = created_ms if created_ms is not None else now_ms()
    return f"{ms}-{uuid4().hex[:9]}"


class JobState(str, Enum):
    """Index a job id currently lives in."""

    READY = "ready"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    FAILED = "failed"


class BackoffType(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry delay policy. All durations are milliseconds."""

    type: BackoffType
    initial: int
    multiplier: float | None = None
    max: int | None = None

    @classmethod
    def fixed(cls, delay: int) -> BackoffPolicy:
        return cls(type=BackoffType.FIXED, initial=delay)

    @classmethod
    def exponential(
        cls,
        initial: int,
        multiplier: float | None = None,
        max: int | None = None,
    ) -> BackoffPolicy:
        return cls(type=BackoffType.EXPONENTIAL, initial=initial, multiplier=multiplier, max=max)

    def to_dict(self) -> dict[str, Any]:
        settings: dict[str, Any] = {"initial": self.initial}
        if self.multiplier is not None:
            settings["multiplier"] = self.multiplier
        if self.max is not None:
            settings["max"] = self.max
        return {"type": self.type.value, "settings": settings}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackoffPolicy:
        """Parse ``{"type": ..., "settings": {"initial", "multiplier"?, "max"?}}``."""
        settings = data.get("settings") or {}
        if "initial" not in settings:
            raise ValueError("Backoff settings require 'initial'")
        return cls(
            type=BackoffType(data["type"]),
            initial=int(settings["initial"]),
            multiplier=settings.get("multiplier"),
            max=settings.get("max"),
        )


@dataclass
class Job:
    """Job definition with scheduling metadata and retry state."""

    id: str
    type: str
    payload: dict[str, Any]
    priority: int = 0  # Higher = dequeued first
    attempts: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    scheduled_for: datetime | None = None
    backoff: BackoffPolicy | None = None
    metadata: dict[str, Any] | None = None
    last_error: str | None = None

    def __post_init__(self) -> None:
        if self.scheduled_for is None:
            self.scheduled_for = self.created_at

    @property
    def attempts_remaining(self) -> bool:
        return self.attempts < self.max_attempts

    @property
    def exhausted(self) -> bool:
        return self.attempts > self.max_attempts

    def to_dict(self) -> dict[str, Any]:
        """Serialize job to dictionary."""
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "priority": self.priority,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "created_at": self.created_at.isoformat(),
            "scheduled_for": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "backoff": self.backoff.to_dict() if self.backoff else None,
            "metadata": self.metadata,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        """Deserialize job from dictionary."""
        return cls(
            id=data["id"],
            type=data["type"],
            payload=data.get("payload") or {},
            priority=data.get("priority", 0),
            attempts=data.get("attempts", 0),
            max_attempts=data.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
            created_at=datetime.fromisoformat(data["created_at"]),
            scheduled_for=(
                datetime.fromisoformat(data["scheduled_for"])
                if data.get("scheduled_for")
                else None
            ),
            backoff=BackoffPolicy.from_dict(data["backoff"]) if data.get("backoff") else None,
            metadata=data.get("metadata"),
            last_error=data.get("last_error"),
        )


@dataclass
class JobResult:
    """Outcome reported by a processor.

    ``retry_after`` (ms) overrides the job's backoff policy for the next attempt.
    """

    success: bool
    result: Any = None
    error: str | None = None
    retry_after: int | None = None

    @classmethod
    def ok(cls, result: Any = None) -> JobResult:
        return cls(success=True, result=result)

    @classmethod
    def failure(cls, error: str, retry_after: int | None = None) -> JobResult:
        return cls(success=False, error=error, retry_after=retry_after)
