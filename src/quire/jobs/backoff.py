"""Retry delay calculation.

Precedence:
1. A processor-suggested ``retry_after`` is used verbatim.
2. ``fixed`` policies return their initial delay.
3. ``exponential`` policies return initial * multiplier ** (attempts - 1), capped.
4. Jobs without a policy walk the default ladder: 10s, 60s, 300s.
"""

from __future__ import annotations

from quire.jobs.models import BackoffType, Job

DEFAULT_RETRY_LADDER: tuple[int, ...] = (10_000, 60_000, 300_000)
DEFAULT_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY = 300_000
FALLBACK_DELAY = 10_000


def calculate_retry_delay(job: Job, suggested_delay: int | None = None) -> int:
    """Delay in milliseconds before the job's next attempt.

    Args:
        job: Job that just failed; ``attempts`` counts the failed attempt
        suggested_delay: ``retry_after`` reported by the processor, if any

    Returns:
        Delay in milliseconds
    """
    if suggested_delay:
        return int(suggested_delay)

    attempt = max(job.attempts, 1)

    if job.backoff is None:
        return DEFAULT_RETRY_LADDER[min(attempt - 1, len(DEFAULT_RETRY_LADDER) - 1)]

    policy = job.backoff

    if policy.type == BackoffType.FIXED:
        return policy.initial

    if policy.type == BackoffType.EXPONENTIAL:
        multiplier = policy.multiplier or DEFAULT_MULTIPLIER
        cap = policy.max or DEFAULT_MAX_DELAY
        try:
            delay = policy.initial * multiplier ** (attempt - 1)
        except OverflowError:
            return cap
        return int(min(delay, cap))

    return FALLBACK_DELAY
