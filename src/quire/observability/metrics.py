"""Prometheus metrics for quire.

Provides metrics collection and exposure:
- Jobs enqueued per type
- Jobs processed per type and outcome
- Processor latency
- Queue depth per index

Usage:
    from quire.observability.metrics import get_metrics

    metrics = get_metrics()
    if metrics.jobs_enqueued_total:
        metrics.jobs_enqueued_total.labels(job_type="send_reminder").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_client import generate_latest as prometheus_generate_latest

from quire.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics.

    Metric attributes stay ``None`` when metrics are disabled; callers check
    before recording.
    """

    jobs_enqueued_total: Any = None
    jobs_processed_total: Any = None
    job_duration_seconds: Any = None
    queue_depth: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self, enabled: bool | None = None) -> None:
        """Initialize Prometheus metrics.

        Args:
            enabled: Whether to register collectors; defaults to
                ``settings.enable_metrics``
        """
        if self._initialized:
            return

        if enabled is None:
            enabled = settings.enable_metrics
        if not enabled:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = REGISTRY

        self.jobs_enqueued_total = Counter(
            "quire_jobs_enqueued_total",
            "Jobs accepted by the queue",
            ["job_type"],
        )

        self.jobs_processed_total = Counter(
            "quire_jobs_processed_total",
            "Jobs dispatched to a processor, by outcome",
            ["job_type", "outcome"],
        )

        self.job_duration_seconds = Histogram(
            "quire_job_duration_seconds",
            "Processor execution time in seconds",
            ["job_type"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
        )

        self.queue_depth = Gauge(
            "quire_queue_depth",
            "Job ids per queue index",
            ["index"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return prometheus_generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics(enabled: bool | None = None) -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access; ``enabled`` only applies then.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize(enabled)
    return metrics_registry
