"""Observability module for quire.

Provides metrics and structured logging:
- Prometheus metrics for enqueue, dispatch and queue depth
- JSON structured logging with job context
"""

from quire.observability.logging import (
    LogContext,
    configure_logging,
    job_id_var,
    job_type_var,
    worker_var,
)
from quire.observability.metrics import get_metrics, metrics_registry

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "job_id_var",
    "job_type_var",
    "worker_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
]
