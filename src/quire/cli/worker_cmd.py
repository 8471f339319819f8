"""CLI command for running a job worker.

Usage:
    quire worker
    quire worker --name worker-2 --batch-size 10
"""

from __future__ import annotations

import asyncio
import logging
import signal

import typer

from quire.config import Settings, settings
from quire.observability import configure_logging, get_metrics
from quire.runtime import create_runtime

logger = logging.getLogger(__name__)

app = typer.Typer(help="Run a job worker until interrupted")


@app.callback(invoke_without_command=True)
def worker(
    name: str | None = typer.Option(
        None,
        "--name",
        "-n",
        help="Worker name used in logs (default from WORKER_NAME)",
    ),
    batch_size: int | None = typer.Option(
        None,
        "--batch-size",
        "-b",
        min=1,
        help="Ready jobs processed per dispatch tick",
    ),
    poll_interval: float | None = typer.Option(
        None,
        "--poll-interval",
        min=0.1,
        help="Seconds between dispatch ticks",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
) -> None:
    """Process jobs until SIGINT or SIGTERM.

    The in-flight batch finishes before the process exits.
    """
    overrides = {
        "worker_name": name,
        "worker_batch_size": batch_size,
        "worker_poll_interval": poll_interval,
        "log_level": log_level,
    }
    cfg = settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    configure_logging(json_format=cfg.use_json_logs, level=cfg.log_level)
    get_metrics(enabled=cfg.enable_metrics)

    asyncio.run(run_worker(cfg))


async def run_worker(cfg: Settings) -> None:
    """Start the worker and block until a shutdown signal arrives."""
    runtime = create_runtime(cfg)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await runtime.jobs.start_worker()
        logger.info(f"Worker {cfg.worker_name} running against {cfg.queue_prefix} queue")
        await stop_event.wait()
        logger.info(f"Worker {cfg.worker_name} shutting down")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await runtime.close()
