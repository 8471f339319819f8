"""Operator commands for inspecting and pruning the queue.

Usage:
    quire stats
    quire failed --limit 20
    quire cleanup --older-than-days 14
"""

from __future__ import annotations

import asyncio
from typing import Any

import orjson
import typer

from quire.config import settings
from quire.jobs import Job, JobQueueService
from quire.store.redis import create_redis

stats_app = typer.Typer(help="Show job counts per queue index")
failed_app = typer.Typer(help="List the most recently failed jobs")
cleanup_app = typer.Typer(help="Prune old completed and failed entries")


def open_service() -> JobQueueService:
    """A service for one-off admin calls. The worker is never started."""
    return JobQueueService.from_settings(create_redis(settings.redis_url), settings)


def _echo_json(data: Any) -> None:
    typer.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())


@stats_app.callback(invoke_without_command=True)
def stats(
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Show how many job ids each queue index holds."""

    async def _stats() -> dict[str, int]:
        async with open_service() as service:
            return await service.get_queue_stats()

    counts = asyncio.run(_stats())
    if as_json:
        _echo_json(counts)
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"Queue '{settings.queue_prefix}'")
    table.add_column("Index", style="cyan")
    table.add_column("Jobs", justify="right")
    for index, count in counts.items():
        table.add_row(index, str(count))
    Console().print(table)


@failed_app.callback(invoke_without_command=True)
def failed(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Maximum jobs to list"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """List failed jobs, most recent first."""

    async def _failed() -> list[Job]:
        async with open_service() as service:
            return await service.get_failed_jobs(limit)

    jobs = asyncio.run(_failed())
    if as_json:
        _echo_json([job.to_dict() for job in jobs])
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    if not jobs:
        console.print("[green]No failed jobs[/green]")
        return

    table = Table(title="Failed jobs")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Attempts", justify="right")
    table.add_column("Last error", style="red")
    for job in jobs:
        table.add_row(job.id, job.type, f"{job.attempts}/{job.max_attempts}", job.last_error or "")
    console.print(table)


@cleanup_app.callback(invoke_without_command=True)
def cleanup(
    older_than_days: float = typer.Option(
        settings.cleanup_retention_days,
        "--older-than-days",
        "-d",
        min=0,
        help="Remove completed/failed entries older than this many days",
    ),
) -> None:
    """Prune completed and failed entries. Ready and scheduled jobs are never touched."""

    async def _cleanup() -> dict[str, int]:
        async with open_service() as service:
            return await service.cleanup(older_than_days)

    removed = asyncio.run(_cleanup())
    typer.echo(
        f"Removed {removed['completed']} completed and {removed['failed']} failed entries "
        f"older than {older_than_days:g} days"
    )
