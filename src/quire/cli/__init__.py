"""CLI commands for quire.

Provides command-line interface using Typer:
- quire worker: Run a job worker until interrupted
- quire stats: Show queue depth per index
- quire failed: List recently failed jobs
- quire cleanup: Prune old completed/failed entries
- quire serve: Run the admin API server

Usage:
    quire --help
    quire worker --batch-size 10
    quire failed --limit 20 --json
    quire cleanup --older-than-days 14
"""

import typer

from quire.cli.admin_cmd import cleanup_app, failed_app, stats_app
from quire.cli.serve import app as serve_app
from quire.cli.worker_cmd import app as worker_app

# Main CLI application
app = typer.Typer(
    name="quire",
    help="quire: job queue with priority, delayed jobs and retry backoff",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(worker_app, name="worker")
app.add_typer(stats_app, name="stats")
app.add_typer(failed_app, name="failed")
app.add_typer(cleanup_app, name="cleanup")
app.add_typer(serve_app, name="serve")


@app.callback()
def callback() -> None:
    """quire: job queue with priority, delayed jobs and retry backoff."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
