"""CLI command for running the admin API server.

Usage:
    quire serve
    quire serve --port 8090 --host 0.0.0.0
    quire serve --reload --log-level debug
"""

from __future__ import annotations

import typer

from quire.config import settings

app = typer.Typer(help="Run the quire admin API server")


@app.callback(invoke_without_command=True)
def serve(
    host: str = typer.Option(
        settings.host,
        "--host",
        "-h",
        help="Host to bind to",
    ),
    port: int = typer.Option(
        settings.port,
        "--port",
        "-p",
        help="Port to listen on",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        help="Log level: debug, info, warning, error",
    ),
    access_log: bool = typer.Option(
        True,
        "--access-log/--no-access-log",
        help="Enable/disable access logging",
    ),
) -> None:
    """Run the admin API server.

    Starts uvicorn with the FastAPI application. Set RUN_WORKER_IN_APP
    to also process jobs inside the server process.
    """
    import uvicorn

    typer.echo("Starting quire server...")
    typer.echo(f"  Host: {host}")
    typer.echo(f"  Port: {port}")
    typer.echo(f"  Log level: {log_level}")
    typer.echo(f"  Worker in process: {'yes' if settings.run_worker_in_app else 'no'}")
    if reload:
        typer.echo("  Reload: enabled")
    typer.echo()
    typer.echo(f"API documentation: http://{host}:{port}/docs")
    typer.echo()

    # A single process; several API workers would each run their own job worker.
    uvicorn.run(
        app="quire.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
        access_log=access_log,
    )
