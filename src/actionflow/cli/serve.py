"""
CLI: ``actionflow serve`` - start the API server.
"""

from __future__ import annotations

import os

import typer
import uvicorn

from actionflow.cli.utils import console
from actionflow.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    database: str | None = typer.Option(None, "--database", "-d", help="SQLite file"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the actionflow REST API server (scheduler included)."""
    if database:
        os.environ["ACTIONFLOW_DATABASE_PATH"] = database
        get_settings.cache_clear()
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"[bold green]Starting actionflow API[/bold green] on {host}:{port}")
    uvicorn.run(
        "actionflow.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )
