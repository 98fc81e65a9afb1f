"""
CLI utility helpers - output formatting and service construction.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from actionflow.core.errors import ActionFlowError
from actionflow.core.settings import ActionFlowSettings, get_settings
from actionflow.orchestration.service import WorkflowService, create_workflow_service

console = Console()
err_console = Console(stderr=True)

DEFAULT_DATABASE = Path.home() / ".actionflow" / "actionflow.db"


# ── Service helper ───────────────────────────────────────────────────────


def resolve_settings(database: str | None = None) -> ActionFlowSettings:
    """Settings for a CLI invocation.

    Each command is its own process, so the CLI always uses a SQLite file:
    ``--database``, else ``ACTIONFLOW_DATABASE_PATH``, else
    ``~/.actionflow/actionflow.db``.
    """
    settings = get_settings()
    path = database or settings.database_path or str(DEFAULT_DATABASE)
    return settings.model_copy(update={"database_path": path})


def make_service(database: str | None = None) -> WorkflowService:
    return create_workflow_service(resolve_settings(database))


@contextmanager
def cli_errors() -> Iterator[None]:
    """Render actionflow errors as a red one-liner and exit 1."""
    try:
        yield
    except ActionFlowError as exc:
        err_console.print(
            f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}"
        )
        raise typer.Exit(code=1) from exc


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


STATUS_STYLE = {
    "running": "yellow",
    "completed": "green",
    "failed": "red",
    "success": "green",
    "error": "red",
}


def styled_status(status: str) -> str:
    style = STATUS_STYLE.get(status)
    return f"[{style}]{status}[/{style}]" if style else status
