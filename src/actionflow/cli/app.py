"""
Root Typer application for the actionflow CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from actionflow import __version__
from actionflow.core.logging import configure_logging

app = Typer(
    name="actionflow",
    help="actionflow - trigger-driven workflow automation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"actionflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Structured log level."),
) -> None:
    """actionflow CLI - manage workflows, runs and events."""
    configure_logging(level=log_level, json_format=False)


# ── Sub-command registration ─────────────────────────────────────────────

from actionflow.cli.events import app as events_app  # noqa: E402
from actionflow.cli.serve import app as serve_app  # noqa: E402
from actionflow.cli.workflow import app as wf_app  # noqa: E402

app.add_typer(wf_app, name="workflow", help="Workflow management.")
app.add_typer(events_app, name="event", help="Event delivery.")
app.add_typer(serve_app, name="serve", help="Run the API server.")


if __name__ == "__main__":
    app()
