"""
CLI: ``actionflow workflow`` - workflow management commands.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer

from actionflow.cli.utils import (
    cli_errors,
    console,
    err_console,
    make_service,
    print_dict,
    print_json,
    print_table,
    styled_status,
)
from actionflow.orchestration.models import WorkflowRun

app = typer.Typer(no_args_is_help=True)


def _run_row(run: WorkflowRun) -> dict[str, object]:
    return {
        "id": run.id,
        "status": styled_status(run.status.value),
        "trigger": run.trigger.value,
        "started_at": run.started_at.isoformat(timespec="seconds"),
        "duration_ms": run.duration_ms,
        "error": run.error,
    }


def _print_run(run: WorkflowRun) -> None:
    print_dict(
        {
            "id": run.id,
            "workflow": run.workflow_name or run.workflow_id,
            "status": styled_status(run.status.value),
            "duration_ms": run.duration_ms,
            "error": run.error,
        },
        title="Run",
    )
    print_table(
        [
            {
                "timestamp": log.timestamp.isoformat(timespec="milliseconds"),
                "action": log.action_id,
                "status": styled_status(log.status.value),
                "message": log.message,
            }
            for log in run.logs
        ],
        title="Logs",
    )


@app.command("list")
def list_workflows(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List all workflows."""
    service = make_service(database)
    workflows = service.list_workflows()
    if json_out:
        print_json([w.to_dict() for w in workflows])
        return
    print_table(
        [
            {
                "id": w.id,
                "name": w.name,
                "enabled": w.enabled,
                "trigger": w.trigger.type.value,
                "schedule/event": w.trigger.schedule or w.trigger.event or "",
                "actions": len(w.actions),
            }
            for w in workflows
        ],
        title="Workflows",
    )


@app.command("show")
def show_workflow(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show a workflow and its actions."""
    service = make_service(database)
    with cli_errors():
        definition = service.get_workflow(workflow_id)
    if json_out:
        print_json(definition.to_dict())
        return
    print_dict(
        {
            "id": definition.id,
            "name": definition.name,
            "description": definition.description,
            "enabled": definition.enabled,
            "trigger": definition.trigger.to_dict(),
        },
        title=f"Workflow: {definition.name}",
    )
    print_table(
        [
            {
                "#": i,
                "id": a.id,
                "type": a.type.value,
                "name": a.name,
                "next": ", ".join(a.next_actions),
            }
            for i, a in enumerate(definition.actions, start=1)
        ],
        title="Actions",
    )


@app.command("create")
def create_workflow(
    file: Path = typer.Option(..., "--file", "-f", exists=True, dir_okay=False, help="JSON definition"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create a workflow from a JSON file."""
    try:
        document = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        err_console.print(f"[bold red]Error[/bold red]: {file} is not valid JSON ({exc.msg})")
        raise typer.Exit(code=1) from exc

    service = make_service(database)
    with cli_errors():
        saved = service.create_workflow(document)
    if json_out:
        print_json(saved.to_dict())
        return
    console.print(f"[green]Created[/green] workflow [bold]{saved.name}[/bold] ({saved.id})")


@app.command("delete")
def delete_workflow(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete a workflow. Run history is kept."""
    service = make_service(database)
    if not service.delete_workflow(workflow_id):
        err_console.print(f"[bold red]Error[/bold red]: Workflow not found: {workflow_id}")
        raise typer.Exit(code=1)
    console.print(f"[green]Deleted[/green] workflow {workflow_id}")


@app.command("run")
def run_workflow(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    params: str | None = typer.Option(None, "--params", help="JSON object exposed as 'params'"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a workflow to completion and print the run record."""
    try:
        run_params = json.loads(params) if params else {}
    except json.JSONDecodeError as exc:
        err_console.print(f"[bold red]Error[/bold red]: --params is not valid JSON ({exc.msg})")
        raise typer.Exit(code=1) from exc

    service = make_service(database)
    with cli_errors():
        run = asyncio.run(service.run(workflow_id, run_params))
    if json_out:
        print_json(run.to_dict())
    else:
        _print_run(run)
    if run.status.value == "failed":
        raise typer.Exit(code=2)


@app.command("history")
def run_history(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max runs (default from settings)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show recent runs, most recent first."""
    service = make_service(database)
    runs = service.get_run_history(workflow_id, limit)
    if json_out:
        print_json([r.to_dict() for r in runs])
        return
    print_table([_run_row(r) for r in runs], title=f"Runs: {workflow_id}")
