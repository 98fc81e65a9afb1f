"""
CLI: ``actionflow event`` - deliver events to event-triggered workflows.
"""

from __future__ import annotations

import asyncio
import json

import typer

from actionflow.cli.utils import console, err_console, make_service, print_json, print_table, styled_status

app = typer.Typer(no_args_is_help=True)


@app.command("publish")
def publish(
    event_type: str = typer.Argument(..., help="Event name, e.g. order.created"),
    payload: str | None = typer.Option(None, "--payload", help="JSON object payload"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run every enabled workflow listening for EVENT_TYPE and wait for them."""
    try:
        data = json.loads(payload) if payload else {}
    except json.JSONDecodeError as exc:
        err_console.print(f"[bold red]Error[/bold red]: --payload is not valid JSON ({exc.msg})")
        raise typer.Exit(code=1) from exc

    service = make_service(database)

    async def _dispatch():
        runs = await service.handle_event(event_type, data)
        await service.engine.drain()
        return runs

    runs = asyncio.run(_dispatch())
    if json_out:
        print_json([r.to_dict() for r in runs])
        return
    if not runs:
        console.print(f"[dim]No workflow listens for {event_type}.[/dim]")
        return
    print_table(
        [
            {
                "run": r.id,
                "workflow": r.workflow_name or r.workflow_id,
                "status": styled_status(r.status.value),
                "error": r.error,
            }
            for r in runs
        ],
        title=f"Event: {event_type}",
    )
