"""
Workflow router - definition CRUD, execution and run history.

GET    /workflows
POST   /workflows
GET    /workflows/{workflow_id}
PUT    /workflows/{workflow_id}
DELETE /workflows/{workflow_id}
POST   /workflows/{workflow_id}/execute        202, or 200 with ?wait=true
GET    /workflows/{workflow_id}/executions     most recent first
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Body, Path, Query, Response

from actionflow.api.deps import Service, Settings
from actionflow.api.errors import problem_response
from actionflow.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from actionflow.api.schemas.workflows import (
    CreateWorkflowBody,
    ExecuteBody,
    RunSchema,
    UpdateWorkflowBody,
    WorkflowSchema,
)

router = APIRouter(prefix="/workflows")


def _elapsed(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


@router.get("", response_model=PagedResponse[WorkflowSchema])
async def list_workflows(service: Service):
    """List every workflow definition (oldest first)."""
    started = time.perf_counter()
    items = [WorkflowSchema.from_definition(d) for d in service.list_workflows()]
    return PagedResponse(
        data=items,
        page=PageMeta.from_result(total=len(items), limit=max(len(items), 1)),
        elapsed_ms=_elapsed(started),
    )


@router.post("", response_model=SuccessResponse[WorkflowSchema], status_code=201)
async def create_workflow(body: CreateWorkflowBody, service: Service):
    """Create a workflow; a schedule trigger is registered immediately.

    Raises:
        400: invalid definition or schedule expression.

    Example:
        POST /api/v1/workflows
        {
            "name": "Nightly report",
            "trigger": {"type": "schedule", "schedule": "0 2 * * *"},
            "actions": [{"id": "notify", "type": "notification",
                         "config": {"message": "done", "recipients": ["ops"]}}]
        }
    """
    started = time.perf_counter()
    saved = service.create_workflow(body.model_dump(mode="json"))
    return SuccessResponse(data=WorkflowSchema.from_definition(saved), elapsed_ms=_elapsed(started))


@router.get("/{workflow_id}", response_model=SuccessResponse[WorkflowSchema])
async def get_workflow(service: Service, workflow_id: str = Path(..., description="Workflow ID")):
    started = time.perf_counter()
    definition = service.get_workflow(workflow_id)
    return SuccessResponse(
        data=WorkflowSchema.from_definition(definition), elapsed_ms=_elapsed(started)
    )


@router.put("/{workflow_id}", response_model=SuccessResponse[WorkflowSchema])
async def update_workflow(
    body: UpdateWorkflowBody,
    service: Service,
    workflow_id: str = Path(..., description="Workflow ID"),
):
    """Partial update; ``null`` fields are left unchanged. Changing ``enabled``
    or ``trigger`` re-syncs the schedule."""
    started = time.perf_counter()
    updates = body.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    saved = service.update_workflow(workflow_id, updates)
    return SuccessResponse(data=WorkflowSchema.from_definition(saved), elapsed_ms=_elapsed(started))


@router.delete("/{workflow_id}", status_code=204)
async def delete_workflow(service: Service, workflow_id: str = Path(..., description="Workflow ID")):
    if not service.delete_workflow(workflow_id):
        return problem_response(
            status=404,
            title="Not found",
            detail=f"Workflow not found: {workflow_id}",
            instance=f"/workflows/{workflow_id}",
        )
    return Response(status_code=204)


@router.post("/{workflow_id}/execute", response_model=SuccessResponse[RunSchema], status_code=202)
async def execute_workflow(
    response: Response,
    service: Service,
    workflow_id: str = Path(..., description="Workflow ID"),
    wait: bool = Query(False, description="Block until the run reaches a terminal state"),
    body: ExecuteBody | None = Body(default=None),
):
    """Start a manual run.

    By default the run is started in the background and returned while
    still ``running`` (202). With ``?wait=true`` the call returns the
    terminal run (200).
    """
    started = time.perf_counter()
    params = body.params if body else {}
    if wait:
        run = await service.run(workflow_id, params)
        response.status_code = 200
    else:
        run = await service.start(workflow_id, params)
    return SuccessResponse(data=RunSchema.from_run(run), elapsed_ms=_elapsed(started))


@router.get("/{workflow_id}/executions", response_model=PagedResponse[RunSchema])
async def list_executions(
    service: Service,
    settings: Settings,
    workflow_id: str = Path(..., description="Workflow ID"),
    limit: int | None = Query(None, ge=1, le=500),
):
    """Run history, most recent first. Empty list when the workflow never ran."""
    started = time.perf_counter()
    limit = limit or settings.history_limit
    runs = service.get_run_history(workflow_id, limit)
    total = service.engine.store.count(workflow_id)
    return PagedResponse(
        data=[RunSchema.from_run(r) for r in runs],
        page=PageMeta.from_result(total=total, limit=limit),
        elapsed_ms=_elapsed(started),
    )
