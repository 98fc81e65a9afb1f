"""
Run router - in-flight runs and run lookup.

GET /runs/running
GET /runs/{run_id}
"""

from __future__ import annotations

from fastapi import APIRouter, Path

from actionflow.api.deps import Service
from actionflow.api.schemas.common import PagedResponse, PageMeta, SuccessResponse
from actionflow.api.schemas.workflows import RunSchema

router = APIRouter(prefix="/runs")


@router.get("/running", response_model=PagedResponse[RunSchema])
async def list_running_runs(service: Service):
    runs = [RunSchema.from_run(r) for r in service.list_running_runs()]
    return PagedResponse(data=runs, page=PageMeta.from_result(total=len(runs), limit=max(len(runs), 1)))


@router.get("/{run_id}", response_model=SuccessResponse[RunSchema])
async def get_run(service: Service, run_id: str = Path(..., description="Run ID")):
    """A run and its full log trail (live while the run is in flight)."""
    return SuccessResponse(data=RunSchema.from_run(service.get_run(run_id)))
