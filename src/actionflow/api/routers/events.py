"""
Events router - deliver an application event to event-triggered workflows.

POST /events/{event_type}      body: arbitrary JSON object (the payload)
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Path
from pydantic import BaseModel, Field

from actionflow.api.deps import Service
from actionflow.api.schemas.common import SuccessResponse
from actionflow.api.schemas.workflows import RunSchema

router = APIRouter(prefix="/events")


class EventDispatchSchema(BaseModel):
    event_type: str
    runs: list[RunSchema] = Field(default_factory=list)


@router.post("/{event_type}", response_model=SuccessResponse[EventDispatchSchema], status_code=202)
async def publish_event(
    service: Service,
    event_type: str = Path(..., description="Event name, e.g. order.created"),
    payload: dict[str, Any] | None = Body(default=None),
):
    """Start one run per enabled workflow listening for ``event_type``."""
    runs = await service.handle_event(event_type, payload or {})
    return SuccessResponse(
        data=EventDispatchSchema(
            event_type=event_type,
            runs=[RunSchema.from_run(r) for r in runs],
        )
    )
