"""
FastAPI dependency injection - the service and settings live on ``app.state``.

Usage in routers::

    from actionflow.api.deps import Service

    @router.get("/things")
    async def list_things(service: Service):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from actionflow.core.settings import ActionFlowSettings
from actionflow.orchestration.service import WorkflowService


def get_service(request: Request) -> WorkflowService:
    return request.app.state.service


def get_app_settings(request: Request) -> ActionFlowSettings:
    return request.app.state.settings


Service = Annotated[WorkflowService, Depends(get_service)]
Settings = Annotated[ActionFlowSettings, Depends(get_app_settings)]
