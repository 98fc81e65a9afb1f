"""
Health router.

GET /health     workflow count, active timers, running and recorded runs
"""

from __future__ import annotations

from fastapi import APIRouter

from actionflow.api.deps import Service
from actionflow.api.schemas.workflows import HealthSchema

router = APIRouter()


@router.get("/health", response_model=HealthSchema)
async def health(service: Service):
    return HealthSchema(**service.health())
