"""
FastAPI application factory.

``create_app()`` wires the workflow service, routers, error handlers and
lifespan events into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root for the HTTP surface.
    Routers reach the service through ``app.state`` so tests can hand in
    a service built with in-memory stores and a manual timer backend.

Tags:
    actionflow, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from actionflow import __version__
from actionflow.api.errors import actionflow_error_handler, unhandled_exception_handler
from actionflow.core.errors import ActionFlowError
from actionflow.core.logging import get_logger
from actionflow.core.settings import ActionFlowSettings, get_settings
from actionflow.orchestration.service import WorkflowService, create_workflow_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: start the scheduler, drain runs on the way out."""
    log = get_logger("actionflow.api")
    service: WorkflowService = app.state.service

    result = await service.startup()
    log.info(
        "api.starting",
        version=app.version,
        scheduled=len(result.registered),
        invalid_schedules=sorted(result.failed),
    )
    yield
    log.info("api.shutting_down")
    await service.shutdown(drain=True)


def create_app(
    service: WorkflowService | None = None,
    *,
    settings: ActionFlowSettings | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    service : WorkflowService | None
        Pre-built service (useful for testing). When ``None`` one is
        composed from ``settings``.
    settings : ActionFlowSettings | None
        Override settings. When ``None`` the cached singleton from
        :func:`get_settings` is used.
    """
    settings = settings or get_settings()
    service = service or create_workflow_service(settings)

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(ActionFlowError, actionflow_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from actionflow.api.routers import events, health, runs, workflows

    prefix = settings.api_prefix

    # Health at root level too, for container healthchecks
    app.include_router(health.router, tags=["health"])
    app.include_router(health.router, prefix=prefix, tags=["health"])
    app.include_router(workflows.router, prefix=prefix, tags=["workflows"])
    app.include_router(runs.router, prefix=prefix, tags=["runs"])
    app.include_router(events.router, prefix=prefix, tags=["events"])

    return app
