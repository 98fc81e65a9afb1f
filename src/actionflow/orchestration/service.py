"""Workflow service - the application-facing facade.

Manifesto:
    The API, the CLI and embedding applications all need the same handful
    of operations, and every one of them must keep the scheduler in step
    with the stored definitions. Putting those rules in one facade means no
    entry point can forget to reconcile a timer.

Architecture:
    ::

        WorkflowService
          ├── DefinitionRepository   create / get / list / update / delete
          ├── WorkflowScheduler      register / reconcile / unregister
          ├── ExecutionEngine        start (fire-and-forget) / run (sync)
          ├── RunStore               history, run lookup
          └── EventDispatcher        handle_event

        create_workflow_service(settings)  ─ composition root

Tags:
    actionflow, orchestration, service, facade, composition-root

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import httpx

from actionflow.actions import (
    ActionHandlerRegistry,
    ConsoleEmailSender,
    EmailSender,
    NotificationSender,
    SMTPEmailSender,
    TaskCreator,
    create_default_registry,
)
from actionflow.actions.wait import Sleep
from actionflow.core.database import open_database
from actionflow.core.errors import DefinitionError, RunNotFoundError
from actionflow.core.events import EventBus
from actionflow.core.logging import get_logger
from actionflow.core.scheduling import (
    BootstrapResult,
    TimerBackend,
    WorkflowScheduler,
    create_timer_backend,
)
from actionflow.core.settings import ActionFlowSettings, EmailBackendKind, get_settings

from .definitions import (
    DefinitionRepository,
    InMemoryDefinitionRepository,
    SQLiteDefinitionRepository,
)
from .dispatcher import EventDispatcher
from .engine import ExecutionEngine
from .models import TriggerType, WorkflowDefinition, WorkflowRun
from .recorder import InMemoryRunStore, RunStore, SQLiteRunStore

logger = get_logger(__name__)

_RECONCILE_FIELDS = frozenset({"enabled", "trigger"})


class WorkflowService:
    """CRUD, execution and event entry points over one engine and scheduler."""

    def __init__(
        self,
        registry: DefinitionRepository,
        engine: ExecutionEngine,
        scheduler: WorkflowScheduler,
        *,
        dispatcher: EventDispatcher | None = None,
        event_bus: EventBus | None = None,
        history_limit: int = 10,
    ) -> None:
        self.registry = registry
        self.engine = engine
        self.scheduler = scheduler
        self.dispatcher = dispatcher or EventDispatcher(registry, engine)
        self.event_bus = event_bus
        self.history_limit = history_limit
        self._started = False

    # ------------------------------------------------------------------
    # definitions
    # ------------------------------------------------------------------

    def create_workflow(
        self, definition: WorkflowDefinition | Mapping[str, Any]
    ) -> WorkflowDefinition:
        """Validate, persist and (if scheduled) register a new workflow.

        Raises:
            DefinitionError: invalid definition or schedule expression; nothing
                is persisted.
        """
        if not isinstance(definition, WorkflowDefinition):
            definition = WorkflowDefinition.from_dict(definition)
        definition.validate()
        self.scheduler.check(definition)

        saved = self.registry.create(definition)
        try:
            self.scheduler.register(saved)
        except DefinitionError:
            self.registry.delete(saved.id)
            raise
        logger.info(
            "workflow.created",
            workflow_id=saved.id,
            trigger=saved.trigger.type.value,
            actions=len(saved.actions),
        )
        return saved

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        return self.registry.get(workflow_id)

    def list_workflows(self, *, trigger_type: TriggerType | None = None) -> list[WorkflowDefinition]:
        return self.registry.list(trigger_type=trigger_type)

    def update_workflow(self, workflow_id: str, updates: Mapping[str, Any]) -> WorkflowDefinition:
        """Partial update; the timer is reconciled when ``enabled`` or
        ``trigger`` changes.

        Raises:
            WorkflowNotFoundError: unknown id.
            DefinitionError: the merged definition is invalid; nothing changes.
        """
        current = self.registry.get(workflow_id)
        candidate = current.merged(updates)
        candidate.validate()
        self.scheduler.check(candidate)

        saved = self.registry.update(workflow_id, updates)
        if _RECONCILE_FIELDS.intersection(updates):
            try:
                self.scheduler.reconcile(saved)
            except DefinitionError:
                self.registry.update(
                    workflow_id,
                    {"enabled": current.enabled, "trigger": current.trigger.to_dict()},
                )
                raise
        logger.info("workflow.updated", workflow_id=workflow_id, fields=sorted(updates))
        return saved

    def delete_workflow(self, workflow_id: str) -> bool:
        """Cancel the timer and delete. Runs already started are not touched."""
        self.scheduler.unregister(workflow_id)
        deleted = self.registry.delete(workflow_id)
        if deleted:
            logger.info("workflow.deleted", workflow_id=workflow_id)
        return deleted

    # ------------------------------------------------------------------
    # execution
    # ------------------------------------------------------------------

    async def start(
        self, workflow_id: str, params: Mapping[str, Any] | None = None
    ) -> WorkflowRun:
        """Fire-and-forget manual run; returns the live, still running handle."""
        definition = self.registry.get(workflow_id)
        return self.engine.launch(definition, trigger=TriggerType.MANUAL, params=params)

    async def run(
        self, workflow_id: str, params: Mapping[str, Any] | None = None
    ) -> WorkflowRun:
        """Synchronous manual run; returns the terminal run."""
        definition = self.registry.get(workflow_id)
        return await self.engine.run(definition, trigger=TriggerType.MANUAL, params=params)

    def list_running_runs(self) -> list[WorkflowRun]:
        return self.engine.list_running()

    def get_run(self, run_id: str) -> WorkflowRun:
        run = self.engine.get_running(run_id) or self.engine.store.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def get_run_history(self, workflow_id: str, limit: int | None = None) -> list[WorkflowRun]:
        """Most recent first; an empty list when the workflow never ran."""
        limit = self.history_limit if limit is None else limit
        if limit <= 0:
            return []
        return self.engine.store.list_for_workflow(workflow_id, limit)

    async def handle_event(
        self, event_type: str, payload: Mapping[str, Any] | None = None
    ) -> list[WorkflowRun]:
        return await self.dispatcher.handle_event(event_type, payload)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def startup(self) -> BootstrapResult:
        """Start the scheduler (re-registering stored schedules) and attach
        to the event bus when one is configured."""
        result = await self.scheduler.start()
        if self.event_bus is not None:
            await self.dispatcher.attach(self.event_bus)
        self._started = True
        logger.info("service.started", scheduled=len(result.registered), invalid=len(result.failed))
        return result

    async def shutdown(self, *, drain: bool = True) -> None:
        """Cancel every timer, then (by default) wait for in-flight runs."""
        self.scheduler.shutdown()
        await self.dispatcher.detach()
        if drain:
            await self.engine.drain()
        self._started = False
        logger.info("service.stopped", drained=drain)

    def health(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "started": self._started,
            "workflows": len(self.registry.list()),
            "scheduled_jobs": len(self.scheduler.active_timers()),
            "running_runs": len(self.engine.list_running()),
            "recorded_runs": self.engine.store.count(),
            "scheduler": self.scheduler.health(),
        }


def _email_sender(settings: ActionFlowSettings) -> EmailSender:
    if settings.email_backend == EmailBackendKind.SMTP:
        return SMTPEmailSender(
            settings.smtp_host,
            settings.email_from,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    return ConsoleEmailSender(settings.email_from)


def create_workflow_service(
    settings: ActionFlowSettings | None = None,
    *,
    registry: DefinitionRepository | None = None,
    store: RunStore | None = None,
    handlers: ActionHandlerRegistry | None = None,
    timer_backend: TimerBackend | None = None,
    notification_sender: NotificationSender | None = None,
    email_sender: EmailSender | None = None,
    task_creator: TaskCreator | None = None,
    http_client: httpx.AsyncClient | None = None,
    sleep: Sleep | None = None,
    event_bus: EventBus | None = None,
    clock: Callable[[], datetime] | None = None,
) -> WorkflowService:
    """Composition root: build a fully wired service from settings.

    Any collaborator can be overridden (tests pass in-memory stores, a
    manual timer backend, fake senders ...).
    """
    settings = settings or get_settings()

    if registry is None or store is None:
        if settings.database_path:
            conn = open_database(settings.database_path)
            if registry is None:
                registry = SQLiteDefinitionRepository(conn, clock=clock)
            if store is None:
                store = SQLiteRunStore(conn)
        else:
            if registry is None:
                registry = InMemoryDefinitionRepository(clock=clock)
            if store is None:
                store = InMemoryRunStore()

    if handlers is None:
        handlers = create_default_registry(
            notification_sender=notification_sender,
            email_sender=email_sender if email_sender is not None else _email_sender(settings),
            task_creator=task_creator,
            http_client=http_client,
            http_timeout=settings.http_timeout_seconds,
            sleep=sleep,
        )

    engine = ExecutionEngine(handlers, store, clock=clock)
    if timer_backend is None:
        timer_backend = create_timer_backend(
            settings.scheduler_backend, settings.scheduler_timezone
        )
    scheduler = WorkflowScheduler(timer_backend, registry, engine)

    return WorkflowService(
        registry,
        engine,
        scheduler,
        event_bus=event_bus,
        history_limit=settings.history_limit,
    )
