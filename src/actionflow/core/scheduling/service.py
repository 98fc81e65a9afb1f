"""Workflow scheduler - one recurring timer per schedule-triggered workflow.

Manifesto:
    The scheduler owns the mapping from workflow id to a live timer and
    nothing else. Timing is delegated to a pluggable backend; what a firing
    does (reload the definition, start a run) lives here. Invalid schedule
    expressions are rejected to the caller, never only logged.

Tags:
    actionflow, scheduling, cron, timers, service

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  WORKFLOW SCHEDULER                                                           │
│                                                                               │
│   register(def)     check expression ──► add_timer (replaces)                 │
│   unregister(id)    cancel_timer(id)                                          │
│   reconcile(def)    check ──► register, or unregister when not scheduled      │
│                                                                               │
│   start()           capture running loop ──► backend.start() ──► bootstrap   │
│   shutdown()        backend.shutdown()  (cancels every timer)                │
│                                                                               │
│   backend thread                       event loop thread                     │
│   ──────────────                       ─────────────────                     │
│   _fire(id) ── call_soon_threadsafe ──► _launch(id)                          │
│                                           ├── registry.get(id)               │
│                                           ├── skip if deleted / disabled     │
│                                           └── engine.launch(def)  (no wait)  │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

from actionflow.core.errors import DefinitionError, WorkflowNotFoundError
from actionflow.core.logging import get_logger
from actionflow.orchestration.models import TriggerType

from .expressions import normalize_expression
from .protocol import BootstrapResult, TimerBackend

if TYPE_CHECKING:
    from actionflow.orchestration.definitions import DefinitionRepository
    from actionflow.orchestration.engine import ExecutionEngine
    from actionflow.orchestration.models import WorkflowDefinition

logger = get_logger(__name__)


class WorkflowScheduler:
    """Keeps exactly one active timer per enabled, schedule-triggered workflow.

    Example:
        >>> scheduler = WorkflowScheduler(backend, registry, engine)
        >>> result = await scheduler.start()        # re-registers stored schedules
        >>> scheduler.register(definition)
        True
        >>> scheduler.unregister(definition.id)
        True
    """

    def __init__(
        self,
        backend: TimerBackend,
        registry: DefinitionRepository,
        engine: ExecutionEngine,
    ) -> None:
        self.backend = backend
        self._registry = registry
        self._engine = engine
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.RLock()
        self._fire_count = 0
        self._skipped_count = 0

    # ------------------------------------------------------------------
    # registration
    # ------------------------------------------------------------------

    @staticmethod
    def validate(definition: WorkflowDefinition) -> str | None:
        """Return the normalised expression of a schedule trigger, else None.

        Raises:
            DefinitionError: for a schedule trigger with an invalid expression.
        """
        if definition.trigger.type != TriggerType.SCHEDULE:
            return None
        try:
            return normalize_expression(definition.trigger.schedule)
        except DefinitionError as exc:
            raise exc.with_context(workflow_id=definition.id)

    def check(self, definition: WorkflowDefinition) -> str | None:
        """Like :meth:`validate`, but also asks the backend whether it can
        schedule the expression. Call before persisting."""
        expression = self.validate(definition)
        if expression is None:
            return None
        try:
            return self.backend.validate_expression(expression)
        except DefinitionError as exc:
            raise exc.with_context(workflow_id=definition.id)

    def register(self, definition: WorkflowDefinition) -> bool:
        """Arm the timer for ``definition``, replacing any previous one.

        Returns False (and arms nothing) for manual/event triggers and for
        disabled definitions.

        Raises:
            DefinitionError: if the schedule expression is invalid or the
                backend refuses it. A previously armed timer stays armed.
        """
        expression = self.check(definition)
        if expression is None or not definition.enabled:
            return False
        if not definition.id:
            raise DefinitionError("Cannot schedule a workflow without an id", field="id")

        with self._lock:
            try:
                self.backend.add_timer(definition.id, expression, self._fire)
            except DefinitionError as exc:
                raise exc.with_context(workflow_id=definition.id)
            except Exception as exc:
                raise DefinitionError(
                    f"Could not schedule {expression!r}: {exc}",
                    field="trigger.schedule",
                    cause=exc,
                ).with_context(workflow_id=definition.id) from exc

        logger.info(
            "scheduler.registered",
            workflow_id=definition.id,
            schedule=expression,
            backend=self.backend.name,
        )
        return True

    def unregister(self, workflow_id: str) -> bool:
        """Cancel the timer for ``workflow_id``; safe when none exists."""
        with self._lock:
            removed = self.backend.cancel_timer(workflow_id)
        if removed:
            logger.info("scheduler.unregistered", workflow_id=workflow_id)
        return removed

    def reconcile(self, definition: WorkflowDefinition) -> bool:
        """Bring the timer in line with ``definition``.

        A definition that should be scheduled has its timer replaced in place,
        so a rejected expression never leaves the workflow without its
        previous timer. Anything else is unregistered.
        """
        expression = self.check(definition)
        with self._lock:
            if expression is None or not definition.enabled:
                self.unregister(definition.id)
                return False
            return self.register(definition)

    def is_registered(self, workflow_id: str) -> bool:
        return workflow_id in self.backend.active_timers()

    def active_timers(self) -> list[str]:
        return self.backend.active_timers()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> BootstrapResult:
        """Start delivering firings on the current loop and re-register
        every stored, enabled schedule. Missed firings are not backfilled."""
        self._loop = asyncio.get_running_loop()
        self.backend.start()
        return self.bootstrap()

    def bootstrap(self) -> BootstrapResult:
        result = BootstrapResult()
        for definition in self._registry.list():
            if not definition.is_scheduled:
                continue
            try:
                self.register(definition)
            except DefinitionError as exc:
                result.failed[definition.id] = exc.message
                logger.warning(
                    "scheduler.bootstrap.invalid",
                    workflow_id=definition.id,
                    error=exc.message,
                )
            else:
                result.registered.append(definition.id)

        logger.info(
            "scheduler.bootstrap.complete",
            registered=len(result.registered),
            failed=len(result.failed),
        )
        return result

    def shutdown(self) -> None:
        with self._lock:
            self.backend.shutdown()
        self._loop = None
        logger.info("scheduler.stopped")

    @property
    def is_running(self) -> bool:
        return self._loop is not None

    # ------------------------------------------------------------------
    # firing
    # ------------------------------------------------------------------

    def _fire(self, workflow_id: str) -> None:
        """Timer callback; may run on a backend worker thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("scheduler.fire_dropped", workflow_id=workflow_id, reason="not running")
            return

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is loop:
            self._launch(workflow_id)
        else:
            loop.call_soon_threadsafe(self._launch, workflow_id)

    def _launch(self, workflow_id: str) -> None:
        try:
            definition = self._registry.get(workflow_id)
        except WorkflowNotFoundError:
            self._skipped_count += 1
            logger.info("scheduler.fire_skipped", workflow_id=workflow_id, reason="deleted")
            self.unregister(workflow_id)
            return

        if not definition.is_scheduled:
            self._skipped_count += 1
            logger.info("scheduler.fire_skipped", workflow_id=workflow_id, reason="disabled")
            return

        try:
            run = self._engine.launch(definition, trigger=TriggerType.SCHEDULE)
        except Exception:
            logger.exception("scheduler.launch_failed", workflow_id=workflow_id)
            return

        self._fire_count += 1
        logger.info("scheduler.fired", workflow_id=workflow_id, run_id=run.id)

    def health(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "active_timers": len(self.backend.active_timers()),
            "fire_count": self._fire_count,
            "skipped_count": self._skipped_count,
            "backend": self.backend.health(),
        }
