"""Execution engine - drives one workflow run through its action pipeline.

The engine creates the run record, walks the actions strictly in order via
the handler registry, and closes the run as ``completed`` or ``failed``. The
first action failure aborts the walk: later actions are never attempted and
never logged.

Two entry points share one walk:

- :meth:`ExecutionEngine.launch` / :meth:`ExecutionEngine.start` -
  fire-and-forget. Returns the live run handle at once; the walk continues
  as a background task and the handle is updated as it progresses.
- :meth:`ExecutionEngine.run` - synchronous. Returns the terminal run.

Branching (``next_actions``) is forward-only:

- a non-condition action may name one action to continue at;
- a condition action may name ``[on_true]`` or ``[on_true, on_false]``.
  A false predicate with an ``on_false`` target is logged as a success and
  the walk continues there; without one the run fails with
  ``"condition not met"``.

Example::

    engine = ExecutionEngine(create_default_registry(), InMemoryRunStore())

    run = await engine.run(definition)
    if run.status == RunStatus.FAILED:
        print(f"Failed: {run.error}")
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from actionflow.core.errors import ActionFlowError, ConditionNotMet, DefinitionError
from actionflow.core.events import Event
from actionflow.core.logging import LogContext, get_logger

from .models import (
    ActionDefinition,
    ActionType,
    TriggerType,
    WorkflowDefinition,
    WorkflowRun,
    utcnow,
)
from .recorder import InMemoryRunStore, RunRecorder, RunStore

if TYPE_CHECKING:
    from actionflow.actions.registry import ActionHandlerRegistry

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def build_run_context(
    definition: WorkflowDefinition,
    run: WorkflowRun,
    event: Event | None = None,
    params: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """The mapping condition fields resolve against.

    ``steps`` is filled with each successful action's output as the walk
    proceeds.
    """
    return {
        "workflow": {"id": definition.id, "name": definition.name},
        "run": {"id": run.id},
        "trigger": run.trigger.value,
        "event": (
            {"type": event.event_type, "payload": dict(event.payload)} if event else None
        ),
        "params": dict(params or {}),
        "steps": {},
    }


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, ActionFlowError):
        return exc.message
    return str(exc) or exc.__class__.__name__


class ExecutionEngine:
    """Runs workflow definitions. Many runs may be in flight at once, including
    several of the same workflow; there is no per-workflow mutual exclusion.

    Args:
        handlers: Action handler registry.
        store: Run history store (in-memory when omitted).
        clock: Source of run/log timestamps.
    """

    def __init__(
        self,
        handlers: ActionHandlerRegistry,
        store: RunStore | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.handlers = handlers
        self.store = store if store is not None else InMemoryRunStore()
        self._clock = clock or utcnow
        self._running: dict[str, WorkflowRun] = {}
        self._tasks: set[asyncio.Task[WorkflowRun]] = set()

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------

    def launch(
        self,
        definition: WorkflowDefinition,
        *,
        trigger: TriggerType = TriggerType.MANUAL,
        event: Event | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> WorkflowRun:
        """Start a run in the background and return its live handle.

        Must be called from the event loop thread.

        Raises:
            DefinitionError: if the definition is structurally invalid.
        """
        loop = asyncio.get_running_loop()
        recorder, context = self._open(definition, trigger, event, params)
        task = loop.create_task(
            self._walk(definition, recorder, context),
            name=f"workflow-run:{recorder.run.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return recorder.run

    async def start(
        self,
        definition: WorkflowDefinition,
        *,
        trigger: TriggerType = TriggerType.MANUAL,
        event: Event | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> WorkflowRun:
        """Fire-and-forget; the returned run is still ``running``."""
        return self.launch(definition, trigger=trigger, event=event, params=params)

    async def run(
        self,
        definition: WorkflowDefinition,
        *,
        trigger: TriggerType = TriggerType.MANUAL,
        event: Event | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> WorkflowRun:
        """Execute and return the run in its terminal state."""
        recorder, context = self._open(definition, trigger, event, params)
        return await self._walk(definition, recorder, context)

    def list_running(self) -> list[WorkflowRun]:
        return sorted(self._running.values(), key=lambda r: r.started_at)

    def get_running(self, run_id: str) -> WorkflowRun | None:
        return self._running.get(run_id)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every background run has reached a terminal state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # walk
    # ------------------------------------------------------------------

    def _open(
        self,
        definition: WorkflowDefinition,
        trigger: TriggerType,
        event: Event | None,
        params: Mapping[str, Any] | None,
    ) -> tuple[RunRecorder, dict[str, Any]]:
        if not definition.id:
            raise DefinitionError("Workflow must be saved before it can run", field="id")
        definition.validate()

        run = WorkflowRun(
            workflow_id=definition.id,
            workflow_name=definition.name,
            trigger=trigger,
            started_at=self._clock(),
        )
        recorder = RunRecorder(run, self.store, self._clock)
        try:
            recorder.open(definition.name)
        except Exception as exc:
            self._abandon(recorder, f"Run could not be recorded: {_error_message(exc)}")
            raise
        self._running[run.id] = run

        logger.info(
            "workflow.run.started",
            workflow_id=definition.id,
            run_id=run.id,
            trigger=trigger.value,
            actions=len(definition.actions),
        )
        return recorder, build_run_context(definition, run, event, params)

    async def _walk(
        self,
        definition: WorkflowDefinition,
        recorder: RunRecorder,
        context: dict[str, Any],
    ) -> WorkflowRun:
        run = recorder.run
        actions = definition.actions
        index = definition.action_index
        position = 0

        try:
            async with LogContext(workflow_id=definition.id, run_id=run.id):
                while position < len(actions):
                    action = actions[position]
                    try:
                        result = await self.handlers.get(action.type).execute(
                            action.config, context
                        )
                    except ConditionNotMet as exc:
                        on_false = self._false_branch(action)
                        if on_false is None:
                            self._fail(recorder, action, exc)
                            return run
                        recorder.action_succeeded(
                            action.id,
                            f"Condition not met; continuing at {on_false}",
                            exc.evaluation,
                        )
                        context["steps"][action.id] = exc.evaluation
                        position = index[on_false]
                        continue
                    except Exception as exc:
                        self._fail(recorder, action, exc)
                        return run

                    recorder.action_succeeded(action.id, result.message, result.output)
                    context["steps"][action.id] = result.output
                    logger.debug(
                        "workflow.action.succeeded",
                        action_id=action.id,
                        action_type=action.type.value,
                    )
                    if action.next_actions:
                        position = index[action.next_actions[0]]
                    else:
                        position += 1

                recorder.complete()
                logger.info("workflow.run.completed", logs=len(run.logs))
        except asyncio.CancelledError:
            if not run.is_terminal:
                recorder.fail("Run interrupted")
                logger.warning("workflow.run.interrupted", workflow_id=definition.id, run_id=run.id)
            raise
        except Exception as exc:
            # the store refused a write; the run still has to end
            logger.exception(
                "workflow.run.record_failed", workflow_id=definition.id, run_id=run.id
            )
            self._abandon(recorder, f"Run could not be recorded: {_error_message(exc)}")
        finally:
            self._running.pop(run.id, None)
        return run

    @staticmethod
    def _abandon(recorder: RunRecorder, error: str) -> None:
        """Force the run to a terminal state; persisting it is best-effort."""
        run = recorder.run
        try:
            if run.is_terminal:
                recorder.persist_final()
            else:
                recorder.fail(error)
        except Exception:
            logger.exception("workflow.run.persist_failed", run_id=run.id, status=run.status.value)

    @staticmethod
    def _false_branch(action: ActionDefinition) -> str | None:
        if action.type == ActionType.CONDITION and len(action.next_actions) == 2:
            return action.next_actions[1]
        return None

    @staticmethod
    def _fail(recorder: RunRecorder, action: ActionDefinition, exc: Exception) -> None:
        message = _error_message(exc)
        data: dict[str, Any] = {"error_type": exc.__class__.__name__}
        if isinstance(exc, ConditionNotMet):
            data.update(exc.evaluation)

        recorder.action_failed(action.id, message, data)
        recorder.fail(message)

        if isinstance(exc, ActionFlowError):
            logger.warning(
                "workflow.run.failed",
                action_id=action.id,
                action_type=action.type.value,
                error=message,
                category=exc.category.value,
            )
        else:
            logger.exception(
                "workflow.run.failed",
                action_id=action.id,
                action_type=action.type.value,
                error=message,
            )

    def _on_task_done(self, task: asyncio.Task[WorkflowRun]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "workflow.run.crashed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )
