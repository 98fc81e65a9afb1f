"""Event dispatcher - one run per enabled workflow listening for an event.

Each launch is isolated: a workflow whose launch fails is logged and
skipped, and its run failing later never affects sibling runs or the
emitter.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from actionflow.core.events import Event, EventBus
from actionflow.core.logging import get_logger

from .definitions import DefinitionRepository
from .engine import ExecutionEngine
from .models import TriggerType, WorkflowDefinition, WorkflowRun

logger = get_logger(__name__)


class EventDispatcher:
    """Maps an application event name to its event-triggered workflows.

    Example:
        >>> dispatcher = EventDispatcher(registry, engine)
        >>> runs = await dispatcher.handle_event("order.created", {"id": 42})
        >>> len(runs)
        2
    """

    def __init__(self, registry: DefinitionRepository, engine: ExecutionEngine) -> None:
        self._registry = registry
        self._engine = engine
        self._subscriptions: list[tuple[EventBus, str]] = []

    def matching(self, event_type: str) -> list[WorkflowDefinition]:
        """Enabled, event-triggered definitions whose event name equals ``event_type``."""
        return [
            definition
            for definition in self._registry.list(trigger_type=TriggerType.EVENT)
            if definition.matches_event(event_type)
        ]

    async def handle_event(
        self,
        event_type: str,
        payload: Mapping[str, Any] | None = None,
        *,
        event: Event | None = None,
    ) -> list[WorkflowRun]:
        """Start one run per match; returns the started (still running) runs."""
        event = event or Event(event_type=event_type, payload=dict(payload or {}))
        runs: list[WorkflowRun] = []

        for definition in self.matching(event_type):
            try:
                run = self._engine.launch(definition, trigger=TriggerType.EVENT, event=event)
            except Exception:
                logger.exception(
                    "event.dispatch_failed",
                    event_type=event_type,
                    workflow_id=definition.id,
                )
                continue
            runs.append(run)

        logger.info(
            "event.dispatched",
            event_type=event_type,
            event_id=event.event_id,
            runs=len(runs),
        )
        return runs

    async def _on_bus_event(self, event: Event) -> None:
        await self.handle_event(event.event_type, event.payload, event=event)

    async def attach(self, bus: EventBus, pattern: str = "*") -> str:
        """Drive ``handle_event`` from an event bus subscription."""
        subscription_id = await bus.subscribe(pattern, self._on_bus_event)
        self._subscriptions.append((bus, subscription_id))
        return subscription_id

    async def detach(self) -> None:
        for bus, subscription_id in self._subscriptions:
            await bus.unsubscribe(subscription_id)
        self._subscriptions.clear()
