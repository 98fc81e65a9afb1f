"""Tests for actionflow.orchestration.dispatcher - event-triggered runs."""

from __future__ import annotations

import pytest

from actionflow.core.errors import StorageError
from actionflow.core.events import Event
from actionflow.core.events.memory import InMemoryEventBus
from actionflow.orchestration.definitions import InMemoryDefinitionRepository
from actionflow.orchestration.dispatcher import EventDispatcher
from actionflow.orchestration.engine import ExecutionEngine
from actionflow.orchestration.models import ActionType, RunStatus, TriggerType


@pytest.fixture
def registry():
    return InMemoryDefinitionRepository()


@pytest.fixture
def dispatcher(registry, engine):
    return EventDispatcher(registry, engine)


def _listener(make_definition, name, event="order.created", **kwargs):
    return make_definition(name, trigger=TriggerType.EVENT, event=event, **kwargs)


class TestMatching:
    def test_only_enabled_exact_matches(self, registry, dispatcher, make_definition):
        registry.create(_listener(make_definition, "a"))
        registry.create(_listener(make_definition, "b"))
        registry.create(_listener(make_definition, "off", enabled=False))
        registry.create(_listener(make_definition, "other", event="order.deleted"))
        registry.create(make_definition("manual"))

        assert [d.name for d in dispatcher.matching("order.created")] == ["a", "b"]
        assert dispatcher.matching("order") == []


class TestHandleEvent:
    @pytest.mark.asyncio
    async def test_one_run_per_enabled_listener(self, registry, dispatcher, engine, make_definition):
        first = registry.create(_listener(make_definition, "a"))
        second = registry.create(_listener(make_definition, "b"))
        registry.create(_listener(make_definition, "off", enabled=False))

        runs = await dispatcher.handle_event("order.created", {"id": 42})

        assert sorted(r.workflow_id for r in runs) == sorted([first.id, second.id])
        assert all(r.trigger == TriggerType.EVENT for r in runs)
        await engine.drain()
        assert all(r.status == RunStatus.COMPLETED for r in runs)

    @pytest.mark.asyncio
    async def test_no_listeners(self, dispatcher):
        assert await dispatcher.handle_event("nobody.cares") == []

    @pytest.mark.asyncio
    async def test_payload_reaches_conditions(self, registry, dispatcher, engine, make_definition, action):
        registry.create(
            _listener(
                make_definition,
                "big orders",
                actions=[action("check", ActionType.CONDITION, field="event.payload.total", operator="gte", value=100)],
            )
        )
        [run] = await dispatcher.handle_event("order.created", {"total": 150})
        await engine.drain()
        assert run.status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failing_run_does_not_affect_siblings(
        self, registry, dispatcher, engine, make_definition, action
    ):
        registry.create(
            _listener(
                make_definition,
                "strict",
                actions=[action("check", ActionType.CONDITION, field="event.payload.total", operator="gt", value=1000)],
            )
        )
        registry.create(_listener(make_definition, "lenient"))

        runs = await dispatcher.handle_event("order.created", {"total": 5})
        await engine.drain()

        by_name = {r.workflow_name: r for r in runs}
        assert by_name["strict"].status == RunStatus.FAILED
        assert by_name["lenient"].status == RunStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_launch_error_is_skipped(self, registry, handlers, make_definition):
        broken = registry.create(_listener(make_definition, "broken"))
        healthy = registry.create(_listener(make_definition, "healthy"))

        class FlakyEngine(ExecutionEngine):
            def launch(self, definition, **kwargs):
                if definition.id == broken.id:
                    raise StorageError("disk full")
                return super().launch(definition, **kwargs)

        engine = FlakyEngine(handlers)
        runs = await EventDispatcher(registry, engine).handle_event("order.created")
        await engine.drain()

        assert [r.workflow_id for r in runs] == [healthy.id]


class TestEventBus:
    @pytest.mark.asyncio
    async def test_attach_and_detach(self, registry, dispatcher, engine, make_definition):
        saved = registry.create(_listener(make_definition, "a"))
        bus = InMemoryEventBus()

        await dispatcher.attach(bus)
        assert bus.subscription_count == 1

        await bus.publish(Event(event_type="order.created", payload={"id": 1}))
        await engine.drain()
        assert engine.store.count(saved.id) == 1

        await dispatcher.detach()
        assert bus.subscription_count == 0
        await bus.publish(Event(event_type="order.created"))
        await engine.drain()
        assert engine.store.count(saved.id) == 1
