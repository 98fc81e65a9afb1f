"""Tests for actionflow.core.scheduling.service - WorkflowScheduler.

Timers are driven by ManualTimerBackend so firings are explicit and
deterministic.
"""

from __future__ import annotations

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from actionflow.core.errors import DefinitionError
from actionflow.core.scheduling import APSchedulerTimerBackend, WorkflowScheduler
from actionflow.orchestration.models import RunStatus, TriggerType
from actionflow.orchestration.service import create_workflow_service
from actionflow.orchestration.testing import ManualTimerBackend, RecordingSleep


@pytest.fixture
def scheduled(make_definition):
    def _make(schedule: str = "*/5 * * * *", **kwargs):
        return make_definition(
            kwargs.pop("name", "Every five minutes"),
            trigger=TriggerType.SCHEDULE,
            schedule=schedule,
            **kwargs,
        )

    return _make


class RefusingTimerBackend(ManualTimerBackend):
    """Validates like the manual backend but cannot arm one expression."""

    def __init__(self, refused: str) -> None:
        super().__init__()
        self.refused = refused

    def add_timer(self, timer_id, expression, callback) -> None:
        if expression == self.refused:
            raise ValueError(f"cannot arm {expression}")
        super().add_timer(timer_id, expression, callback)


class OnTheHourTimerBackend(ManualTimerBackend):
    """Only schedules expressions that fire on the hour."""

    def validate_expression(self, expression: str) -> str:
        expression = super().validate_expression(expression)
        if expression.split(" ")[0] != "0":
            raise DefinitionError("Only on-the-hour schedules", field="trigger.schedule")
        return expression


class TestValidate:
    def test_returns_normalized_expression(self, scheduled):
        assert WorkflowScheduler.validate(scheduled("@hourly")) == "0 * * * *"

    def test_non_schedule_returns_none(self, make_definition):
        assert WorkflowScheduler.validate(make_definition()) is None

    def test_invalid_expression_carries_workflow_id(self, scheduled):
        definition = scheduled("every now and then", id="wf-bad")
        with pytest.raises(DefinitionError) as exc_info:
            WorkflowScheduler.validate(definition)
        assert exc_info.value.context.workflow_id == "wf-bad"


class TestRegistration:
    def test_create_registers_one_timer(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        assert timers.active_timers() == [saved.id]
        assert timers.expression_for(saved.id) == "*/5 * * * *"

    def test_manual_and_event_workflows_get_no_timer(self, service, timers, make_definition):
        service.create_workflow(make_definition())
        service.create_workflow(make_definition(trigger=TriggerType.EVENT, event="order.created"))
        assert timers.active_timers() == []

    def test_disabled_schedule_gets_no_timer(self, service, timers, scheduled):
        service.create_workflow(scheduled(enabled=False))
        assert timers.active_timers() == []

    def test_invalid_schedule_rejected_and_not_persisted(self, service, timers, scheduled):
        with pytest.raises(DefinitionError):
            service.create_workflow(scheduled("*/5 * *"))
        assert service.list_workflows() == []
        assert timers.active_timers() == []

    def test_update_replaces_timer(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        service.update_workflow(saved.id, {"trigger": {"schedule": "0 * * * *"}})
        service.update_workflow(saved.id, {"trigger": {"schedule": "0 9 * * 1-5"}})

        assert timers.active_timers() == [saved.id]
        assert timers.expression_for(saved.id) == "0 9 * * 1-5"

    def test_invalid_update_keeps_previous_timer(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        with pytest.raises(DefinitionError):
            service.update_workflow(saved.id, {"trigger": {"schedule": "bogus"}})

        assert timers.expression_for(saved.id) == "*/5 * * * *"
        assert service.get_workflow(saved.id).trigger.schedule == "*/5 * * * *"

    def test_disable_then_enable(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        service.update_workflow(saved.id, {"enabled": False})
        assert timers.active_timers() == []

        service.update_workflow(saved.id, {"enabled": True})
        assert timers.active_timers() == [saved.id]

    def test_switching_to_manual_cancels_timer(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        service.update_workflow(saved.id, {"trigger": {"type": "manual", "schedule": None}})
        assert timers.active_timers() == []

    def test_delete_cancels_timer(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        assert service.delete_workflow(saved.id) is True
        assert timers.active_timers() == []
        assert timers.cancelled == [saved.id]

    def test_unregister_unknown_is_safe(self, service):
        assert service.scheduler.unregister("nope") is False


class TestFiring:
    @pytest.mark.asyncio
    async def test_firing_starts_a_schedule_run(self, service, timers, scheduled, notifications):
        await service.startup()
        saved = service.create_workflow(scheduled())

        timers.fire(saved.id)
        await service.engine.drain()

        history = service.get_run_history(saved.id)
        assert len(history) == 1
        assert history[0].trigger == TriggerType.SCHEDULE
        assert history[0].status == RunStatus.COMPLETED
        assert len(notifications.notifications) == 1
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_each_firing_is_one_run(self, service, timers, scheduled):
        await service.startup()
        saved = service.create_workflow(scheduled())
        service.update_workflow(saved.id, {"trigger": {"schedule": "0 * * * *"}})

        timers.fire(saved.id)
        timers.fire(saved.id)
        await service.engine.drain()

        assert len(service.get_run_history(saved.id)) == 2
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_deleted_definition_firing_is_skipped(self, service, timers, scheduled):
        await service.startup()
        saved = service.create_workflow(scheduled())
        # remove from storage only, leaving a stale timer behind
        service.registry.delete(saved.id)

        timers.fire(saved.id)
        await service.engine.drain()

        assert service.get_run_history(saved.id) == []
        assert timers.active_timers() == []
        assert service.scheduler.health()["skipped_count"] == 1
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_disabled_definition_firing_is_skipped(self, service, timers, scheduled):
        await service.startup()
        saved = service.create_workflow(scheduled())
        service.registry.update(saved.id, {"enabled": False})

        timers.fire(saved.id)
        await service.engine.drain()

        assert service.get_run_history(saved.id) == []
        await service.shutdown()

    def test_firing_before_start_is_dropped(self, service, timers, scheduled):
        saved = service.create_workflow(scheduled())
        timers.fire(saved.id)
        assert service.engine.in_flight == 0
        assert service.scheduler.health()["fire_count"] == 0


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_startup_registers_stored_schedules(self, service, timers, scheduled, make_definition):
        good = service.registry.create(scheduled(name="good"))
        bad = service.registry.create(scheduled("61 * * * *", name="bad"))
        service.registry.create(scheduled(name="off", enabled=False))
        service.registry.create(make_definition("manual"))

        result = await service.startup()

        assert result.registered == [good.id]
        assert list(result.failed) == [bad.id]
        assert timers.started is True
        assert timers.active_timers() == [good.id]
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_everything(self, service, timers, scheduled):
        await service.startup()
        service.create_workflow(scheduled(name="a"))
        service.create_workflow(scheduled(name="b"))

        await service.shutdown()

        assert timers.active_timers() == []
        assert service.scheduler.is_running is False


class TestBackendRefusal:
    def _service(self, settings, backend):
        return create_workflow_service(settings, timer_backend=backend, sleep=RecordingSleep())

    def test_backend_validation_runs_before_persisting(self, settings, scheduled):
        service = self._service(settings, OnTheHourTimerBackend())
        with pytest.raises(DefinitionError, match="on-the-hour") as exc_info:
            service.create_workflow(scheduled("*/5 * * * *", id="wf-5"))
        assert exc_info.value.context.workflow_id == "wf-5"
        assert service.list_workflows() == []

    def test_failed_arming_on_create_is_rolled_back(self, settings, scheduled):
        backend = RefusingTimerBackend("0 0 * * 0")
        service = self._service(settings, backend)
        with pytest.raises(DefinitionError, match="cannot arm"):
            service.create_workflow(scheduled("0 0 * * 0"))
        assert service.list_workflows() == []
        assert backend.active_timers() == []

    def test_failed_arming_on_update_keeps_previous_timer(self, settings, scheduled):
        backend = RefusingTimerBackend("0 0 * * 0")
        service = self._service(settings, backend)
        saved = service.create_workflow(scheduled())

        with pytest.raises(DefinitionError):
            service.update_workflow(saved.id, {"trigger": {"schedule": "@weekly"}})

        assert backend.active_timers() == [saved.id]
        assert backend.expression_for(saved.id) == "*/5 * * * *"
        assert service.get_workflow(saved.id).trigger.schedule == "*/5 * * * *"


class TestAPSchedulerService:
    @pytest.fixture
    def aps(self):
        return AsyncIOScheduler(timezone="UTC")

    @pytest.fixture
    def aps_service(self, settings, aps):
        backend = APSchedulerTimerBackend(timezone="UTC", scheduler=aps)
        return create_workflow_service(settings, timer_backend=backend, sleep=RecordingSleep())

    @pytest.mark.asyncio
    async def test_sunday_as_seven_on_create(self, aps_service, aps, scheduled):
        await aps_service.startup()
        try:
            saved = aps_service.create_workflow(scheduled("0 0 * * 7"))
            trigger = str(aps.get_job(saved.id).trigger)
            next_run = aps.get_job(saved.id).next_run_time
        finally:
            await aps_service.shutdown()

        assert "day_of_week='sun'" in trigger
        assert next_run.strftime("%A") == "Sunday"

    @pytest.mark.asyncio
    async def test_sunday_as_seven_on_update(self, aps_service, aps, scheduled):
        await aps_service.startup()
        try:
            saved = aps_service.create_workflow(scheduled())
            aps_service.update_workflow(saved.id, {"trigger": {"schedule": "30 6 * * 7"}})
            timers = aps_service.scheduler.active_timers()
            next_run = aps.get_job(saved.id).next_run_time
        finally:
            await aps_service.shutdown()

        assert timers == [saved.id]
        assert next_run.strftime("%A") == "Sunday"
        assert (next_run.hour, next_run.minute) == (6, 30)
