"""Tests for actionflow.orchestration.models - definitions, runs, transitions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from actionflow.core.errors import DefinitionError, RunStateError
from actionflow.orchestration.models import (
    RUN_VALID_TRANSITIONS,
    ActionDefinition,
    ActionType,
    LogStatus,
    RunStatus,
    TriggerType,
    WorkflowDefinition,
    WorkflowLog,
    WorkflowRun,
    WorkflowTrigger,
    parse_datetime,
    validate_run_transition,
)

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _log(message: str = "ok", action_id: str = "system") -> WorkflowLog:
    return WorkflowLog(timestamp=T0, action_id=action_id, status=LogStatus.SUCCESS, message=message)


# ── Run state machine ────────────────────────────────────────────────────


class TestRunTransitions:
    def test_running_can_finish_either_way(self):
        validate_run_transition(RunStatus.RUNNING, RunStatus.COMPLETED)
        validate_run_transition(RunStatus.RUNNING, RunStatus.FAILED)

    @pytest.mark.parametrize("terminal", [RunStatus.COMPLETED, RunStatus.FAILED])
    @pytest.mark.parametrize("target", list(RunStatus))
    def test_terminal_states_are_final(self, terminal, target):
        with pytest.raises(RunStateError):
            validate_run_transition(terminal, target)

    def test_table_covers_every_status(self):
        assert set(RUN_VALID_TRANSITIONS) == set(RunStatus)

    def test_is_terminal(self):
        assert RunStatus.RUNNING.is_terminal is False
        assert RunStatus.FAILED.is_terminal is True


class TestWorkflowRun:
    def test_finish_appends_final_log_and_sets_status(self):
        run = WorkflowRun(workflow_id="wf", started_at=T0)
        run.append_log(_log("started"))
        run.finish(
            RunStatus.FAILED,
            completed_at=T0 + timedelta(milliseconds=1500),
            final_log=_log("Workflow failed: boom"),
            error="boom",
        )
        assert run.status == RunStatus.FAILED
        assert run.error == "boom"
        assert [log.message for log in run.logs] == ["started", "Workflow failed: boom"]
        assert run.duration_ms == 1500

    def test_log_closed_after_terminal(self):
        run = WorkflowRun(workflow_id="wf", started_at=T0)
        run.finish(RunStatus.COMPLETED, completed_at=T0, final_log=_log())
        with pytest.raises(RunStateError):
            run.append_log(_log("late"))

    def test_cannot_finish_twice(self):
        run = WorkflowRun(workflow_id="wf", started_at=T0)
        run.finish(RunStatus.COMPLETED, completed_at=T0, final_log=_log())
        with pytest.raises(RunStateError):
            run.finish(RunStatus.FAILED, completed_at=T0, final_log=_log(), error="x")
        assert run.status == RunStatus.COMPLETED
        assert len(run.logs) == 1

    def test_duration_none_while_running(self):
        assert WorkflowRun(workflow_id="wf").duration_ms is None

    def test_dict_round_trip_accepts_camel_case(self):
        data = {
            "id": "run-1",
            "workflowId": "wf-1",
            "workflowName": "Nightly",
            "status": "completed",
            "trigger": "schedule",
            "startedAt": "2026-01-01T12:00:00Z",
            "completedAt": "2026-01-01T12:00:02Z",
            "logs": [
                {
                    "timestamp": "2026-01-01T12:00:00Z",
                    "actionId": "system",
                    "status": "success",
                    "message": "Workflow 'Nightly' started",
                }
            ],
        }
        run = WorkflowRun.from_dict(data)
        assert run.workflow_id == "wf-1"
        assert run.trigger == TriggerType.SCHEDULE
        assert run.duration_ms == 2000
        assert run.logs[0].is_system is True
        assert run.to_dict()["started_at"] == "2026-01-01T12:00:00+00:00"


# ── Definitions ──────────────────────────────────────────────────────────


class TestFromDict:
    def test_trigger_aliases(self):
        assert WorkflowTrigger.from_dict({"type": "schedule", "cron": "@daily"}).schedule == "@daily"
        assert WorkflowTrigger.from_dict({"type": "event", "eventType": "a.b"}).event == "a.b"
        assert WorkflowTrigger.from_dict(None).type == TriggerType.MANUAL

    def test_unknown_trigger_type(self):
        with pytest.raises(DefinitionError) as exc_info:
            WorkflowTrigger.from_dict({"type": "webhook"})
        assert exc_info.value.field == "trigger.type"

    def test_unknown_action_type(self):
        with pytest.raises(DefinitionError, match="Unknown action type"):
            ActionDefinition.from_dict({"id": "a", "type": "sms"})

    def test_action_id_generated_and_next_actions_alias(self):
        action = ActionDefinition.from_dict({"type": "wait", "nextActions": ["b"]})
        assert action.id
        assert action.name == action.id
        assert action.next_actions == ["b"]

    def test_definition_round_trip(self):
        definition = WorkflowDefinition.from_dict(
            {
                "id": "wf-1",
                "name": "Orders",
                "trigger": {"type": "event", "event": "order.created"},
                "actions": [{"id": "n", "type": "notification", "config": {"message": "hi"}}],
                "createdAt": "2026-01-01T00:00:00Z",
            }
        )
        again = WorkflowDefinition.from_dict(definition.to_dict())
        assert again == definition


class TestValidate:
    def _definition(self, actions, **kwargs) -> WorkflowDefinition:
        return WorkflowDefinition(name=kwargs.pop("name", "wf"), actions=actions, **kwargs)

    def test_blank_name(self):
        with pytest.raises(DefinitionError, match="name"):
            self._definition([], name="  ").validate()

    def test_event_trigger_needs_event(self):
        definition = self._definition([], trigger=WorkflowTrigger(type=TriggerType.EVENT))
        with pytest.raises(DefinitionError) as exc_info:
            definition.validate()
        assert exc_info.value.field == "trigger.event"

    def test_empty_pipeline_is_valid(self):
        self._definition([]).validate()

    def test_duplicate_action_ids(self):
        actions = [
            ActionDefinition(id="a", type=ActionType.WAIT),
            ActionDefinition(id="a", type=ActionType.WAIT),
        ]
        with pytest.raises(DefinitionError, match="Duplicate"):
            self._definition(actions).validate()

    def test_backward_jump_rejected(self):
        actions = [
            ActionDefinition(id="a", type=ActionType.WAIT),
            ActionDefinition(id="b", type=ActionType.WAIT, next_actions=["a"]),
        ]
        with pytest.raises(DefinitionError, match="forward"):
            self._definition(actions).validate()

    def test_unknown_jump_target(self):
        actions = [ActionDefinition(id="a", type=ActionType.WAIT, next_actions=["zzz"])]
        with pytest.raises(DefinitionError, match="unknown action"):
            self._definition(actions).validate()

    def test_only_conditions_may_branch_two_ways(self):
        actions = [
            ActionDefinition(id="a", type=ActionType.WAIT, next_actions=["b", "c"]),
            ActionDefinition(id="b", type=ActionType.WAIT),
            ActionDefinition(id="c", type=ActionType.WAIT),
        ]
        with pytest.raises(DefinitionError, match="at most 1"):
            self._definition(actions).validate()

        actions[0] = ActionDefinition(id="a", type=ActionType.CONDITION, next_actions=["b", "c"])
        self._definition(actions).validate()


class TestMerged:
    def test_partial_trigger_merge_keeps_identity(self):
        original = WorkflowDefinition(
            id="wf-1",
            name="Nightly",
            trigger=WorkflowTrigger(type=TriggerType.SCHEDULE, schedule="0 2 * * *"),
            created_at=T0,
            updated_at=T0,
        )
        merged = original.merged(
            {"trigger": {"schedule": "0 3 * * *"}, "id": "hijack", "created_at": "2020-01-01"}
        )
        assert merged.id == "wf-1"
        assert merged.created_at == T0
        assert merged.trigger.type == TriggerType.SCHEDULE
        assert merged.trigger.schedule == "0 3 * * *"
        assert original.trigger.schedule == "0 2 * * *"

    def test_actions_replaced_wholesale(self):
        original = WorkflowDefinition(
            id="wf-1", name="x", actions=[ActionDefinition(id="a", type=ActionType.WAIT)]
        )
        merged = original.merged({"actions": [{"id": "b", "type": "task"}]})
        assert [a.id for a in merged.actions] == ["b"]

    def test_flags(self):
        scheduled = WorkflowDefinition(
            name="x", trigger=WorkflowTrigger(type=TriggerType.SCHEDULE, schedule="@daily")
        )
        assert scheduled.is_scheduled is True
        assert scheduled.merged({"enabled": False}).is_scheduled is False

        listening = WorkflowDefinition(
            name="y", trigger=WorkflowTrigger(type=TriggerType.EVENT, event="order.created")
        )
        assert listening.matches_event("order.created") is True
        assert listening.matches_event("order.deleted") is False

    @pytest.mark.parametrize("value", [None, "false", 0])
    def test_enabled_must_be_boolean(self, value):
        original = WorkflowDefinition(id="wf-1", name="x")
        with pytest.raises(DefinitionError, match="enabled must be true or false") as exc_info:
            original.merged({"enabled": value})
        assert exc_info.value.field == "enabled"
        assert original.enabled is True


class TestParseDatetime:
    def test_z_suffix(self):
        assert parse_datetime("2026-01-01T12:00:00Z") == T0

    def test_naive_is_utc(self):
        assert parse_datetime(datetime(2026, 1, 1, 12, 0)) == T0

    def test_empty(self):
        assert parse_datetime(None) is None
        assert parse_datetime("") is None
