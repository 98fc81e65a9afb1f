"""Tests for actionflow.core.errors module."""

import pytest

from actionflow.core.errors import (
    ActionConfigError,
    ActionError,
    ActionExecutionError,
    ActionFlowError,
    ConditionNotMet,
    DefinitionError,
    ErrorCategory,
    ErrorContext,
    RunNotFoundError,
    RunStateError,
    StorageError,
    WorkflowNotFoundError,
    categorize_error,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.workflow_id is None
        assert ctx.run_id is None
        assert ctx.metadata == {}

    def test_to_dict_drops_empty_fields(self):
        ctx = ErrorContext(workflow_id="wf-1", action_id="a1", metadata={"url": "http://x"})
        assert ctx.to_dict() == {"workflow_id": "wf-1", "action_id": "a1", "url": "http://x"}


class TestActionFlowError:
    def test_default_category_is_internal(self):
        err = ActionFlowError("boom")
        assert err.category == ErrorCategory.INTERNAL
        assert err.message == "boom"
        assert str(err) == "boom"

    def test_category_override(self):
        err = ActionFlowError("boom", category=ErrorCategory.STORAGE)
        assert err.category == ErrorCategory.STORAGE

    def test_cause_is_chained(self):
        cause = ValueError("inner")
        err = ActionFlowError("outer", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "inner"

    def test_with_context_sets_known_fields_and_metadata(self):
        err = ActionExecutionError("HTTP 500").with_context(action_id="hook", url="http://x")
        assert err.context.action_id == "hook"
        assert err.context.metadata == {"url": "http://x"}

    def test_with_context_returns_same_instance(self):
        err = DefinitionError("bad")
        assert err.with_context(workflow_id="wf") is err

    def test_to_dict(self):
        err = WorkflowNotFoundError("wf-9")
        data = err.to_dict()
        assert data["error_type"] == "WorkflowNotFoundError"
        assert data["category"] == "NOT_FOUND"
        assert data["context"] == {"workflow_id": "wf-9"}


class TestErrorSubclasses:
    def test_definition_error(self):
        err = DefinitionError("Workflow name is required", field="name")
        assert err.category == ErrorCategory.VALIDATION
        assert err.field == "name"

    def test_not_found_messages(self):
        assert WorkflowNotFoundError("wf-1").message == "Workflow not found: wf-1"
        assert RunNotFoundError("run-1").message == "Run not found: run-1"
        assert RunNotFoundError("run-1").category == ErrorCategory.NOT_FOUND

    def test_action_config_error_is_action_error(self):
        err = ActionConfigError("Missing required config 'url'", key="url")
        assert isinstance(err, ActionError)
        assert err.category == ErrorCategory.CONFIG
        assert err.key == "url"

    def test_condition_not_met_defaults(self):
        err = ConditionNotMet(evaluation={"result": False})
        assert err.message == "condition not met"
        assert err.evaluation == {"result": False}
        assert err.category == ErrorCategory.ACTION

    def test_run_state_error(self):
        err = RunStateError("closed", current="completed", target="failed")
        assert err.current == "completed"
        assert err.target == "failed"

    def test_storage_error_category(self):
        assert StorageError("disk full").category == ErrorCategory.STORAGE


class TestCategorizeError:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (DefinitionError("x"), ErrorCategory.VALIDATION),
            (ActionExecutionError("x"), ErrorCategory.ACTION),
            (KeyError("x"), ErrorCategory.CONFIG),
            (RuntimeError("x"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_categorize(self, error, expected):
        assert categorize_error(error) == expected
