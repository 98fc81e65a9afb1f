"""
Structured error types for actionflow.

Every failure the engine knows about is a typed :class:`ActionFlowError`
carrying a category and a structured context (workflow, run, action), so the
run history, the HTTP layer and the operational log can all describe the same
failure the same way.

Manifesto:
    - **Typed hierarchy:** definition problems, action configuration problems
      and action execution problems are different things and are caught
      differently.
    - **Rich context:** errors carry workflow/run/action ids for logging.
    - **Chaining:** the underlying exception is preserved as ``cause``.
    - **No retry semantics:** nothing in the pipeline retries, so errors do
      not advertise a retryable flag.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      ActionFlowError                          │
        │              (category, context, cause)                       │
        ├──────────────────────────────────────────────────────────────┤
        │  DefinitionError        WorkflowNotFoundError   StorageError  │
        │  (VALIDATION)           (NOT_FOUND)             (STORAGE)     │
        │                                                               │
        │  ActionError ──┬── ActionConfigError     (CONFIG)             │
        │                ├── ActionExecutionError  (ACTION)             │
        │                └── ConditionNotMet       (ACTION)             │
        │                                                               │
        │  RunStateError (INTERNAL)                                     │
        └──────────────────────────────────────────────────────────────┘

Usage:
    from actionflow.core.errors import ActionExecutionError

    try:
        await client.request(...)
    except httpx.RequestError as exc:
        raise ActionExecutionError(f"Webhook failed: {exc}", cause=exc) from exc

Tags:
    error-handling, exception-hierarchy, error-context, actionflow

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"  # Malformed workflow definition
    NOT_FOUND = "NOT_FOUND"  # Unknown workflow / run id
    CONFIG = "CONFIG"  # Missing or malformed action config
    ACTION = "ACTION"  # Action side effect failed
    STORAGE = "STORAGE"  # Durable store failure
    INTERNAL = "INTERNAL"  # Bugs, illegal state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Only non-``None`` fields are serialised by :meth:`to_dict`; anything that
    does not fit a typed field goes into ``metadata``.
    """

    workflow_id: str | None = None
    run_id: str | None = None
    action_id: str | None = None
    action_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, dropping empty fields."""
        result: dict[str, Any] = {}
        for key in ("workflow_id", "run_id", "action_id", "action_type"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        result.update(self.metadata)
        return result


class ActionFlowError(Exception):
    """
    Base exception for all actionflow errors.

    Subclasses set ``default_category``; callers may override it per
    instance. ``cause`` is chained onto ``__cause__`` so tracebacks show the
    original failure.

    Examples:
        >>> err = ActionFlowError("boom")
        >>> err.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> err.with_context(workflow_id="wf-1").context.workflow_id
        'wf-1'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ActionFlowError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ActionConfigError("missing url").with_context(
                action_id="a1", action_type="webhook"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DEFINITION ERRORS
# =============================================================================


class DefinitionError(ActionFlowError):
    """Invalid workflow definition or schedule expression.

    Raised to the caller of ``create``/``update``/``register``; never only
    logged.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field


class WorkflowNotFoundError(ActionFlowError):
    """Raised when a workflow id is not present in the definition registry."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(
            f"Workflow not found: {workflow_id}",
            context=ErrorContext(workflow_id=workflow_id),
        )


class RunNotFoundError(ActionFlowError):
    """Raised when a run id is not present in the run store."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}", context=ErrorContext(run_id=run_id))


# =============================================================================
# ACTION ERRORS
# =============================================================================


class ActionError(ActionFlowError):
    """Base for every error raised while executing one pipeline action."""

    default_category = ErrorCategory.ACTION


class ActionConfigError(ActionError):
    """Missing or malformed action config, raised before any side effect."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, message: str, *, key: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.key = key


class ActionExecutionError(ActionError):
    """The handler's underlying operation failed.

    ``message`` is always the human-readable reason recorded on the run.
    """


class ConditionNotMet(ActionError):
    """A condition action's predicate evaluated to false."""

    def __init__(
        self,
        message: str = "condition not met",
        *,
        evaluation: dict[str, Any] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.evaluation = evaluation or {}


# =============================================================================
# STATE / STORAGE ERRORS
# =============================================================================


class RunStateError(ActionFlowError):
    """Illegal run transition, or mutation of a run that is already terminal."""

    default_category = ErrorCategory.INTERNAL

    def __init__(self, message: str, *, current: str | None = None, target: str | None = None):
        super().__init__(message)
        self.current = current
        self.target = target


class StorageError(ActionFlowError):
    """Durable store read/write failure."""

    default_category = ErrorCategory.STORAGE


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, ActionFlowError):
        return error.category
    if isinstance(error, (KeyError, AttributeError, TypeError, ValueError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ActionFlowError",
    "DefinitionError",
    "WorkflowNotFoundError",
    "RunNotFoundError",
    "ActionError",
    "ActionConfigError",
    "ActionExecutionError",
    "ConditionNotMet",
    "RunStateError",
    "StorageError",
    "categorize_error",
]
