"""Workflow data model - definitions, runs and their audit logs.

Manifesto:
    A workflow definition is durable, user-authored data: a trigger bound to
    an ordered pipeline of actions. A run is one execution of it and is the
    sole record of that attempt. Runs move ``running → completed|failed``
    exactly once; after that nothing about them changes.

Persisted shapes use snake_case. ``from_dict`` also accepts the camelCase
keys older clients send (``nextActions``, ``createdAt``, ``workflowId`` ...).

Tags:
    actionflow, orchestration, models, workflow, run, state-machine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from actionflow.core.errors import DefinitionError, RunStateError

SYSTEM_SOURCE = "system"


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix allowed) or pass a datetime through."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


# =============================================================================
# ENUMS
# =============================================================================


class TriggerType(str, Enum):
    """What initiates a run."""

    MANUAL = "manual"
    SCHEDULE = "schedule"
    EVENT = "event"


class ActionType(str, Enum):
    """The six built-in pipeline step kinds."""

    NOTIFICATION = "notification"
    EMAIL = "email"
    TASK = "task"
    WEBHOOK = "webhook"
    CONDITION = "condition"
    WAIT = "wait"


class RunStatus(str, Enum):
    """Run state machine.

    Valid transition graph::

        RUNNING   → COMPLETED | FAILED
        COMPLETED → (terminal)
        FAILED    → (terminal)
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class LogStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


RUN_VALID_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.RUNNING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset(),  # terminal
    RunStatus.FAILED: frozenset(),  # terminal
}


def validate_run_transition(current: RunStatus, target: RunStatus) -> None:
    """Raise :class:`RunStateError` if *current → target* is illegal.

    Example:
        >>> validate_run_transition(RunStatus.RUNNING, RunStatus.COMPLETED)
        >>> validate_run_transition(RunStatus.COMPLETED, RunStatus.FAILED)
        Traceback (most recent call last):
        ...
        actionflow.core.errors.RunStateError: Invalid run transition: completed → failed
    """
    allowed = RUN_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise RunStateError(
            f"Invalid run transition: {current.value} → {target.value}",
            current=current.value,
            target=target.value,
        )


# =============================================================================
# DEFINITIONS
# =============================================================================


@dataclass
class WorkflowTrigger:
    """Trigger of a workflow: manual, a cron schedule, or a named event."""

    type: TriggerType = TriggerType.MANUAL
    schedule: str | None = None
    event: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "schedule": self.schedule, "event": self.event}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | WorkflowTrigger | None) -> WorkflowTrigger:
        if data is None:
            return cls()
        if isinstance(data, WorkflowTrigger):
            return data
        raw_type = data.get("type", TriggerType.MANUAL.value)
        try:
            trigger_type = TriggerType(raw_type)
        except ValueError as exc:
            raise DefinitionError(
                f"Unknown trigger type: {raw_type!r}", field="trigger.type", cause=exc
            ) from exc
        return cls(
            type=trigger_type,
            schedule=_pick(data, "schedule", "cron"),
            event=_pick(data, "event", "eventType", "event_type"),
        )


@dataclass
class ActionDefinition:
    """One pipeline step: a typed action with an opaque config mapping.

    ``next_actions`` holds forward jump targets (see the engine for how they
    are walked).
    """

    id: str
    type: ActionType
    name: str = ""
    config: dict[str, Any] = field(default_factory=dict)
    next_actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "config": dict(self.config),
            "next_actions": list(self.next_actions),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | ActionDefinition) -> ActionDefinition:
        if isinstance(data, ActionDefinition):
            return data
        raw_type = data.get("type")
        try:
            action_type = ActionType(raw_type)
        except ValueError as exc:
            raise DefinitionError(
                f"Unknown action type: {raw_type!r}", field="actions.type", cause=exc
            ) from exc
        action_id = str(data.get("id") or new_id())
        return cls(
            id=action_id,
            type=action_type,
            name=data.get("name") or action_id,
            config=dict(data.get("config") or {}),
            next_actions=list(_pick(data, "next_actions", "nextActions", default=None) or []),
        )


_DEFINITION_ALIASES = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


@dataclass
class WorkflowDefinition:
    """Durable, user-authored trigger + ordered action pipeline."""

    name: str
    id: str | None = None
    description: str = ""
    enabled: bool = True
    trigger: WorkflowTrigger = field(default_factory=WorkflowTrigger)
    actions: list[ActionDefinition] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_scheduled(self) -> bool:
        """True when this definition should own a live timer."""
        return self.enabled and self.trigger.type == TriggerType.SCHEDULE

    def matches_event(self, event_type: str) -> bool:
        return (
            self.enabled
            and self.trigger.type == TriggerType.EVENT
            and self.trigger.event == event_type
        )

    @property
    def action_index(self) -> dict[str, int]:
        return {action.id: index for index, action in enumerate(self.actions)}

    def validate(self) -> None:
        """Check structural invariants.

        Schedule expressions are checked by the scheduler, not here.

        Raises:
            DefinitionError: on the first problem found.
        """
        if not self.name or not self.name.strip():
            raise DefinitionError("Workflow name is required", field="name")

        if self.trigger.type == TriggerType.EVENT and not (self.trigger.event or "").strip():
            raise DefinitionError("Event trigger requires an event name", field="trigger.event")

        seen: set[str] = set()
        for action in self.actions:
            if not action.id or not str(action.id).strip():
                raise DefinitionError("Action id is required", field="actions.id")
            if action.id in seen:
                raise DefinitionError(f"Duplicate action id: {action.id}", field="actions.id")
            seen.add(action.id)

        index = self.action_index
        for position, action in enumerate(self.actions):
            if not action.next_actions:
                continue
            limit = 2 if action.type == ActionType.CONDITION else 1
            if len(action.next_actions) > limit:
                raise DefinitionError(
                    f"Action {action.id} may list at most {limit} next action(s)",
                    field="actions.next_actions",
                )
            for target in action.next_actions:
                if target not in index:
                    raise DefinitionError(
                        f"Action {action.id} jumps to unknown action {target}",
                        field="actions.next_actions",
                    )
                if index[target] <= position:
                    raise DefinitionError(
                        f"Action {action.id} may only jump forward (to {target})",
                        field="actions.next_actions",
                    )

    def merged(self, updates: Mapping[str, Any]) -> WorkflowDefinition:
        """Return a copy with ``updates`` applied as a partial merge.

        ``id`` and timestamps are never taken from ``updates``; a partial
        ``trigger`` mapping is merged into the current trigger.
        """
        data = self.to_dict()
        for key, value in updates.items():
            key = _DEFINITION_ALIASES.get(key, key)
            if key in ("id", "created_at", "updated_at"):
                continue
            if key == "enabled" and not isinstance(value, bool):
                raise DefinitionError("enabled must be true or false", field="enabled")
            if key == "trigger" and value is not None:
                if isinstance(value, WorkflowTrigger):
                    value = value.to_dict()
                data["trigger"] = {**data["trigger"], **dict(value)}
            elif key == "actions":
                data["actions"] = [
                    a.to_dict() if isinstance(a, ActionDefinition) else a for a in value or []
                ]
            else:
                data[key] = value
        merged = WorkflowDefinition.from_dict(data)
        merged.created_at = self.created_at
        merged.updated_at = self.updated_at
        return merged

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "trigger": self.trigger.to_dict(),
            "actions": [action.to_dict() for action in self.actions],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkflowDefinition:
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            description=data.get("description") or "",
            enabled=bool(data.get("enabled", True)),
            trigger=WorkflowTrigger.from_dict(data.get("trigger")),
            actions=[ActionDefinition.from_dict(a) for a in data.get("actions") or []],
            created_at=parse_datetime(_pick(data, "created_at", "createdAt")),
            updated_at=parse_datetime(_pick(data, "updated_at", "updatedAt")),
        )


# =============================================================================
# RUNS
# =============================================================================


@dataclass(frozen=True)
class WorkflowLog:
    """One audit entry of a run. ``action_id`` is ``"system"`` for run-level entries."""

    timestamp: datetime
    action_id: str
    status: LogStatus
    message: str
    data: dict[str, Any] | None = None

    @property
    def is_system(self) -> bool:
        return self.action_id == SYSTEM_SOURCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "action_id": self.action_id,
            "status": self.status.value,
            "message": self.message,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkflowLog:
        return cls(
            timestamp=parse_datetime(data["timestamp"]),
            action_id=_pick(data, "action_id", "actionId", default=SYSTEM_SOURCE),
            status=LogStatus(data.get("status", LogStatus.SUCCESS.value)),
            message=data.get("message", ""),
            data=data.get("data"),
        )


@dataclass
class WorkflowRun:
    """One execution instance of a workflow definition."""

    workflow_id: str
    id: str = field(default_factory=new_id)
    workflow_name: str | None = None
    status: RunStatus = RunStatus.RUNNING
    trigger: TriggerType = TriggerType.MANUAL
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None
    error: str | None = None
    logs: list[WorkflowLog] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> int | None:
        if self.completed_at is None:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def append_log(self, log: WorkflowLog) -> None:
        if self.is_terminal:
            raise RunStateError(
                f"Run {self.id} is {self.status.value}; its log is closed",
                current=self.status.value,
            )
        self.logs.append(log)

    def finish(
        self,
        status: RunStatus,
        *,
        completed_at: datetime,
        final_log: WorkflowLog,
        error: str | None = None,
    ) -> None:
        """Append the closing system log and move to a terminal status in one step."""
        validate_run_transition(self.status, status)
        self.logs.append(final_log)
        self.status = status
        self.completed_at = completed_at
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
            "status": self.status.value,
            "trigger": self.trigger.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": _iso(self.completed_at),
            "error": self.error,
            "duration_ms": self.duration_ms,
            "logs": [log.to_dict() for log in self.logs],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkflowRun:
        return cls(
            id=data["id"],
            workflow_id=_pick(data, "workflow_id", "workflowId"),
            workflow_name=_pick(data, "workflow_name", "workflowName"),
            status=RunStatus(data.get("status", RunStatus.RUNNING.value)),
            trigger=TriggerType(data.get("trigger") or TriggerType.MANUAL.value),
            started_at=parse_datetime(_pick(data, "started_at", "startedAt")) or utcnow(),
            completed_at=parse_datetime(_pick(data, "completed_at", "completedAt")),
            error=data.get("error"),
            logs=[WorkflowLog.from_dict(entry) for entry in data.get("logs") or []],
        )


__all__ = [
    "SYSTEM_SOURCE",
    "ActionDefinition",
    "ActionType",
    "LogStatus",
    "RUN_VALID_TRANSITIONS",
    "RunStatus",
    "TriggerType",
    "WorkflowDefinition",
    "WorkflowLog",
    "WorkflowRun",
    "WorkflowTrigger",
    "new_id",
    "parse_datetime",
    "utcnow",
    "validate_run_transition",
]
