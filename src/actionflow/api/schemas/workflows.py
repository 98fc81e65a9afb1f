"""
Workflow and run schemas for the HTTP surface.

Request bodies accept the camelCase keys older clients send
(``nextActions``) alongside snake_case.

Doc-Types: API_REFERENCE
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from actionflow.orchestration.models import (
    ActionType,
    LogStatus,
    RunStatus,
    TriggerType,
    WorkflowDefinition,
    WorkflowRun,
)

# ── Requests ─────────────────────────────────────────────────────────────


class TriggerBody(BaseModel):
    type: TriggerType = TriggerType.MANUAL
    schedule: str | None = Field(default=None, description="5-field cron expression")
    event: str | None = Field(default=None, description="Event name for event triggers")


class TriggerPatch(BaseModel):
    type: TriggerType | None = None
    schedule: str | None = None
    event: str | None = None


class ActionBody(BaseModel):
    id: str | None = Field(default=None, description="Generated when omitted")
    name: str = ""
    type: ActionType
    config: dict[str, Any] = Field(default_factory=dict)
    next_actions: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("next_actions", "nextActions"),
    )


class CreateWorkflowBody(BaseModel):
    id: str | None = None
    name: str
    description: str = ""
    enabled: bool = True
    trigger: TriggerBody = Field(default_factory=TriggerBody)
    actions: list[ActionBody] = Field(default_factory=list)


class UpdateWorkflowBody(BaseModel):
    name: str | None = None
    description: str | None = None
    enabled: bool | None = None
    trigger: TriggerPatch | None = None
    actions: list[ActionBody] | None = None


class ExecuteBody(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)


# ── Responses ────────────────────────────────────────────────────────────


class ActionSchema(BaseModel):
    id: str
    name: str
    type: ActionType
    config: dict[str, Any]
    next_actions: list[str]


class WorkflowSchema(BaseModel):
    id: str
    name: str
    description: str = ""
    enabled: bool
    trigger: TriggerBody
    actions: list[ActionSchema]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> WorkflowSchema:
        return cls.model_validate(definition.to_dict())


class RunLogSchema(BaseModel):
    timestamp: datetime
    action_id: str
    status: LogStatus
    message: str
    data: dict[str, Any] | None = None


class RunSchema(BaseModel):
    id: str
    workflow_id: str
    workflow_name: str | None = None
    status: RunStatus
    trigger: TriggerType
    started_at: datetime
    completed_at: datetime | None = None
    error: str | None = None
    duration_ms: int | None = None
    logs: list[RunLogSchema] = Field(default_factory=list)

    @classmethod
    def from_run(cls, run: WorkflowRun) -> RunSchema:
        return cls.model_validate(run.to_dict())


class HealthSchema(BaseModel):
    status: str
    started: bool
    workflows: int
    scheduled_jobs: int
    running_runs: int
    recorded_runs: int
    scheduler: dict[str, Any] = Field(default_factory=dict)
