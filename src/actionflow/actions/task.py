"""``task`` action - creates a task through a TaskCreator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from actionflow.core.errors import ActionConfigError, ActionError, ActionExecutionError
from actionflow.orchestration.models import ActionType

from .base import ActionResult, BaseActionHandler, describe_error, optional_text, require_text
from .collaborators import InMemoryTaskCreator, TaskCreator, TaskRequest

PRIORITIES = ("low", "medium", "high", "urgent")


@dataclass
class TaskParams:
    title: str
    description: str
    assignee: str
    priority: str = "medium"


class TaskHandler(BaseActionHandler[TaskParams]):
    action_type = ActionType.TASK

    def __init__(self, creator: TaskCreator | None = None) -> None:
        self.creator = creator or InMemoryTaskCreator()

    def validate(self, config: Mapping[str, Any]) -> TaskParams:
        priority = (optional_text(config, "priority", "medium") or "medium").lower()
        if priority not in PRIORITIES:
            raise ActionConfigError(
                f"Invalid priority {priority!r}; expected one of {', '.join(PRIORITIES)}",
                key="priority",
            )
        return TaskParams(
            title=require_text(config, "title"),
            description=optional_text(config, "description", "") or "",
            assignee=optional_text(config, "assignee", "") or "",
            priority=priority,
        )

    async def perform(self, params: TaskParams, context: Mapping[str, Any]) -> ActionResult:
        request = TaskRequest(
            title=params.title,
            description=params.description,
            assignee=params.assignee,
            priority=params.priority,
            workflow_id=(context.get("workflow") or {}).get("id"),
            run_id=(context.get("run") or {}).get("id"),
        )
        try:
            task_id = await self.creator.create(request)
        except ActionError:
            raise
        except Exception as exc:
            raise ActionExecutionError(
                f"Task creation failed: {describe_error(exc)}", cause=exc
            ) from exc

        return ActionResult(
            message=f"Task '{params.title}' created",
            output={
                "task_id": task_id,
                "title": params.title,
                "assignee": params.assignee,
                "priority": params.priority,
            },
        )
