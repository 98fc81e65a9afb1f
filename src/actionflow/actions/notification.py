"""``notification`` action - in-app notification via a NotificationSender."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from actionflow.core.errors import ActionError, ActionExecutionError
from actionflow.orchestration.models import ActionType

from .base import (
    ActionResult,
    BaseActionHandler,
    describe_error,
    optional_text,
    require_recipients,
    require_text,
)
from .collaborators import InMemoryNotificationSender, Notification, NotificationSender


@dataclass
class NotificationParams:
    message: str
    recipients: list[str]
    title: str | None = None


class NotificationHandler(BaseActionHandler[NotificationParams]):
    action_type = ActionType.NOTIFICATION

    def __init__(self, sender: NotificationSender | None = None) -> None:
        self.sender = sender or InMemoryNotificationSender()

    def validate(self, config: Mapping[str, Any]) -> NotificationParams:
        return NotificationParams(
            message=require_text(config, "message"),
            recipients=require_recipients(config, "recipients", "recipient"),
            title=optional_text(config, "title"),
        )

    async def perform(
        self, params: NotificationParams, context: Mapping[str, Any]
    ) -> ActionResult:
        notification = Notification(
            recipients=params.recipients,
            message=params.message,
            title=params.title,
            workflow_id=(context.get("workflow") or {}).get("id"),
            run_id=(context.get("run") or {}).get("id"),
        )
        try:
            notification_id = await self.sender.send(notification)
        except ActionError:
            raise
        except Exception as exc:
            raise ActionExecutionError(
                f"Notification failed: {describe_error(exc)}", cause=exc
            ) from exc

        return ActionResult(
            message=f"Notification sent to {', '.join(params.recipients)}",
            output={
                "notification_id": notification_id,
                "recipients": params.recipients,
                "message": params.message,
            },
        )
