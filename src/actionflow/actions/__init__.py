"""Built-in action handlers.

===========  ===========================================  ==============================
type         config                                       failure
===========  ===========================================  ==============================
notification message, recipients                          "Notification failed: <reason>"
email        to, subject, body                            "Email failed: <reason>"
task         title, description?, assignee?, priority?    "Task creation failed: <reason>"
webhook      url, method?, headers?, body?                "HTTP <status>" /
                                                          "Webhook failed: <reason>"
condition    field, operator, value                       "condition not met"
wait         duration, unit?                              (none)
===========  ===========================================  ==============================
"""

from __future__ import annotations

import httpx

from .base import ActionHandler, ActionResult, BaseActionHandler
from .collaborators import (
    ConsoleEmailSender,
    EmailMessage,
    EmailSender,
    InMemoryNotificationSender,
    InMemoryTaskCreator,
    Notification,
    NotificationSender,
    SMTPEmailSender,
    TaskCreator,
    TaskRequest,
)
from .condition import ConditionHandler
from .email import EmailHandler
from .notification import NotificationHandler
from .registry import ActionHandlerRegistry
from .task import TaskHandler
from .wait import Sleep, WaitHandler
from .webhook import WebhookHandler


def create_default_registry(
    *,
    notification_sender: NotificationSender | None = None,
    email_sender: EmailSender | None = None,
    task_creator: TaskCreator | None = None,
    http_client: httpx.AsyncClient | None = None,
    http_timeout: float = 30.0,
    sleep: Sleep | None = None,
) -> ActionHandlerRegistry:
    """Registry with all six built-in handlers wired to the given collaborators."""
    return ActionHandlerRegistry(
        [
            NotificationHandler(notification_sender),
            EmailHandler(email_sender),
            TaskHandler(task_creator),
            WebhookHandler(http_client, timeout=http_timeout),
            ConditionHandler(),
            WaitHandler(sleep),
        ]
    )


__all__ = [
    "ActionHandler",
    "ActionHandlerRegistry",
    "ActionResult",
    "BaseActionHandler",
    "ConditionHandler",
    "ConsoleEmailSender",
    "EmailHandler",
    "EmailMessage",
    "EmailSender",
    "InMemoryNotificationSender",
    "InMemoryTaskCreator",
    "Notification",
    "NotificationHandler",
    "NotificationSender",
    "SMTPEmailSender",
    "TaskCreator",
    "TaskHandler",
    "TaskRequest",
    "WaitHandler",
    "WebhookHandler",
    "create_default_registry",
]
