"""``email`` action - sends an email through an EmailSender."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from actionflow.core.errors import ActionConfigError, ActionError, ActionExecutionError
from actionflow.orchestration.models import ActionType

from .base import ActionResult, BaseActionHandler, describe_error, require_recipients, require_text
from .collaborators import ConsoleEmailSender, EmailMessage, EmailSender


@dataclass
class EmailParams:
    to: list[str]
    subject: str
    body: str
    html: bool = False


class EmailHandler(BaseActionHandler[EmailParams]):
    """Config: ``to`` (or ``recipient``), ``subject``, ``body`` (or ``content``)."""

    action_type = ActionType.EMAIL

    def __init__(self, sender: EmailSender | None = None) -> None:
        self.sender = sender or ConsoleEmailSender()

    def validate(self, config: Mapping[str, Any]) -> EmailParams:
        to = require_recipients(config, "to", "recipient")
        for address in to:
            if "@" not in address:
                raise ActionConfigError(f"Invalid email address: {address!r}", key="to")
        return EmailParams(
            to=to,
            subject=require_text(config, "subject"),
            body=require_text(config, "body", "content"),
            html=bool(config.get("html", False)),
        )

    async def perform(self, params: EmailParams, context: Mapping[str, Any]) -> ActionResult:
        message = EmailMessage(
            to=params.to,
            subject=params.subject,
            body=params.body,
            html=params.html,
        )
        try:
            await self.sender.send(message)
        except ActionError:
            raise
        except Exception as exc:
            raise ActionExecutionError(f"Email failed: {describe_error(exc)}", cause=exc) from exc

        return ActionResult(
            message=f"Email sent to {', '.join(params.to)}",
            output={"to": params.to, "subject": params.subject},
        )
