"""Delivery collaborators behind the notification, email and task actions.

The engine only defines the contracts; concrete transports live here as
small swappable classes. Defaults keep everything in-process so a fresh
install can run workflows end to end without any external service.
"""

from __future__ import annotations

import asyncio
import smtplib
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Protocol, runtime_checkable

from actionflow.core.logging import get_logger
from actionflow.orchestration.models import new_id, utcnow

logger = get_logger(__name__)

# In-process defaults keep only the most recent items so a long-running
# server does not grow without bound.
DEFAULT_RETAINED = 500


# =============================================================================
# MESSAGES
# =============================================================================


@dataclass
class Notification:
    recipients: list[str]
    message: str
    title: str | None = None
    workflow_id: str | None = None
    run_id: str | None = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "recipients": list(self.recipients),
            "title": self.title,
            "message": self.message,
            "workflow_id": self.workflow_id,
            "run_id": self.run_id,
            "created_at": self.created_at.isoformat(),
            "read": self.read,
        }


@dataclass
class EmailMessage:
    to: list[str]
    subject: str
    body: str
    from_address: str | None = None
    html: bool = False


@dataclass
class TaskRequest:
    title: str
    description: str
    assignee: str
    priority: str = "medium"
    workflow_id: str | None = None
    run_id: str | None = None


# =============================================================================
# CONTRACTS
# =============================================================================


@runtime_checkable
class NotificationSender(Protocol):
    async def send(self, notification: Notification) -> str:
        """Deliver the notification; returns its id."""
        ...


@runtime_checkable
class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> None:
        ...


@runtime_checkable
class TaskCreator(Protocol):
    async def create(self, request: TaskRequest) -> str:
        """Create the task; returns the generated task id."""
        ...


# =============================================================================
# DEFAULT IMPLEMENTATIONS
# =============================================================================


class InMemoryNotificationSender:
    """Keeps the most recent ``max_retained`` notifications, newest last."""

    def __init__(self, max_retained: int = DEFAULT_RETAINED) -> None:
        self.notifications: deque[Notification] = deque(maxlen=max_retained)
        self._lock = threading.Lock()

    async def send(self, notification: Notification) -> str:
        with self._lock:
            self.notifications.append(notification)
        logger.info(
            "notification.sent",
            notification_id=notification.id,
            recipients=notification.recipients,
        )
        return notification.id

    def for_recipient(self, recipient: str) -> list[Notification]:
        return [n for n in self.notifications if recipient in n.recipients]


class ConsoleEmailSender:
    """Development email sender: logs the message instead of delivering it."""

    def __init__(
        self, from_address: str = "noreply@localhost", max_retained: int = DEFAULT_RETAINED
    ) -> None:
        self.from_address = from_address
        self.sent: deque[EmailMessage] = deque(maxlen=max_retained)

    async def send(self, message: EmailMessage) -> None:
        self.sent.append(message)
        logger.info(
            "email.console",
            sender=message.from_address or self.from_address,
            to=message.to,
            subject=message.subject,
        )


class SMTPEmailSender:
    """Email sender using SMTP.

    ``smtplib`` is blocking, so delivery runs on a worker thread.
    """

    def __init__(
        self,
        smtp_host: str,
        from_address: str,
        *,
        smtp_port: int = 587,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._from_address = from_address
        self._use_tls = use_tls
        self._timeout = timeout

    def _build_message(self, message: EmailMessage) -> str:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = message.from_address or self._from_address
        msg["To"] = ", ".join(message.to)
        msg.attach(MIMEText(message.body, "html" if message.html else "plain"))
        return msg.as_string()

    def _send_sync(self, message: EmailMessage) -> None:
        server = smtplib.SMTP(self._smtp_host, self._smtp_port, timeout=self._timeout)
        try:
            if self._use_tls:
                server.starttls()
            if self._smtp_user and self._smtp_password:
                server.login(self._smtp_user, self._smtp_password)
            server.sendmail(
                message.from_address or self._from_address,
                message.to,
                self._build_message(message),
            )
        finally:
            server.quit()

    async def send(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)
        logger.info("email.sent", to=message.to, subject=message.subject)


class InMemoryTaskCreator:
    """Stores the most recent ``max_retained`` tasks keyed by generated id."""

    def __init__(self, max_retained: int = DEFAULT_RETAINED) -> None:
        self.max_retained = max_retained
        self.tasks: OrderedDict[str, TaskRequest] = OrderedDict()

    async def create(self, request: TaskRequest) -> str:
        task_id = new_id()
        self.tasks[task_id] = request
        while len(self.tasks) > self.max_retained:
            self.tasks.popitem(last=False)
        logger.info("task.created", task_id=task_id, title=request.title, assignee=request.assignee)
        return task_id
