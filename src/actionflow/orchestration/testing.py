"""Test doubles for workflows - timers, sleeps and collaborators without I/O.

Example::

    from actionflow.orchestration.testing import ManualTimerBackend, RecordingSleep

    backend = ManualTimerBackend()
    service = create_workflow_service(settings, timer_backend=backend, sleep=RecordingSleep())
    await service.startup()

    saved = service.create_workflow(definition)
    backend.fire(saved.id)          # as if the cron expression came due
    await service.engine.drain()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from actionflow.actions.collaborators import EmailMessage, Notification, TaskRequest
from actionflow.core.scheduling.expressions import normalize_expression
from actionflow.core.scheduling.protocol import FireCallback


@dataclass
class _ManualTimer:
    expression: str
    callback: FireCallback


class ManualTimerBackend:
    """Timer backend whose firings are triggered explicitly with :meth:`fire`."""

    name = "manual"

    def __init__(self) -> None:
        self._timers: dict[str, _ManualTimer] = {}
        self.started = False
        self.fired: list[str] = []
        self.added: list[str] = []
        self.cancelled: list[str] = []

    def start(self) -> None:
        self.started = True

    def shutdown(self) -> None:
        self._timers.clear()
        self.started = False

    def validate_expression(self, expression: str) -> str:
        return normalize_expression(expression)

    def add_timer(self, timer_id: str, expression: str, callback: FireCallback) -> None:
        self._timers[timer_id] = _ManualTimer(normalize_expression(expression), callback)
        self.added.append(timer_id)

    def cancel_timer(self, timer_id: str) -> bool:
        if self._timers.pop(timer_id, None) is None:
            return False
        self.cancelled.append(timer_id)
        return True

    def active_timers(self) -> list[str]:
        return sorted(self._timers)

    def expression_for(self, timer_id: str) -> str:
        return self._timers[timer_id].expression

    def fire(self, timer_id: str) -> None:
        """Deliver one firing.

        Raises:
            KeyError: no live timer for ``timer_id``.
        """
        timer = self._timers[timer_id]
        self.fired.append(timer_id)
        timer.callback(timer_id)

    def fire_all(self) -> None:
        for timer_id in list(self._timers):
            self.fire(timer_id)

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self.started,
            "backend": self.name,
            "timers": len(self._timers),
            "fire_count": len(self.fired),
        }


class RecordingSleep:
    """Drop-in for ``asyncio.sleep`` that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


class FailingNotificationSender:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("recipient unreachable")

    async def send(self, notification: Notification) -> str:
        raise self.error


class FailingEmailSender:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("SMTP server refused connection")
        self.attempts: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        self.attempts.append(message)
        raise self.error


class FailingTaskCreator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or RuntimeError("task service unavailable")

    async def create(self, request: TaskRequest) -> str:
        raise self.error
