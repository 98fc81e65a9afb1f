"""Timer backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TIMER BACKEND PROTOCOL                                                       │
│                                                                               │
│  Backends control WHEN a workflow's timer fires. WorkflowScheduler controls  │
│  WHAT happens on a firing (re-read the definition, launch a run).            │
│                                                                               │
│   ┌──────────────────────┐   callback(workflow_id)   ┌──────────────────┐    │
│   │ APSchedulerTimer     │ ────────────────────────► │ Workflow         │    │
│   │ Backend (default)    │                           │ Scheduler        │    │
│   └──────────────────────┘                           │                  │    │
│   ┌──────────────────────┐   callback(workflow_id)   │  - reload def    │    │
│   │ ThreadTimerBackend   │ ────────────────────────► │  - skip disabled │    │
│   └──────────────────────┘                           │  - engine.launch │    │
│   ┌──────────────────────┐   fire(workflow_id)       │                  │    │
│   │ ManualTimerBackend   │ ────────────────────────► │                  │    │
│   │ (tests)              │                           └──────────────────┘    │
│   └──────────────────────┘                                                   │
│                                                                               │
│  Contract: at most one live timer per id. add_timer replaces, cancel_timer   │
│  guarantees the cancelled timer never fires again.                           │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

FireCallback = Callable[[str], None]


@runtime_checkable
class TimerBackend(Protocol):
    """Protocol for pluggable per-workflow recurring timers.

    Example (custom backend):
        >>> class MyBackend:
        ...     name = "custom"
        ...
        ...     def add_timer(self, timer_id, expression, callback):
        ...         my_cron.schedule(expression, lambda: callback(timer_id))
        ...
        ...     def cancel_timer(self, timer_id):
        ...         return my_cron.remove(timer_id)
    """

    name: str

    def start(self) -> None:
        """Begin delivering firings."""
        ...

    def shutdown(self) -> None:
        """Cancel every timer and stop delivering firings."""
        ...

    def validate_expression(self, expression: str) -> str:
        """Return the normalised form of ``expression`` if this backend can
        schedule it.

        Raises:
            DefinitionError: the expression is invalid for this backend.
        """
        ...

    def add_timer(self, timer_id: str, expression: str, callback: FireCallback) -> None:
        """Arm a recurring timer, replacing any timer with the same id.

        Args:
            timer_id: Workflow id the timer belongs to.
            expression: Normalised 5-field cron expression.
            callback: Called with ``timer_id`` on each firing. May be invoked
                from a worker thread.
        """
        ...

    def cancel_timer(self, timer_id: str) -> bool:
        """Cancel a timer. Returns False when none was active."""
        ...

    def active_timers(self) -> list[str]:
        """Ids of all armed timers."""
        ...

    def health(self) -> dict[str, Any]:
        """Return backend health (at least ``healthy`` and ``backend``)."""
        ...


@dataclass
class BootstrapResult:
    """Outcome of re-registering stored schedules at process start."""

    registered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"registered": list(self.registered), "failed": dict(self.failed)}
