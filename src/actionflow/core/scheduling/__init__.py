"""Scheduling package for actionflow.

Manifesto:
    A schedule-triggered workflow needs exactly one live recurring timer
    while it is enabled, none once it is disabled or deleted, and all of
    them rebuilt from storage when the process restarts. The package keeps
    timing (backends) apart from firing logic (``WorkflowScheduler``) so the
    latter can be tested without the wall clock.

┌──────────────────────────────────────────────────────────────────────────────┐
│  Quick Start:                                                                 │
│                                                                               │
│   from actionflow.core.scheduling import (                                   │
│       WorkflowScheduler,                                                     │
│       create_timer_backend,                                                  │
│   )                                                                          │
│                                                                               │
│   backend = create_timer_backend("apscheduler", timezone="UTC")              │
│   scheduler = WorkflowScheduler(backend, registry, engine)                   │
│   await scheduler.start()                                                    │
│                                                                               │
│  Backends:                                                                    │
│  - APSchedulerTimerBackend  AsyncIOScheduler + CronTrigger (default)         │
│  - ThreadTimerBackend       croniter + threading.Timer                       │
│  - ManualTimerBackend       explicit firing (actionflow.orchestration.testing)│
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from .apscheduler_backend import APSchedulerTimerBackend
from .expressions import (
    is_valid_expression,
    next_fire_time,
    normalize_expression,
)
from .protocol import BootstrapResult, FireCallback, TimerBackend
from .service import WorkflowScheduler
from .thread_backend import ThreadTimerBackend


def create_timer_backend(kind: str = "apscheduler", timezone: str = "UTC") -> TimerBackend:
    """Build a timer backend by name (``apscheduler`` or ``thread``)."""
    kind = getattr(kind, "value", kind)
    if kind == "apscheduler":
        return APSchedulerTimerBackend(timezone=timezone)
    if kind == "thread":
        return ThreadTimerBackend(timezone=timezone)
    raise ValueError(f"Unknown scheduler backend: {kind}")


__all__ = [
    "APSchedulerTimerBackend",
    "BootstrapResult",
    "FireCallback",
    "ThreadTimerBackend",
    "TimerBackend",
    "WorkflowScheduler",
    "create_timer_backend",
    "is_valid_expression",
    "next_fire_time",
    "normalize_expression",
]
