"""Event model and bus protocol.

Why This Package Exists
-----------------------
Event-triggered workflows need a named event with a payload. Producers
(the HTTP API, the CLI, application code publishing on a bus) should not
import the dispatcher directly, so events travel over a small ``EventBus``
protocol and the dispatcher subscribes to it.

Usage::

    from actionflow.core.events import Event
    from actionflow.core.events.memory import InMemoryEventBus

    bus = InMemoryEventBus()
    await dispatcher.attach(bus)
    await bus.publish(Event(event_type="order.created", payload={"id": 42}))

Modules
-------
memory      InMemoryEventBus -- asyncio, single-process
"""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
]


# ── Event Model ──────────────────────────────────────────────────────────


@dataclass
class Event:
    """Named occurrence delivered to event-triggered workflows.

    Attributes:
        event_type: Event name matched exactly against ``trigger.event``
        payload: Event-specific data, exposed to actions as ``event.payload``
        source: Origin component
        timestamp: When the event occurred (UTC)
        event_id: Unique event identifier
    """

    event_type: str
    payload: dict[str, Any] = field(default_factory=dict)
    source: str = "api"
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a subscription pattern.

        Examples:
            - ``order.*`` matches ``order.created``
            - ``*`` matches everything
            - ``order.created`` matches exactly ``order.created``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


# ── Type Aliases ─────────────────────────────────────────────────────────

EventHandler = Callable[[Event], Awaitable[None]]


# ── EventBus Protocol ────────────────────────────────────────────────────


@runtime_checkable
class EventBus(Protocol):
    """Publish/subscribe transport for :class:`Event` objects."""

    async def publish(self, event: Event) -> None:
        """Publish an event to all matching subscribers."""
        ...

    async def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern; returns a subscription id."""
        ...

    async def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...
