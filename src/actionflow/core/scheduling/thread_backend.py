"""Threading-based timer backend.

Each workflow gets a one-shot ``threading.Timer`` armed for the next cron
firing; when it fires it re-arms itself for the following one.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD TIMER BACKEND                                                         │
│                                                                               │
│   add_timer(id, expr, cb)                                                     │
│      │   generation += 1                                                      │
│      ▼                                                                        │
│   _arm(slot) ── delay = next_fire_time(expr, clock()) - clock()               │
│      │                                                                        │
│      ▼                                                                        │
│   timer_factory(delay, _on_fire, args=(id, generation)).start()               │
│      │                                                                        │
│      ▼                                                                        │
│   _on_fire(id, generation)                                                    │
│      ├── slot missing or generation stale?  ──► drop (cancelled/replaced)     │
│      ├── _arm(slot)                         ──► next firing                   │
│      └── cb(id)                                                               │
│                                                                               │
│  The generation check runs under the lock, so a timer that was cancelled or   │
│  replaced can never deliver a firing even if its thread was already woken.   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from actionflow.core.logging import get_logger

from .expressions import next_fire_time, normalize_expression, resolve_timezone
from .protocol import FireCallback

logger = get_logger(__name__)

Clock = Callable[[], datetime]
TimerFactory = Callable[..., Any]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class _TimerSlot:
    timer_id: str
    expression: str
    callback: FireCallback
    generation: int
    handle: Any = None


class ThreadTimerBackend:
    """Zero-dependency timer backend using ``threading.Timer``.

    Args:
        timezone: IANA zone the cron expressions are evaluated in.
        clock: Returns the current aware datetime (injectable for tests).
        timer_factory: ``threading.Timer``-compatible constructor taking
            ``(interval, function, args=...)`` and returning an object with
            ``start()``, ``cancel()`` and a ``daemon`` attribute.
    """

    name = "thread"

    def __init__(
        self,
        timezone: str = "UTC",
        clock: Clock | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self._timezone = timezone
        resolve_timezone(timezone)
        self._clock = clock or _utcnow
        self._timer_factory = timer_factory or threading.Timer
        self._slots: dict[str, _TimerSlot] = {}
        self._generation = 0
        self._lock = threading.Lock()
        self._started = False
        self._fire_count = 0
        self._last_fire: datetime | None = None

    def start(self) -> None:
        with self._lock:
            if self._started:
                logger.warning("scheduler.backend.already_started", backend=self.name)
                return
            self._started = True
            for slot in self._slots.values():
                self._arm(slot)
        logger.info("scheduler.backend.started", backend=self.name, timezone=self._timezone)

    def shutdown(self) -> None:
        with self._lock:
            for slot in self._slots.values():
                self._disarm(slot)
            self._slots.clear()
            self._started = False
        logger.info("scheduler.backend.stopped", backend=self.name)

    def validate_expression(self, expression: str) -> str:
        return normalize_expression(expression)

    def add_timer(self, timer_id: str, expression: str, callback: FireCallback) -> None:
        expression = normalize_expression(expression)
        with self._lock:
            existing = self._slots.pop(timer_id, None)
            if existing is not None:
                self._disarm(existing)
            self._generation += 1
            slot = _TimerSlot(timer_id, expression, callback, self._generation)
            self._slots[timer_id] = slot
            if self._started:
                self._arm(slot)

    def cancel_timer(self, timer_id: str) -> bool:
        with self._lock:
            slot = self._slots.pop(timer_id, None)
            if slot is None:
                return False
            self._disarm(slot)
            return True

    def active_timers(self) -> list[str]:
        with self._lock:
            return sorted(self._slots)

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self._started,
            "backend": self.name,
            "timers": len(self._slots),
            "fire_count": self._fire_count,
            "last_fire": self._last_fire.isoformat() if self._last_fire else None,
        }

    @property
    def fire_count(self) -> int:
        return self._fire_count

    # ------------------------------------------------------------------
    # internals (called with the lock held)
    # ------------------------------------------------------------------

    def _arm(self, slot: _TimerSlot) -> None:
        now = self._clock()
        due = next_fire_time(slot.expression, now, self._timezone)
        delay = max(0.0, (due - now).total_seconds())
        handle = self._timer_factory(delay, self._on_fire, args=(slot.timer_id, slot.generation))
        handle.daemon = True
        handle.start()
        slot.handle = handle

    @staticmethod
    def _disarm(slot: _TimerSlot) -> None:
        if slot.handle is not None:
            slot.handle.cancel()
            slot.handle = None

    def _on_fire(self, timer_id: str, generation: int) -> None:
        with self._lock:
            slot = self._slots.get(timer_id)
            if not self._started or slot is None or slot.generation != generation:
                return
            self._fire_count += 1
            self._last_fire = self._clock()
            self._arm(slot)
            callback = slot.callback

        try:
            callback(timer_id)
        except Exception:
            logger.exception("scheduler.fire_failed", backend=self.name, workflow_id=timer_id)
