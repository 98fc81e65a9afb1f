"""APScheduler-based timer backend (default).

Wraps APScheduler 3.x ``AsyncIOScheduler``: one cron job per workflow id,
keyed by the workflow id so re-adding replaces rather than duplicates.

.. note::

    ``start()`` must be called from inside a running event loop; the
    scheduler attaches to that loop. Plain (non-coroutine) job functions are
    run by APScheduler on a worker thread, which is why the scheduler's
    firing callback is thread-safe.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from actionflow.core.errors import DefinitionError
from actionflow.core.logging import get_logger

from .expressions import normalize_expression, resolve_timezone, weekday_names
from .protocol import FireCallback

logger = get_logger(__name__)


class APSchedulerTimerBackend:
    """Timer backend on top of APScheduler's ``AsyncIOScheduler``.

    Example::

        >>> backend = APSchedulerTimerBackend(timezone="UTC")
        >>> backend.start()            # inside a running loop
        >>> backend.add_timer("wf-1", "*/5 * * * *", on_fire)
        >>> backend.cancel_timer("wf-1")
        True
    """

    name: str = "apscheduler"

    def __init__(self, timezone: str = "UTC", scheduler: AsyncIOScheduler | None = None) -> None:
        self._tz = resolve_timezone(timezone)
        self._scheduler = scheduler or AsyncIOScheduler(timezone=self._tz)
        self._fire_count = 0
        self._last_fire: datetime | None = None

    # ------------------------------------------------------------------
    # TimerBackend protocol
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._scheduler.running:
            logger.warning("scheduler.backend.already_started", backend=self.name)
            return
        self._scheduler.start()
        logger.info("scheduler.backend.started", backend=self.name, timezone=str(self._tz))

    def shutdown(self) -> None:
        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("scheduler.backend.stopped", backend=self.name)

    def build_trigger(self, expression: str) -> CronTrigger:
        """Build the cron trigger for ``expression``.

        Raises:
            DefinitionError: the expression is invalid or APScheduler rejects it.
        """
        minute, hour, day, month, weekday = normalize_expression(expression).split(" ")
        try:
            return CronTrigger(
                minute=minute,
                hour=hour,
                day=day,
                month=month,
                day_of_week=weekday_names(weekday),
                timezone=self._tz,
            )
        except ValueError as exc:
            raise DefinitionError(
                f"Invalid schedule expression {expression!r}: {exc}",
                field="trigger.schedule",
                cause=exc,
            ) from exc

    def validate_expression(self, expression: str) -> str:
        self.build_trigger(expression)
        return normalize_expression(expression)

    def add_timer(self, timer_id: str, expression: str, callback: FireCallback) -> None:
        trigger = self.build_trigger(expression)

        def _fire(workflow_id: str) -> None:
            self._fire_count += 1
            self._last_fire = datetime.now(UTC)
            callback(workflow_id)

        self._scheduler.add_job(
            _fire,
            trigger,
            args=[timer_id],
            id=timer_id,
            name=f"workflow:{timer_id}",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    def cancel_timer(self, timer_id: str) -> bool:
        try:
            self._scheduler.remove_job(timer_id)
        except JobLookupError:
            return False
        return True

    def active_timers(self) -> list[str]:
        return sorted(job.id for job in self._scheduler.get_jobs())

    def next_fire_times(self) -> dict[str, str | None]:
        """Next scheduled firing per timer (ISO 8601), ``None`` before start."""
        result: dict[str, str | None] = {}
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            result[job.id] = next_run.isoformat() if next_run else None
        return result

    def health(self) -> dict[str, Any]:
        return {
            "healthy": bool(self._scheduler.running),
            "backend": self.name,
            "timers": len(self._scheduler.get_jobs()),
            "fire_count": self._fire_count,
            "last_fire": self._last_fire.isoformat() if self._last_fire else None,
        }
