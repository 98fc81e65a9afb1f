"""``wait`` action - suspends the pipeline for a fixed duration.

The only designed suspension point inside a run. ``sleep`` is injectable so
tests never wait on the wall clock.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from actionflow.core.errors import ActionConfigError
from actionflow.orchestration.models import ActionType

from .base import ActionResult, BaseActionHandler

UNIT_MS: dict[str, int] = {
    "seconds": 1_000,
    "minutes": 60_000,
    "hours": 3_600_000,
}
_UNIT_ALIASES = {"second": "seconds", "minute": "minutes", "hour": "hours"}

Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class WaitParams:
    duration: float
    unit: str = "seconds"

    @property
    def duration_ms(self) -> int:
        return int(round(self.duration * UNIT_MS[self.unit]))


class WaitHandler(BaseActionHandler[WaitParams]):
    action_type = ActionType.WAIT

    def __init__(self, sleep: Sleep | None = None) -> None:
        self.sleep = sleep or asyncio.sleep

    def validate(self, config: Mapping[str, Any]) -> WaitParams:
        raw = config.get("duration")
        if raw is None or isinstance(raw, bool):
            raise ActionConfigError("Missing required config 'duration'", key="duration")
        try:
            duration = float(raw)
        except (TypeError, ValueError) as exc:
            raise ActionConfigError(f"'duration' must be a number, got {raw!r}", key="duration") from exc
        if duration < 0 or not math.isfinite(duration):
            raise ActionConfigError("'duration' must be non-negative", key="duration")

        unit = str(config.get("unit") or "seconds").lower()
        unit = _UNIT_ALIASES.get(unit, unit)
        if unit not in UNIT_MS:
            raise ActionConfigError(
                f"Invalid unit {unit!r}; expected seconds, minutes or hours", key="unit"
            )
        return WaitParams(duration=duration, unit=unit)

    async def perform(self, params: WaitParams, context: Mapping[str, Any]) -> ActionResult:
        await self.sleep(params.duration_ms / 1000)
        duration = int(params.duration) if params.duration.is_integer() else params.duration
        return ActionResult(
            message=f"Waited {duration} {params.unit}",
            output={
                "duration": duration,
                "unit": params.unit,
                "duration_ms": params.duration_ms,
            },
        )
