"""Cron expression validation and next-fire computation.

Only standard 5-field expressions (minute hour day-of-month month
day-of-week) are accepted, plus the usual ``@daily``-style aliases, which are
rewritten to their 5-field form so every backend sees the same syntax.

The day-of-week field is rewritten to a canonical numeric form (0 = Sunday,
``7`` folded into ``0``, steps expanded) because cron and APScheduler number
weekdays differently. Backends that do not count from Sunday translate the
canonical form with :func:`weekday_names`.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from actionflow.core.errors import DefinitionError

CRON_ALIASES: dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

WEEKDAY_NAMES: tuple[str, ...] = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

_NUMERIC_FIELD = re.compile(r"^[\d*,/-]+$")
_MONTH_FIELD = re.compile(r"^[\w*,/-]+$")
_WEEKDAY_ITEM = re.compile(r"^(?P<base>\*|\w+(?:-\w+)?)(?:/(?P<step>\d+))?$")


def _weekday_number(token: str, expression: str) -> int:
    token = token.lower()
    if token in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(token)
    if token.isdigit() and 0 <= int(token) <= 7:
        return int(token)
    raise DefinitionError(
        f"Invalid schedule expression {expression!r}: bad day-of-week {token!r}",
        field="trigger.schedule",
    )


def _canonical_weekdays(field: str, expression: str) -> str:
    """Rewrite a day-of-week field as ``*`` or sorted numeric runs (``1-5,0``
    becomes ``0-5``)."""
    if field == "*":
        return field

    days: set[int] = set()
    for item in field.split(","):
        match = _WEEKDAY_ITEM.match(item)
        if match is None:
            raise DefinitionError(
                f"Invalid schedule expression {expression!r}: bad day-of-week {item!r}",
                field="trigger.schedule",
            )
        base, step = match.group("base"), int(match.group("step") or 1)
        if step < 1:
            raise DefinitionError(
                f"Invalid schedule expression {expression!r}: step must be positive",
                field="trigger.schedule",
            )
        if base == "*":
            low, high = 0, 6
        elif "-" in base:
            first, last = base.split("-")
            low, high = _weekday_number(first, expression), _weekday_number(last, expression)
        else:
            low = _weekday_number(base, expression)
            high = 6 if match.group("step") else low
        if low > high:
            raise DefinitionError(
                f"Invalid schedule expression {expression!r}: descending day-of-week range {item!r}",
                field="trigger.schedule",
            )
        days.update(day % 7 for day in range(low, high + 1, step))

    if len(days) == 7:
        return "*"

    runs: list[str] = []
    ordered = sorted(days)
    start = prev = ordered[0]
    for day in ordered[1:] + [None]:
        if day is not None and day == prev + 1:
            prev = day
            continue
        runs.append(str(start) if start == prev else f"{start}-{prev}")
        if day is not None:
            start = prev = day
    return ",".join(runs)


def weekday_names(field: str) -> str:
    """Translate a canonical day-of-week field to a list of names
    (``0,5-6`` -> ``sun,fri,sat``).

    APScheduler counts numeric weekdays from Monday and its ranges run
    Monday to Sunday; an explicit list of names means the same thing to
    every backend.
    """
    if field == "*":
        return field
    names: list[str] = []
    for run in field.split(","):
        first, _, last = run.partition("-")
        names.extend(WEEKDAY_NAMES[day] for day in range(int(first), int(last or first) + 1))
    return ",".join(names)


def normalize_expression(expression: str | None) -> str:
    """Return the canonical 5-field form of ``expression``.

    Raises:
        DefinitionError: if the expression is missing or is not a valid
            5-field cron expression.
    """
    if expression is None or not str(expression).strip():
        raise DefinitionError("Schedule expression is required", field="trigger.schedule")

    text = " ".join(str(expression).split())
    text = CRON_ALIASES.get(text.lower(), text)

    fields = text.split(" ")
    if len(fields) != 5:
        raise DefinitionError(
            f"Invalid schedule expression {expression!r}: expected 5 fields",
            field="trigger.schedule",
        )
    minute, hour, day, month, weekday = fields
    if not all(_NUMERIC_FIELD.match(f) for f in (minute, hour, day)) or not _MONTH_FIELD.match(month):
        raise DefinitionError(
            f"Invalid schedule expression {expression!r}",
            field="trigger.schedule",
        )
    weekday = _canonical_weekdays(weekday, expression)
    # cron ORs a restricted day-of-month with a restricted day-of-week,
    # APScheduler ANDs them; only one of the two may be restricted.
    if day != "*" and weekday != "*":
        raise DefinitionError(
            f"Invalid schedule expression {expression!r}: restrict day-of-month or "
            "day-of-week, not both",
            field="trigger.schedule",
        )

    text = " ".join((minute, hour, day, month, weekday))
    if not croniter.is_valid(text):
        raise DefinitionError(
            f"Invalid schedule expression {expression!r}",
            field="trigger.schedule",
        )
    return text


def is_valid_expression(expression: str | None) -> bool:
    try:
        normalize_expression(expression)
    except DefinitionError:
        return False
    return True


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise DefinitionError(f"Unknown timezone: {name}", cause=exc) from exc


def next_fire_time(
    expression: str,
    after: datetime,
    timezone: str = "UTC",
) -> datetime:
    """Compute the next firing strictly after ``after``, returned in UTC.

    Naive ``after`` values are taken to be UTC.
    """
    cron_expr = normalize_expression(expression)
    if after.tzinfo is None:
        after = after.replace(tzinfo=UTC)

    after_local = after.astimezone(resolve_timezone(timezone))
    next_run = croniter(cron_expr, after_local).get_next(datetime)
    return next_run.astimezone(UTC)


__all__ = [
    "CRON_ALIASES",
    "WEEKDAY_NAMES",
    "is_valid_expression",
    "next_fire_time",
    "normalize_expression",
    "resolve_timezone",
    "weekday_names",
]
