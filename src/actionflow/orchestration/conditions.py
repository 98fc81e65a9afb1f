"""Condition expression evaluator.

A condition action carries ``field``, ``operator`` and ``value``. ``field``
is a dotted path into the run context::

    {
        "workflow": {"id": ..., "name": ...},
        "run": {"id": ...},
        "trigger": "manual" | "schedule" | "event",
        "event": {"type": ..., "payload": {...}} | None,
        "params": {...},
        "steps": {action_id: output, ...},
    }

e.g. ``event.payload.amount`` or ``steps.fetch.status``. Integer path
segments index into lists (``event.payload.items.0.sku``).
"""

from __future__ import annotations

import operator as _op
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from actionflow.core.errors import ActionConfigError


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def resolve_path(context: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path; returns :data:`MISSING` when any segment is absent."""
    current: Any = context
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return current


def _coerce_pair(left: Any, right: Any) -> tuple[Any, Any]:
    """Coerce numeric strings when the other side is a number."""
    numbers = (int, float)
    if isinstance(left, numbers) and not isinstance(left, bool) and isinstance(right, str):
        try:
            return left, float(right)
        except ValueError:
            return left, right
    if isinstance(right, numbers) and not isinstance(right, bool) and isinstance(left, str):
        try:
            return float(left), right
        except ValueError:
            return left, right
    return left, right


def _compare(fn: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def wrapper(actual: Any, expected: Any) -> bool:
        actual, expected = _coerce_pair(actual, expected)
        return bool(fn(actual, expected))

    return wrapper


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, Mapping):
        return expected in actual
    if isinstance(actual, str):
        return str(expected) in actual
    return expected in actual


def _is_in(actual: Any, expected: Any) -> bool:
    if isinstance(expected, str):
        return str(actual) in expected
    return actual in expected


def _matches(actual: Any, expected: Any) -> bool:
    try:
        pattern = re.compile(str(expected))
    except re.error as exc:
        raise ActionConfigError(f"Invalid regular expression: {expected!r}", key="value") from exc
    return pattern.search(str(actual)) is not None


_BINARY: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _compare(_op.eq),
    "not_equals": _compare(_op.ne),
    "greater_than": _compare(_op.gt),
    "greater_than_or_equal": _compare(_op.ge),
    "less_than": _compare(_op.lt),
    "less_than_or_equal": _compare(_op.le),
    "contains": _contains,
    "not_contains": lambda a, e: not _contains(a, e),
    "in": _is_in,
    "not_in": lambda a, e: not _is_in(a, e),
    "starts_with": lambda a, e: str(a).startswith(str(e)),
    "ends_with": lambda a, e: str(a).endswith(str(e)),
    "matches": _matches,
}

_UNARY = {"exists", "not_exists"}

OPERATOR_ALIASES: dict[str, str] = {
    "eq": "equals",
    "==": "equals",
    "ne": "not_equals",
    "!=": "not_equals",
    "gt": "greater_than",
    ">": "greater_than",
    "gte": "greater_than_or_equal",
    ">=": "greater_than_or_equal",
    "lt": "less_than",
    "<": "less_than",
    "lte": "less_than_or_equal",
    "<=": "less_than_or_equal",
}

OPERATORS: frozenset[str] = frozenset(_BINARY) | frozenset(_UNARY)


def canonical_operator(name: str) -> str:
    """Map an operator or alias to its canonical name.

    Raises:
        ActionConfigError: for an unknown operator.
    """
    key = str(name).strip().lower()
    key = OPERATOR_ALIASES.get(key, key)
    if key not in OPERATORS:
        raise ActionConfigError(
            f"Unknown condition operator: {name!r}",
            key="operator",
        )
    return key


def requires_value(operator: str) -> bool:
    return canonical_operator(operator) not in _UNARY


@dataclass(frozen=True)
class Evaluation:
    """Outcome of one predicate evaluation."""

    result: bool
    field: str
    operator: str
    value: Any
    actual: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result,
            "field": self.field,
            "operator": self.operator,
            "value": self.value,
            "actual": None if self.actual is MISSING else self.actual,
        }


def evaluate(
    context: Mapping[str, Any],
    field: str,
    operator: str,
    value: Any = None,
) -> Evaluation:
    """Evaluate ``<field> <operator> <value>`` against ``context``.

    A missing field is false for every binary operator. Incomparable types
    (``TypeError``) evaluate to false rather than raising.
    """
    name = canonical_operator(operator)
    actual = resolve_path(context, field)

    if name == "exists":
        result = actual is not MISSING and actual is not None
    elif name == "not_exists":
        result = actual is MISSING or actual is None
    elif actual is MISSING:
        result = False
    else:
        try:
            result = _BINARY[name](actual, value)
        except TypeError:
            result = False

    return Evaluation(result=result, field=field, operator=name, value=value, actual=actual)


__all__ = [
    "MISSING",
    "OPERATORS",
    "OPERATOR_ALIASES",
    "Evaluation",
    "canonical_operator",
    "evaluate",
    "requires_value",
    "resolve_path",
]
