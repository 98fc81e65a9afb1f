"""``condition`` action - evaluates ``field operator value`` against the run context.

A false predicate raises :class:`ConditionNotMet`. Without a false branch in
``next_actions`` that fails the run; with one the engine jumps to it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from actionflow.core.errors import ActionConfigError, ConditionNotMet
from actionflow.orchestration.conditions import canonical_operator, evaluate, requires_value
from actionflow.orchestration.models import ActionType

from .base import ActionResult, BaseActionHandler, require_text


@dataclass
class ConditionParams:
    field: str
    operator: str
    value: Any = None


class ConditionHandler(BaseActionHandler[ConditionParams]):
    action_type = ActionType.CONDITION

    def validate(self, config: Mapping[str, Any]) -> ConditionParams:
        field = require_text(config, "field")
        operator = canonical_operator(require_text(config, "operator"))
        if requires_value(operator) and "value" not in config:
            raise ActionConfigError(
                f"Operator '{operator}' requires a 'value'", key="value"
            )
        return ConditionParams(field=field, operator=operator, value=config.get("value"))

    async def perform(self, params: ConditionParams, context: Mapping[str, Any]) -> ActionResult:
        evaluation = evaluate(context, params.field, params.operator, params.value)
        if not evaluation.result:
            raise ConditionNotMet(evaluation=evaluation.to_dict())
        return ActionResult(
            message=f"Condition met: {params.field} {params.operator} {params.value!r}",
            output=evaluation.to_dict(),
        )
