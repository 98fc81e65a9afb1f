"""Action handler contract and shared config parsing.

Every handler follows the same template: ``execute()`` first parses and
validates the raw config (raising :class:`ActionConfigError` before any side
effect), then ``perform()`` does the work and returns an
:class:`ActionResult` whose ``output`` becomes the success log payload and
``steps.<action_id>`` in the run context.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from actionflow.core.errors import ActionConfigError
from actionflow.orchestration.models import ActionType

ParamsT = TypeVar("ParamsT")


@dataclass
class ActionResult:
    """Successful outcome of one action."""

    message: str
    output: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ActionHandler(Protocol):
    action_type: ActionType

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ActionResult:
        ...


class BaseActionHandler(ABC, Generic[ParamsT]):
    """Validate-then-perform template shared by the built-in handlers."""

    action_type: ActionType

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> ActionResult:
        params = self.validate(config or {})
        return await self.perform(params, context)

    @abstractmethod
    def validate(self, config: Mapping[str, Any]) -> ParamsT:
        """Parse ``config``; raise ActionConfigError when it is unusable."""

    @abstractmethod
    async def perform(self, params: ParamsT, context: Mapping[str, Any]) -> ActionResult:
        """Run the side effect. Failures raise ActionExecutionError."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.action_type.value})"


# ---------------------------------------------------------------------------
# config helpers
# ---------------------------------------------------------------------------


def require_text(config: Mapping[str, Any], *keys: str) -> str:
    """First non-blank string among ``keys`` (later keys are aliases)."""
    for key in keys:
        value = config.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ActionConfigError(f"'{key}' must be a string", key=key)
        if value.strip():
            return value
    raise ActionConfigError(f"Missing required config '{keys[0]}'", key=keys[0])


def optional_text(config: Mapping[str, Any], key: str, default: str | None = None) -> str | None:
    value = config.get(key)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        raise ActionConfigError(f"'{key}' must be a string", key=key)
    return value


def require_recipients(config: Mapping[str, Any], *keys: str) -> list[str]:
    """A list of addresses, or a comma separated string."""
    for key in keys:
        value = config.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            items = [part.strip() for part in value.split(",")]
        elif isinstance(value, (list, tuple)):
            if not all(isinstance(item, str) for item in value):
                raise ActionConfigError(f"'{key}' must contain strings", key=key)
            items = [item.strip() for item in value]
        else:
            raise ActionConfigError(f"'{key}' must be a string or a list of strings", key=key)
        items = [item for item in items if item]
        if items:
            return items
    raise ActionConfigError(f"Missing required config '{keys[0]}'", key=keys[0])


def describe_error(exc: BaseException) -> str:
    """Human-readable reason for a collaborator failure."""
    return str(exc) or exc.__class__.__name__
