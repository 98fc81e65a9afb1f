"""Action handler registry - ActionType → handler lookup.

ARCHITECTURE
────────────
::

    ActionHandlerRegistry
      ├── .register(handler, replace=False)  ─ store by handler.action_type
      ├── .get(action_type)                  ─ lookup (ActionConfigError if absent)
      ├── .has(action_type)                  ─ existence check
      ├── .list_types()                      ─ registered types
      └── .unregister(action_type)

    create_default_registry(...)  ─ all six built-in handlers
"""

from __future__ import annotations

from actionflow.core.errors import ActionConfigError
from actionflow.orchestration.models import ActionType

from .base import ActionHandler


def _coerce(action_type: ActionType | str) -> ActionType:
    try:
        return ActionType(action_type)
    except ValueError as exc:
        raise ActionConfigError(f"Unknown action type: {action_type!r}", key="type") from exc


class ActionHandlerRegistry:
    """Injectable handler registry.

    Example:
        >>> registry = ActionHandlerRegistry()
        >>> registry.register(WaitHandler())
        >>> registry.get("wait")
        WaitHandler(type=wait)
    """

    def __init__(self, handlers: list[ActionHandler] | None = None) -> None:
        self._handlers: dict[ActionType, ActionHandler] = {}
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ActionHandler, *, replace: bool = False) -> None:
        action_type = _coerce(handler.action_type)
        if action_type in self._handlers and not replace:
            raise ValueError(
                f"Handler already registered for {action_type.value}; pass replace=True"
            )
        self._handlers[action_type] = handler

    def get(self, action_type: ActionType | str) -> ActionHandler:
        """Get the handler for ``action_type``.

        Raises:
            ActionConfigError: If no handler is registered.
        """
        key = _coerce(action_type)
        if key not in self._handlers:
            available = [t.value for t in self.list_types()]
            raise ActionConfigError(
                f"No handler registered for {key.value}. Available: {available or 'none'}",
                key="type",
            )
        return self._handlers[key]

    def has(self, action_type: ActionType | str) -> bool:
        try:
            return _coerce(action_type) in self._handlers
        except ActionConfigError:
            return False

    def list_types(self) -> list[ActionType]:
        return sorted(self._handlers, key=lambda t: t.value)

    def unregister(self, action_type: ActionType | str) -> bool:
        return self._handlers.pop(_coerce(action_type), None) is not None

    def clear(self) -> None:
        self._handlers.clear()

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, action_type: object) -> bool:
        return isinstance(action_type, (str, ActionType)) and self.has(action_type)
