"""Tests for actionflow.actions.registry - ActionHandlerRegistry."""

from __future__ import annotations

import pytest

from actionflow.actions import ActionHandlerRegistry, WaitHandler, create_default_registry
from actionflow.core.errors import ActionConfigError
from actionflow.orchestration.models import ActionType


class TestActionHandlerRegistry:
    def test_default_registry_has_all_types(self):
        registry = create_default_registry()
        assert registry.list_types() == sorted(ActionType, key=lambda t: t.value)
        assert len(registry) == 6

    def test_lookup_by_string(self):
        registry = ActionHandlerRegistry([WaitHandler()])
        assert isinstance(registry.get("wait"), WaitHandler)
        assert "wait" in registry
        assert ActionType.EMAIL not in registry

    def test_missing_handler(self):
        with pytest.raises(ActionConfigError, match="No handler registered for email"):
            ActionHandlerRegistry().get(ActionType.EMAIL)

    def test_unknown_type(self):
        registry = ActionHandlerRegistry()
        with pytest.raises(ActionConfigError, match="Unknown action type"):
            registry.get("sms")
        assert registry.has("sms") is False

    def test_duplicate_requires_replace(self):
        registry = ActionHandlerRegistry([WaitHandler()])
        replacement = WaitHandler()
        with pytest.raises(ValueError, match="replace=True"):
            registry.register(replacement)
        registry.register(replacement, replace=True)
        assert registry.get(ActionType.WAIT) is replacement

    def test_unregister_and_clear(self):
        registry = create_default_registry()
        assert registry.unregister("wait") is True
        assert registry.unregister("wait") is False
        registry.clear()
        assert len(registry) == 0

    def test_repr(self):
        assert repr(WaitHandler()) == "WaitHandler(type=wait)"
