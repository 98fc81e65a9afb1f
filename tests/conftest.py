"""
Shared pytest fixtures and configuration for actionflow tests.

This module provides:
- Settings isolated from the developer's environment
- A fully wired WorkflowService on in-memory stores with a manual timer
  backend and a sleep that returns at once
- A ``make_definition`` factory for sample workflows

Usage:
    Fixtures are auto-discovered by pytest.

    async def test_something(service, make_definition):
        saved = service.create_workflow(make_definition())
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from actionflow.actions import (
    ActionHandlerRegistry,
    ConsoleEmailSender,
    InMemoryNotificationSender,
    InMemoryTaskCreator,
    create_default_registry,
)
from actionflow.core.settings import ActionFlowSettings, get_settings
from actionflow.orchestration.engine import ExecutionEngine
from actionflow.orchestration.models import (
    ActionDefinition,
    ActionType,
    TriggerType,
    WorkflowDefinition,
    WorkflowTrigger,
)
from actionflow.orchestration.recorder import InMemoryRunStore
from actionflow.orchestration.service import WorkflowService, create_workflow_service
from actionflow.orchestration.testing import ManualTimerBackend, RecordingSleep

# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.path).relative_to(Path(__file__).parent)
        if test_path.parts[0] in ("api", "cli"):
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> ActionFlowSettings:
    return ActionFlowSettings(_env_file=None, database_path=None, history_limit=10)


# =============================================================================
# Clocks
# =============================================================================


class StepClock:
    """Deterministic clock: every call advances by ``step``."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def timers() -> ManualTimerBackend:
    return ManualTimerBackend()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def notifications() -> InMemoryNotificationSender:
    return InMemoryNotificationSender()


@pytest.fixture
def emails() -> ConsoleEmailSender:
    return ConsoleEmailSender("workflows@example.com")


@pytest.fixture
def tasks() -> InMemoryTaskCreator:
    return InMemoryTaskCreator()


@pytest.fixture
def handlers(notifications, emails, tasks, sleep) -> ActionHandlerRegistry:
    return create_default_registry(
        notification_sender=notifications,
        email_sender=emails,
        task_creator=tasks,
        sleep=sleep,
    )


@pytest.fixture
def store() -> InMemoryRunStore:
    return InMemoryRunStore()


@pytest.fixture
def engine(handlers, store) -> ExecutionEngine:
    return ExecutionEngine(handlers, store)


@pytest.fixture
def service(settings, timers, sleep, notifications, emails, tasks) -> WorkflowService:
    return create_workflow_service(
        settings,
        timer_backend=timers,
        sleep=sleep,
        notification_sender=notifications,
        email_sender=emails,
        task_creator=tasks,
    )


# =============================================================================
# Sample definitions
# =============================================================================


def _action(action_id: str, action_type: ActionType, **config: Any) -> ActionDefinition:
    return ActionDefinition(id=action_id, type=action_type, name=action_id, config=config)


@pytest.fixture
def make_definition() -> Callable[..., WorkflowDefinition]:
    """Factory for workflow definitions.

    With no arguments: a manual workflow with a single notification action.
    """

    def _make(
        name: str = "Sample workflow",
        *,
        trigger: TriggerType = TriggerType.MANUAL,
        schedule: str | None = None,
        event: str | None = None,
        enabled: bool = True,
        actions: list[ActionDefinition] | None = None,
        id: str | None = None,
    ) -> WorkflowDefinition:
        if actions is None:
            actions = [_action("notify", ActionType.NOTIFICATION, message="hi", recipients=["ops"])]
        return WorkflowDefinition(
            id=id,
            name=name,
            enabled=enabled,
            trigger=WorkflowTrigger(type=trigger, schedule=schedule, event=event),
            actions=actions,
        )

    return _make


@pytest.fixture
def action() -> Callable[..., ActionDefinition]:
    """``action("a1", ActionType.WAIT, duration=1)``"""
    return _action
