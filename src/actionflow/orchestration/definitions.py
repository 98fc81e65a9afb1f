"""Definition registry - durable CRUD of workflow definitions.

The registry holds no timer state. Callers that change ``enabled`` or the
trigger are responsible for reconciling the scheduler (``WorkflowService``
does this).

Tags:
    actionflow, orchestration, repository, sqlite, crud

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from actionflow.core.errors import DefinitionError, StorageError, WorkflowNotFoundError
from actionflow.core.logging import get_logger

from .models import TriggerType, WorkflowDefinition, new_id, utcnow

logger = get_logger(__name__)

Clock = Callable[[], datetime]


@runtime_checkable
class DefinitionRepository(Protocol):
    """Storage contract for workflow definitions."""

    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Persist a new definition; assigns ``id`` if absent and stamps
        ``created_at``/``updated_at``. Duplicate ids raise DefinitionError."""
        ...

    def get(self, workflow_id: str) -> WorkflowDefinition:
        """Raises WorkflowNotFoundError for an unknown id."""
        ...

    def list(self, *, trigger_type: TriggerType | None = None) -> list[WorkflowDefinition]:
        ...

    def update(self, workflow_id: str, updates: Mapping[str, Any]) -> WorkflowDefinition:
        """Partial merge; bumps ``updated_at``."""
        ...

    def delete(self, workflow_id: str) -> bool:
        ...


def _stamp_new(definition: WorkflowDefinition, clock: Clock) -> WorkflowDefinition:
    stored = WorkflowDefinition.from_dict(definition.to_dict())
    stored.id = stored.id or new_id()
    now = clock()
    stored.created_at = now
    stored.updated_at = now
    return stored


def _copy(definition: WorkflowDefinition) -> WorkflowDefinition:
    return WorkflowDefinition.from_dict(definition.to_dict())


class InMemoryDefinitionRepository:
    """Process-local definition store (default when no database is configured)."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utcnow
        self._items: dict[str, WorkflowDefinition] = {}
        self._lock = threading.Lock()

    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        stored = _stamp_new(definition, self._clock)
        with self._lock:
            if stored.id in self._items:
                raise DefinitionError(f"Workflow already exists: {stored.id}", field="id")
            self._items[stored.id] = stored
        logger.debug("definition.created", workflow_id=stored.id)
        return _copy(stored)

    def get(self, workflow_id: str) -> WorkflowDefinition:
        with self._lock:
            stored = self._items.get(workflow_id)
        if stored is None:
            raise WorkflowNotFoundError(workflow_id)
        return _copy(stored)

    def list(self, *, trigger_type: TriggerType | None = None) -> list[WorkflowDefinition]:
        with self._lock:
            items = list(self._items.values())
        return [
            _copy(item)
            for item in items
            if trigger_type is None or item.trigger.type == trigger_type
        ]

    def update(self, workflow_id: str, updates: Mapping[str, Any]) -> WorkflowDefinition:
        with self._lock:
            current = self._items.get(workflow_id)
            if current is None:
                raise WorkflowNotFoundError(workflow_id)
            merged = current.merged(updates)
            merged.updated_at = max(self._clock(), current.created_at)
            self._items[workflow_id] = merged
        logger.debug("definition.updated", workflow_id=workflow_id, fields=sorted(updates))
        return _copy(merged)

    def delete(self, workflow_id: str) -> bool:
        with self._lock:
            removed = self._items.pop(workflow_id, None) is not None
        if removed:
            logger.debug("definition.deleted", workflow_id=workflow_id)
        return removed

    def __len__(self) -> int:
        return len(self._items)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS workflow_definitions (
    id           TEXT PRIMARY KEY,
    name         TEXT NOT NULL,
    enabled      INTEGER NOT NULL DEFAULT 1,
    trigger_type TEXT NOT NULL,
    event_name   TEXT,
    document     TEXT NOT NULL,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_workflow_definitions_trigger
    ON workflow_definitions (trigger_type, enabled);
CREATE INDEX IF NOT EXISTS idx_workflow_definitions_event
    ON workflow_definitions (event_name);
"""


class SQLiteDefinitionRepository:
    """SQLite-backed definition store.

    The full definition is kept as a JSON document; ``enabled``,
    ``trigger_type`` and ``event_name`` are duplicated into columns for
    filtering.

    Example:
        >>> repo = SQLiteDefinitionRepository(open_database("actionflow.db"))
        >>> saved = repo.create(WorkflowDefinition(name="nightly"))
        >>> repo.get(saved.id).name
        'nightly'
    """

    def __init__(self, conn: sqlite3.Connection, clock: Clock | None = None) -> None:
        self.conn = conn
        self._clock = clock or utcnow
        self._lock = threading.Lock()
        with self._lock:
            self.conn.executescript(_SCHEMA)
            self.conn.commit()

    @staticmethod
    def _row_values(definition: WorkflowDefinition) -> tuple[Any, ...]:
        return (
            definition.name,
            1 if definition.enabled else 0,
            definition.trigger.type.value,
            definition.trigger.event,
            json.dumps(definition.to_dict()),
            definition.created_at.isoformat(),
            definition.updated_at.isoformat(),
        )

    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        stored = _stamp_new(definition, self._clock)
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO workflow_definitions (
                        id, name, enabled, trigger_type, event_name,
                        document, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (stored.id, *self._row_values(stored)),
                )
                self.conn.commit()
        except sqlite3.IntegrityError as exc:
            raise DefinitionError(
                f"Workflow already exists: {stored.id}", field="id", cause=exc
            ) from exc
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to create workflow: {exc}", cause=exc) from exc
        logger.debug("definition.created", workflow_id=stored.id)
        return stored

    def get(self, workflow_id: str) -> WorkflowDefinition:
        with self._lock:
            row = self.conn.execute(
                "SELECT document FROM workflow_definitions WHERE id = ?",
                (workflow_id,),
            ).fetchone()
        if row is None:
            raise WorkflowNotFoundError(workflow_id)
        return WorkflowDefinition.from_dict(json.loads(row["document"]))

    def list(self, *, trigger_type: TriggerType | None = None) -> list[WorkflowDefinition]:
        query = "SELECT document FROM workflow_definitions"
        params: tuple[Any, ...] = ()
        if trigger_type is not None:
            query += " WHERE trigger_type = ?"
            params = (trigger_type.value,)
        query += " ORDER BY created_at, rowid"
        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        return [WorkflowDefinition.from_dict(json.loads(row["document"])) for row in rows]

    def update(self, workflow_id: str, updates: Mapping[str, Any]) -> WorkflowDefinition:
        current = self.get(workflow_id)
        merged = current.merged(updates)
        merged.updated_at = max(self._clock(), current.created_at)
        try:
            with self._lock:
                self.conn.execute(
                    """
                    UPDATE workflow_definitions
                       SET name = ?, enabled = ?, trigger_type = ?, event_name = ?,
                           document = ?, created_at = ?, updated_at = ?
                     WHERE id = ?
                    """,
                    (*self._row_values(merged), workflow_id),
                )
                self.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to update workflow: {exc}", cause=exc) from exc
        logger.debug("definition.updated", workflow_id=workflow_id, fields=sorted(updates))
        return merged

    def delete(self, workflow_id: str) -> bool:
        with self._lock:
            cursor = self.conn.execute(
                "DELETE FROM workflow_definitions WHERE id = ?",
                (workflow_id,),
            )
            self.conn.commit()
        return cursor.rowcount > 0
