"""Run recorder - append-only run state and log trail.

Manifesto:
    The run record is the user-visible audit trail of one execution. It is
    written in strict chronological order by exactly one writer (the engine)
    and is frozen the moment it reaches a terminal status: the closing
    system log and the terminal transition happen together.

Architecture:
    ::

        ExecutionEngine
              │
              ▼
        RunRecorder(run, store, clock)
          ├── open(name)             → "Workflow '<name>' started"
          ├── action_succeeded(...)  → success log + output payload
          ├── action_failed(...)     → error log
          ├── complete()             → "Workflow completed successfully"
          └── fail(message)          → "Workflow failed: <message>"
              │
              ▼
        RunStore (InMemoryRunStore | SQLiteRunStore)
          create / append_log / finish / get / list_for_workflow / count

Tags:
    actionflow, orchestration, run-history, audit-log, sqlite

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from actionflow.core.errors import StorageError
from actionflow.core.logging import get_logger

from .models import (
    SYSTEM_SOURCE,
    LogStatus,
    RunStatus,
    TriggerType,
    WorkflowLog,
    WorkflowRun,
    parse_datetime,
    utcnow,
)

logger = get_logger(__name__)

Clock = Callable[[], datetime]


# =============================================================================
# STORES
# =============================================================================


@runtime_checkable
class RunStore(Protocol):
    """Durable run history."""

    def create(self, run: WorkflowRun) -> None:
        ...

    def append_log(self, run_id: str, log: WorkflowLog) -> None:
        ...

    def finish(self, run: WorkflowRun) -> None:
        """Persist the terminal status, ``completed_at`` and ``error`` of ``run``."""
        ...

    def get(self, run_id: str) -> WorkflowRun | None:
        ...

    def list_for_workflow(self, workflow_id: str, limit: int = 10) -> list[WorkflowRun]:
        """Most recent first; empty list (never None) when there are none."""
        ...

    def count(self, workflow_id: str | None = None) -> int:
        ...


class InMemoryRunStore:
    """Process-local run history.

    Stores its own snapshot of every run so callers holding the engine's
    live handle cannot rewrite history.
    """

    def __init__(self) -> None:
        self._runs: dict[str, WorkflowRun] = {}
        self._sequence: dict[str, int] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def create(self, run: WorkflowRun) -> None:
        snapshot = WorkflowRun.from_dict(run.to_dict())
        with self._lock:
            if run.id in self._runs:
                raise StorageError(f"Run already recorded: {run.id}")
            self._counter += 1
            self._runs[run.id] = snapshot
            self._sequence[run.id] = self._counter

    def append_log(self, run_id: str, log: WorkflowLog) -> None:
        with self._lock:
            stored = self._runs.get(run_id)
            if stored is None:
                raise StorageError(f"Unknown run: {run_id}")
            stored.append_log(log)

    def finish(self, run: WorkflowRun) -> None:
        with self._lock:
            stored = self._runs.get(run.id)
            if stored is None:
                raise StorageError(f"Unknown run: {run.id}")
            stored.status = run.status
            stored.completed_at = run.completed_at
            stored.error = run.error

    def get(self, run_id: str) -> WorkflowRun | None:
        with self._lock:
            stored = self._runs.get(run_id)
            return WorkflowRun.from_dict(stored.to_dict()) if stored else None

    def list_for_workflow(self, workflow_id: str, limit: int = 10) -> list[WorkflowRun]:
        if limit <= 0:
            return []
        with self._lock:
            matching = [run for run in self._runs.values() if run.workflow_id == workflow_id]
            matching.sort(key=lambda r: (r.started_at, self._sequence[r.id]), reverse=True)
            return [WorkflowRun.from_dict(run.to_dict()) for run in matching[:limit]]

    def count(self, workflow_id: str | None = None) -> int:
        with self._lock:
            if workflow_id is None:
                return len(self._runs)
            return sum(1 for run in self._runs.values() if run.workflow_id == workflow_id)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS workflow_runs (
    id            TEXT PRIMARY KEY,
    workflow_id   TEXT NOT NULL,
    workflow_name TEXT,
    status        TEXT NOT NULL,
    trigger_type  TEXT NOT NULL,
    started_at    TEXT NOT NULL,
    completed_at  TEXT,
    error         TEXT
);
CREATE INDEX IF NOT EXISTS idx_workflow_runs_workflow
    ON workflow_runs (workflow_id, started_at);

CREATE TABLE IF NOT EXISTS workflow_run_logs (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id     TEXT NOT NULL REFERENCES workflow_runs (id) ON DELETE CASCADE,
    timestamp  TEXT NOT NULL,
    action_id  TEXT NOT NULL,
    status     TEXT NOT NULL,
    message    TEXT NOT NULL,
    data       TEXT
);
CREATE INDEX IF NOT EXISTS idx_workflow_run_logs_run
    ON workflow_run_logs (run_id, id);
"""


class SQLiteRunStore:
    """SQLite-backed run history (``workflow_runs`` + ``workflow_run_logs``)."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self._lock = threading.Lock()
        with self._lock:
            self.conn.executescript(_SCHEMA)
            self.conn.commit()

    def _write(self, sql: str, params: tuple[Any, ...]) -> None:
        try:
            with self._lock:
                self.conn.execute(sql, params)
                self.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Run store write failed: {exc}", cause=exc) from exc

    def create(self, run: WorkflowRun) -> None:
        self._write(
            """
            INSERT INTO workflow_runs (
                id, workflow_id, workflow_name, status, trigger_type,
                started_at, completed_at, error
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run.id,
                run.workflow_id,
                run.workflow_name,
                run.status.value,
                run.trigger.value,
                run.started_at.isoformat(),
                run.completed_at.isoformat() if run.completed_at else None,
                run.error,
            ),
        )
        for log in run.logs:
            self.append_log(run.id, log)

    def append_log(self, run_id: str, log: WorkflowLog) -> None:
        self._write(
            """
            INSERT INTO workflow_run_logs (run_id, timestamp, action_id, status, message, data)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                run_id,
                log.timestamp.isoformat(),
                log.action_id,
                log.status.value,
                log.message,
                json.dumps(log.data, default=str) if log.data is not None else None,
            ),
        )

    def finish(self, run: WorkflowRun) -> None:
        self._write(
            "UPDATE workflow_runs SET status = ?, completed_at = ?, error = ? WHERE id = ?",
            (
                run.status.value,
                run.completed_at.isoformat() if run.completed_at else None,
                run.error,
                run.id,
            ),
        )

    def _load_logs(self, run_id: str) -> list[WorkflowLog]:
        rows = self.conn.execute(
            """
            SELECT timestamp, action_id, status, message, data
              FROM workflow_run_logs
             WHERE run_id = ?
             ORDER BY id
            """,
            (run_id,),
        ).fetchall()
        return [
            WorkflowLog(
                timestamp=parse_datetime(row["timestamp"]),
                action_id=row["action_id"],
                status=LogStatus(row["status"]),
                message=row["message"],
                data=json.loads(row["data"]) if row["data"] is not None else None,
            )
            for row in rows
        ]

    def _hydrate(self, row: sqlite3.Row) -> WorkflowRun:
        return WorkflowRun(
            id=row["id"],
            workflow_id=row["workflow_id"],
            workflow_name=row["workflow_name"],
            status=RunStatus(row["status"]),
            trigger=TriggerType(row["trigger_type"]),
            started_at=parse_datetime(row["started_at"]),
            completed_at=parse_datetime(row["completed_at"]),
            error=row["error"],
            logs=self._load_logs(row["id"]),
        )

    def get(self, run_id: str) -> WorkflowRun | None:
        with self._lock:
            row = self.conn.execute("SELECT * FROM workflow_runs WHERE id = ?", (run_id,)).fetchone()
            return self._hydrate(row) if row else None

    def list_for_workflow(self, workflow_id: str, limit: int = 10) -> list[WorkflowRun]:
        if limit <= 0:
            return []
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT * FROM workflow_runs
                 WHERE workflow_id = ?
                 ORDER BY started_at DESC, rowid DESC
                 LIMIT ?
                """,
                (workflow_id, limit),
            ).fetchall()
            return [self._hydrate(row) for row in rows]

    def count(self, workflow_id: str | None = None) -> int:
        with self._lock:
            if workflow_id is None:
                row = self.conn.execute("SELECT COUNT(*) FROM workflow_runs").fetchone()
            else:
                row = self.conn.execute(
                    "SELECT COUNT(*) FROM workflow_runs WHERE workflow_id = ?",
                    (workflow_id,),
                ).fetchone()
        return int(row[0])


# =============================================================================
# RECORDER
# =============================================================================


class RunRecorder:
    """Single writer of one run's state and log trail.

    Every entry is applied to the live run handle first (so fire-and-forget
    callers observe progress) and then persisted to the store.
    """

    def __init__(self, run: WorkflowRun, store: RunStore, clock: Clock | None = None) -> None:
        self.run = run
        self._store = store
        self._clock = clock or utcnow

    def _now(self) -> datetime:
        # log timestamps never go backwards, whatever the clock does
        now = self._clock()
        if self.run.logs and now < self.run.logs[-1].timestamp:
            return self.run.logs[-1].timestamp
        return max(now, self.run.started_at)

    def _append(
        self,
        action_id: str,
        status: LogStatus,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> WorkflowLog:
        log = WorkflowLog(
            timestamp=self._now(),
            action_id=action_id,
            status=status,
            message=message,
            data=data,
        )
        self.run.append_log(log)
        self._store.append_log(self.run.id, log)
        return log

    def open(self, workflow_name: str) -> None:
        """Persist the new run and its start log."""
        self._store.create(self.run)
        self._append(SYSTEM_SOURCE, LogStatus.SUCCESS, f"Workflow '{workflow_name}' started")

    def action_succeeded(
        self, action_id: str, message: str, data: dict[str, Any] | None = None
    ) -> WorkflowLog:
        return self._append(action_id, LogStatus.SUCCESS, message, data)

    def action_failed(
        self, action_id: str, message: str, data: dict[str, Any] | None = None
    ) -> WorkflowLog:
        return self._append(action_id, LogStatus.ERROR, message, data)

    def complete(self) -> None:
        self._close(RunStatus.COMPLETED, LogStatus.SUCCESS, "Workflow completed successfully")

    def fail(self, error: str) -> None:
        self._close(RunStatus.FAILED, LogStatus.ERROR, f"Workflow failed: {error}", error=error)

    def persist_final(self) -> None:
        """Write the terminal state again (after the store refused it once)."""
        self._store.finish(self.run)

    def _close(
        self,
        status: RunStatus,
        log_status: LogStatus,
        message: str,
        error: str | None = None,
    ) -> None:
        now = self._now()
        final_log = WorkflowLog(
            timestamp=now,
            action_id=SYSTEM_SOURCE,
            status=log_status,
            message=message,
        )
        self.run.finish(status, completed_at=now, final_log=final_log, error=error)
        self._store.append_log(self.run.id, final_log)
        self._store.finish(self.run)
