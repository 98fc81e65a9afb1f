"""SQLite connection helper for the durable definition and run stores."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from actionflow.core.logging import get_logger

logger = get_logger(__name__)


def open_database(path: str | None = None) -> sqlite3.Connection:
    """Open (and create if needed) the actionflow SQLite database.

    ``None`` or ``":memory:"`` gives a private in-memory database. The
    connection may be shared across threads; the stores serialise access
    with their own locks.
    """
    target = path or ":memory:"
    if target != ":memory:":
        Path(target).expanduser().parent.mkdir(parents=True, exist_ok=True)
        target = str(Path(target).expanduser())

    conn = sqlite3.connect(target, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    logger.debug("database.opened", path=target)
    return conn
