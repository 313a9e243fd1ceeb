"""SQLite connection adapter.

Wraps a raw :class:`sqlite3.Connection` to satisfy the
:class:`~autocommit.core.protocols.Connection` protocol, and applies the
bundled schema.

Usage::

    from autocommit.core.sqlite_conn import SqliteConnection

    conn = SqliteConnection(":memory:")
    conn.apply_schema()
    conn.execute("SELECT COUNT(*) FROM automation_rules")
    row = conn.fetchone()
"""

from __future__ import annotations

import sqlite3
from importlib import resources
from pathlib import Path
from typing import Any


def load_schema_sql() -> str:
    """Return the concatenated DDL shipped in ``autocommit/schema``."""
    schema_dir = resources.files("autocommit") / "schema"
    parts = [
        entry.read_text(encoding="utf-8")
        for entry in sorted(schema_dir.iterdir(), key=lambda e: e.name)
        if entry.name.endswith(".sql")
    ]
    return "\n".join(parts)


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol.

    ``execute`` returns a fresh cursor per statement, so a repository
    holding the cursor of one query is not disturbed by a concurrent
    rule coroutine issuing another. ``fetchone`` / ``fetchall`` read from
    the most recent cursor.
    """

    def __init__(self, path: str = ":memory:", *, row_factory: Any = sqlite3.Row) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._last: sqlite3.Cursor | None = None

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._last = self._conn.execute(sql, params)
        return self._last

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._last = self._conn.executemany(sql, params)
        return self._last

    def fetchone(self) -> Any:
        return self._last.fetchone() if self._last else None

    def fetchall(self) -> list:
        return self._last.fetchall() if self._last else []

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- convenience -------------------------------------------------------

    def apply_schema(self) -> None:
        """Create all tables and indexes (idempotent)."""
        self._conn.executescript(load_schema_sql())
        self._conn.commit()

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"
