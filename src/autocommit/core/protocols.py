"""
Canonical protocol definitions for autocommit.

Every module that needs a database connection imports ``Connection`` from
here. Repositories depend on this shape, not on ``sqlite3`` or a
PostgreSQL driver, so the same repository code runs against an in-memory
SQLite database in tests and a server database in production.

Architecture:
    ::

        Connection Protocol:
        ┌────────────────────────────────────────────────────────┐
        │ execute(sql, params)   → Execute single statement      │
        │ executemany(sql, list) → Execute for multiple params   │
        │ fetchone()             → Get one result row            │
        │ fetchall()             → Get all result rows           │
        │ commit()               → Commit transaction            │
        │ rollback()             → Rollback transaction          │
        └────────────────────────────────────────────────────────┘

Tags:
    protocol, connection, database, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """Minimal synchronous connection interface used by the repositories.

    ``execute`` returns a cursor-like object exposing ``rowcount``,
    ``fetchone()`` and ``fetchall()``.
    """

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute SQL statement with optional parameters."""
        ...

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        """Execute SQL statement for multiple parameter sets."""
        ...

    def fetchone(self) -> Any:
        """Fetch one row from last query."""
        ...

    def fetchall(self) -> list:
        """Fetch all rows from last query."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


__all__ = ["Connection"]
