"""SQL dialect abstraction for the rule and attempt repositories.

Repositories build SQL with ``Dialect`` methods (placeholders, insert-or-
ignore) instead of hard-coding driver syntax, so the lock and attempt
tables work on SQLite and PostgreSQL alike.

Example:
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.insert_or_ignore("rule_locks", ["rule_id", "locked_by"])
    'INSERT OR IGNORE INTO rule_locks (rule_id, locked_by) VALUES (?, ?)'
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL fragment generator for one database backend."""

    @property
    def name(self) -> str:
        """Short dialect identifier (``sqlite``, ``postgresql``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Return the placeholder for the 0-based parameter ``index``."""
        ...

    def placeholders(self, count: int) -> str:
        """Return ``count`` comma-separated placeholders."""
        ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """INSERT that silently does nothing on a key conflict."""
        ...


class SQLiteDialect:
    """SQLite dialect, ``?`` placeholders."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT OR IGNORE INTO {table} ({cols}) VALUES ({ph})"


class PostgreSQLDialect:
    """PostgreSQL dialect, ``%s`` placeholders (psycopg2 style)."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT INTO {table} ({cols}) VALUES ({ph}) ON CONFLICT DO NOTHING"


def get_dialect(name: str) -> Dialect:
    """Return the dialect registered under ``name``."""
    dialects: dict[str, Dialect] = {
        "sqlite": SQLiteDialect(),
        "postgresql": PostgreSQLDialect(),
        "postgres": PostgreSQLDialect(),
    }
    try:
        return dialects[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown SQL dialect: {name}") from None


__all__ = ["Dialect", "SQLiteDialect", "PostgreSQLDialect", "get_dialect"]
