"""Tests for SQL dialect helpers."""

import pytest

from autocommit.core.dialect import PostgreSQLDialect, SQLiteDialect, get_dialect


def test_sqlite_placeholders():
    dialect = SQLiteDialect()
    assert dialect.placeholders(3) == "?, ?, ?"
    assert dialect.insert_or_ignore("rule_locks", ["rule_id", "locked_by"]) == (
        "INSERT OR IGNORE INTO rule_locks (rule_id, locked_by) VALUES (?, ?)"
    )


def test_postgres_insert_or_ignore():
    sql = PostgreSQLDialect().insert_or_ignore("rule_locks", ["rule_id"])
    assert sql == "INSERT INTO rule_locks (rule_id) VALUES (%s) ON CONFLICT DO NOTHING"


@pytest.mark.parametrize("name,expected", [("sqlite", "sqlite"), ("Postgres", "postgresql")])
def test_get_dialect(name, expected):
    assert get_dialect(name).name == expected


def test_unknown_dialect():
    with pytest.raises(ValueError):
        get_dialect("oracle")
