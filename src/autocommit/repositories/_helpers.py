"""Shared helpers for the autocommit repositories.

Timestamps are stored as ISO-8601 UTC strings with a fixed microsecond
precision, so lexical comparison in SQL (``executed_at >= ?``) agrees
with chronological order.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


def _iso(value: datetime | None) -> str | None:
    """Serialize a datetime as a sortable UTC ISO string."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _parse(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into an aware UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _now() -> datetime:
    return datetime.now(UTC)


def _json_list(value: str | None) -> list[Any]:
    if not value:
        return []
    loaded = json.loads(value)
    return list(loaded) if isinstance(loaded, list) else []


def _row_dict(row: Any, columns: list[str]) -> dict[str, Any]:
    """Map a fetched row onto column names (works for tuples and sqlite3.Row)."""
    return dict(zip(columns, tuple(row), strict=False))
