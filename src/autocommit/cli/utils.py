"""
CLI utility helpers: output formatting and connection management.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from autocommit.core.errors import AutocommitError
from autocommit.core.settings import AutocommitSettings, get_settings
from autocommit.core.sqlite_conn import SqliteConnection

console = Console()
err_console = Console(stderr=True)


# ── Connection helper ────────────────────────────────────────────────────


def make_context(database: str | None = None) -> tuple[AutocommitSettings, SqliteConnection]:
    """Load settings and open the database with the schema applied.

    ``--database`` overrides ``AUTOCOMMIT_DATABASE_PATH``.
    """
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_path": database})
    conn = SqliteConnection(settings.database_path)
    conn.apply_schema()
    return settings, conn


# ── Output helpers ───────────────────────────────────────────────────────


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, frozenset | set):
        return sorted(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(v) for v in value]
    return value


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / dict to a JSON-friendly dict."""
    if hasattr(obj, "to_dict"):
        return _plain(obj.to_dict())
    if is_dataclass(obj) and not isinstance(obj, type):
        return _plain(asdict(obj))
    if isinstance(obj, dict):
        return _plain(obj)
    return {"value": str(obj)}


def fail(message: str, *, code: str = "ERROR") -> None:
    """Print an error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({code}): {message}")
    raise typer.Exit(code=1)


def fail_from(error: AutocommitError) -> None:
    fail(error.message, code=type(error).__name__)


def output_item(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render one object as key-value pairs (or JSON)."""
    payload = _to_dict(data)
    if as_json:
        console.print_json(json.dumps(payload, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in payload.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")


def output_rows(
    rows: list[dict[str, Any]],
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render a list of flat dicts as a Rich table (or JSON)."""
    rows = [_plain(r) for r in rows]
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("" if v is None else str(v) for v in row.values()))
    console.print(table)
