"""
CLI: ``autocommit db``: database management commands.
"""

from __future__ import annotations

import typer

from autocommit.cli.utils import make_context, output_item, output_rows

app = typer.Typer(no_args_is_help=True)

_TABLES = ("automation_rules", "commit_attempts", "owner_credentials", "rule_locks")


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Initialise database schema (create tables)."""
    settings, conn = make_context(database)
    conn.close()
    output_item(
        {"database": settings.database_path, "tables": list(_TABLES)},
        as_json=json_out,
        title="Database Init",
    )


@app.command()
def tables(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show row counts for all managed tables."""
    _, conn = make_context(database)
    rows = []
    for table in _TABLES:
        count = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        rows.append({"table": table, "rows": count})
    conn.close()
    output_rows(rows, as_json=json_out, title="Table Counts")
