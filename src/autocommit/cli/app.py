"""
Root Typer application for the autocommit CLI.
"""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime

import typer
from typer import Typer

from autocommit.cli.utils import console, fail, make_context, output_item, output_rows

app = Typer(
    name="autocommit",
    help="autocommit: scheduled commits for GitHub automation rules.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from autocommit import __version__

        typer.echo(f"autocommit {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """autocommit CLI: manage rules, credentials and the scheduler."""


# ── Scheduler commands ───────────────────────────────────────────────────


def _build_scheduler(database: str | None, eager: bool):
    from autocommit.core.logging import configure_logging
    from autocommit.core.settings import PacingMode
    from autocommit.scheduling import create_scheduler

    settings, conn = make_context(database)
    if eager:
        settings = settings.model_copy(update={"pacing_mode": PacingMode.EAGER})
    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return settings, create_scheduler(conn, settings)


@app.command()
def run(
    database: str | None = typer.Option(None, "--database", "-d"),
    eager: bool = typer.Option(False, "--eager", help="Commit on every eligible tick"),
) -> None:
    """Run the scheduler until interrupted."""
    settings, scheduler = _build_scheduler(database, eager)
    scheduler.start()
    console.print(
        f"[green]Scheduler running[/green] (every {settings.tick_interval_seconds:g}s). Ctrl-C to stop."
    )
    try:
        while scheduler.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()


@app.command()
def tick(
    now: str | None = typer.Option(None, "--now", help="Evaluate at this ISO instant (default: now)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    eager: bool = typer.Option(False, "--eager", help="Commit on every eligible tick"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run a single tick immediately ("trigger now")."""
    at = None
    if now:
        try:
            at = datetime.fromisoformat(now.replace("Z", "+00:00"))
        except ValueError:
            fail(f"--now is not an ISO timestamp: {now}", code="INVALID")
            return
        if at.tzinfo is None:
            at = at.replace(tzinfo=UTC)

    _, scheduler = _build_scheduler(database, eager)
    report = asyncio.run(scheduler.tick(at))
    if json_out:
        output_item(report, as_json=True)
        return
    output_rows(report.to_dict()["results"], title="Tick Results")
    output_item({"skipped": report.skipped, "error": report.error, **report.counts}, title="Summary")


@app.command()
def logs(
    rule_id: str = typer.Argument(..., help="Rule ID"),
    limit: int = typer.Option(20, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the most recent commit attempts of a rule."""
    from autocommit.repositories import RunLogRepository

    _, conn = make_context(database)
    attempts = RunLogRepository(conn).list_for_rule(rule_id, limit)
    rows = [
        {
            "id": a.id,
            "status": a.status,
            "scheduled_at": a.scheduled_at,
            "executed_at": a.executed_at,
            "timezone": a.timezone,
            "day": a.day_of_week,
            "message": a.commit_message,
            "sha": a.commit_sha,
            "error_code": a.error_code,
            "error": a.error_message,
        }
        for a in attempts
    ]
    output_rows(rows, as_json=json_out, title=f"Attempts: {rule_id}")


# ── Sub-command registration ─────────────────────────────────────────────

from autocommit.cli.credentials import app as credentials_app  # noqa: E402
from autocommit.cli.db import app as db_app  # noqa: E402
from autocommit.cli.rules import app as rules_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(rules_app, name="rules", help="Automation rule management.")
app.add_typer(credentials_app, name="credentials", help="Owner access tokens.")
