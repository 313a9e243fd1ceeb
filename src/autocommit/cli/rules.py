"""
CLI: ``autocommit rules``: automation rule commands.
"""

from __future__ import annotations

import typer

from autocommit.cli.utils import fail, fail_from, make_context, output_item, output_rows
from autocommit.core.errors import RuleValidationError
from autocommit.models import AutomationRule, RuleStatus
from autocommit.repositories import RuleCreate, RuleRepository, RunLogRepository

app = typer.Typer(no_args_is_help=True)

_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def _parse_days(value: str) -> list[int]:
    """Accept ``1,2,3`` or ``mon,tue`` (0/sun = Sunday)."""
    days = []
    for part in value.split(","):
        part = part.strip().lower()
        if not part:
            continue
        if part[:3] in _DAY_NAMES:
            days.append(_DAY_NAMES.index(part[:3]))
        elif part.isdigit():
            days.append(int(part))
        else:
            raise typer.BadParameter(f"unknown day {part!r}")
    return days


def _summary(rule: AutomationRule) -> dict:
    return {
        "id": rule.id,
        "owner": rule.owner_id,
        "repository": rule.full_repo_name,
        "file": rule.target_file,
        "window": f"{rule.time_range.start_time}-{rule.time_range.end_time}",
        "days": ",".join(_DAY_NAMES[d] for d in sorted(rule.days_of_week)),
        "timezone": rule.timezone,
        "max/day": rule.max_commits_per_day,
        "status": rule.status.value,
        "total": rule.statistics.total_commits,
        "reauth": "yes" if rule.needs_reauth else "",
    }


@app.command("list")
def list_rules(
    owner: str | None = typer.Option(None, "--owner", help="Only rules of this owner"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List automation rules."""
    _, conn = make_context(database)
    rules = RuleRepository(conn).list_all(owner)
    output_rows([_summary(r) for r in rules], as_json=json_out, title="Automation Rules")


@app.command("show")
def show_rule(
    rule_id: str = typer.Argument(..., help="Rule ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show rule details, statistics and attempt counts."""
    _, conn = make_context(database)
    rule = RuleRepository(conn).get(rule_id)
    if rule is None:
        fail(f"Rule not found: {rule_id}", code="NOT_FOUND")
        return
    detail = _summary(rule)
    detail.update(
        {
            "phrases": rule.commit_phrases,
            "private": rule.is_private,
            "commits_this_week": rule.statistics.commits_this_week,
            "commits_this_month": rule.statistics.commits_this_month,
            "last_commit_at": rule.last_commit.timestamp if rule.last_commit else None,
            "last_commit_message": rule.last_commit.message if rule.last_commit else None,
            "last_commit_sha": rule.last_commit.sha if rule.last_commit else None,
            "reauth_reason": rule.reauth_reason,
            "attempts": RunLogRepository(conn).count_by_status(rule_id),
        }
    )
    output_item(detail, as_json=json_out, title=f"Rule: {rule_id}")


@app.command("add")
def add_rule(
    owner: str = typer.Option(..., "--owner", help="Owner (account) id"),
    repository: str = typer.Option(..., "--repo", help="owner/name of the target repository"),
    phrases: list[str] = typer.Option(..., "--phrase", "-p", help="Commit phrase (repeatable, 1-5)"),
    start: str = typer.Option("09:00", "--start", help="Window start, HH:MM local time"),
    end: str = typer.Option("17:00", "--end", help="Window end, HH:MM local time"),
    days: str = typer.Option("1,2,3,4,5", "--days", help="Days, e.g. 1,2,3 or mon,tue (0 = Sunday)"),
    max_per_day: int = typer.Option(3, "--max-per-day", help="Daily commit cap (1-50)"),
    timezone: str = typer.Option("UTC", "--timezone", "--tz", help="IANA time zone"),
    target_file: str = typer.Option("README.md", "--file", help="File to append to"),
    private: bool = typer.Option(False, "--private/--public"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create a new automation rule."""
    repo_owner, _, repo_name = repository.partition("/")
    if not repo_name:
        fail("--repo must be in owner/name form", code="INVALID")
        return

    _, conn = make_context(database)
    spec = RuleCreate(
        owner_id=owner,
        repo_owner=repo_owner,
        repo_name=repo_name,
        max_commits_per_day=max_per_day,
        start_time=start,
        end_time=end,
        days_of_week=_parse_days(days),
        commit_phrases=list(phrases),
        target_file=target_file,
        is_private=private,
        timezone=timezone,
    )
    try:
        rule = RuleRepository(conn).create(spec)
    except RuleValidationError as e:
        fail_from(e)
        return
    output_item(_summary(rule), as_json=json_out, title="Rule Created")


@app.command("status")
def set_status(
    rule_id: str = typer.Argument(..., help="Rule ID"),
    status: RuleStatus = typer.Argument(..., help="active, paused or stopped"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Activate, pause or stop a rule."""
    _, conn = make_context(database)
    if not RuleRepository(conn).set_status(rule_id, status):
        fail(f"Rule not found: {rule_id}", code="NOT_FOUND")
        return
    output_item({"id": rule_id, "status": status.value}, as_json=json_out, title="Rule Updated")
