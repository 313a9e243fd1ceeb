"""Rule repository - automation rule persistence and quota queries.

Manifesto:
    Rule definitions, their runtime statistics and the quota count are
    pure data operations. The scheduler asks the repository which rules
    may run and how many successes a rule has today; it never builds SQL.

Tags:
    repository, automation-rule, quota, statistics, CRUD

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  RULE REPOSITORY                                                              │
│                                                                               │
│  ┌────────────────────────────────────────────────────────────────────┐      │
│  │                        RuleRepository                              │      │
│  │                                                                    │      │
│  │   CRUD Operations:                                                 │      │
│  │   ├── create(spec) → AutomationRule                                │      │
│  │   ├── get(id) → AutomationRule | None                              │      │
│  │   ├── list_all(owner_id=None) → list[AutomationRule]               │      │
│  │   └── set_status(id, status) → bool                                │      │
│  │                                                                    │      │
│  │   Scheduling Operations:                                           │      │
│  │   ├── list_eligible_rules(now) → list[AutomationRule]              │      │
│  │   └── count_successful_today(rule_id, local_midnight_utc) → int    │      │
│  │                                                                    │      │
│  │   Post-commit Operations:                                          │      │
│  │   ├── increment_stats(rule_id)          (single UPDATE)            │      │
│  │   ├── update_last_commit(rule_id, last)                            │      │
│  │   └── flag_reauth / clear_reauth                                   │      │
│  │                                                                    │      │
│  │   Maintenance:                                                     │      │
│  │   ├── rollover_statistics(now) → int                               │      │
│  │   └── stop_all_for_owner(owner_id) → int                           │      │
│  └────────────────────────────────────────────────────────────────────┘      │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from autocommit.core.dialect import Dialect, SQLiteDialect
from autocommit.core.errors import RuleValidationError
from autocommit.core.logging import get_logger
from autocommit.core.protocols import Connection
from autocommit.models import (
    AutomationRule,
    CommitStatistics,
    LastCommit,
    RuleStatus,
    TimeRange,
    parse_hhmm,
)
from autocommit.repositories._helpers import _iso, _json_list, _now, _parse, _row_dict
from autocommit.repositories.run_log import OUTCOME_UNKNOWN_MESSAGE

logger = get_logger(__name__)

MAX_COMMITS_PER_DAY = 50
MAX_PHRASES = 5
MAX_PHRASE_LENGTH = 100

_RULE_COLUMNS = [
    "id",
    "owner_id",
    "repo_owner",
    "repo_name",
    "target_file",
    "is_private",
    "max_commits_per_day",
    "start_time",
    "end_time",
    "days_of_week",
    "timezone",
    "commit_phrases",
    "status",
    "last_commit_at",
    "last_commit_message",
    "last_commit_sha",
    "total_commits",
    "commits_this_week",
    "commits_this_month",
    "stats_last_reset",
    "needs_reauth",
    "reauth_reason",
    "created_at",
    "updated_at",
]
_SELECT = f"SELECT {', '.join(_RULE_COLUMNS)} FROM automation_rules"


# ---------------------------------------------------------------------------
# Create DTO
# ---------------------------------------------------------------------------


@dataclass
class RuleCreate:
    """DTO for creating a new automation rule."""

    owner_id: str
    repo_owner: str
    repo_name: str
    max_commits_per_day: int
    start_time: str
    end_time: str
    days_of_week: list[int]
    commit_phrases: list[str]
    target_file: str = "README.md"
    is_private: bool = False
    timezone: str = "UTC"
    status: RuleStatus = RuleStatus.ACTIVE
    id: str | None = None

    def validate(self) -> None:
        """Check the structural rule invariants.

        The time zone is deliberately not checked: an unknown zone is
        handled at evaluation time by falling back to UTC.

        Raises:
            RuleValidationError: On the first violated invariant.
        """
        for name in ("owner_id", "repo_owner", "repo_name", "target_file"):
            if not str(getattr(self, name) or "").strip():
                raise RuleValidationError(name, "must not be empty")

        if not 1 <= self.max_commits_per_day <= MAX_COMMITS_PER_DAY:
            raise RuleValidationError(
                "max_commits_per_day", f"must be between 1 and {MAX_COMMITS_PER_DAY}"
            )

        start = parse_hhmm(self.start_time, "start_time")
        end = parse_hhmm(self.end_time, "end_time")
        if start > end:
            raise RuleValidationError(
                "time_range", "start_time must not be after end_time (overnight windows are not supported)"
            )

        if not self.days_of_week:
            raise RuleValidationError("days_of_week", "at least one day is required")
        for day in self.days_of_week:
            if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
                raise RuleValidationError("days_of_week", f"invalid day {day!r}; expected 0 (Sun) .. 6 (Sat)")

        if not 1 <= len(self.commit_phrases) <= MAX_PHRASES:
            raise RuleValidationError("commit_phrases", f"between 1 and {MAX_PHRASES} phrases required")
        for phrase in self.commit_phrases:
            if not phrase or not phrase.strip():
                raise RuleValidationError("commit_phrases", "phrases must not be empty")
            if len(phrase) > MAX_PHRASE_LENGTH:
                raise RuleValidationError(
                    "commit_phrases", f"phrases must be at most {MAX_PHRASE_LENGTH} characters"
                )


# ---------------------------------------------------------------------------
# Repository Implementation
# ---------------------------------------------------------------------------


class RuleRepository:
    """Repository for automation rules.

    Example:
        >>> repo = RuleRepository(conn)
        >>> rule = repo.create(RuleCreate(
        ...     owner_id="u1", repo_owner="octo", repo_name="hello",
        ...     max_commits_per_day=3, start_time="09:00", end_time="17:00",
        ...     days_of_week=[1, 2, 3, 4, 5], commit_phrases=["Update notes"],
        ... ))
        >>> repo.count_successful_today(rule.id, midnight_utc)
        0
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def _ph(self, count: int) -> str:
        return self.dialect.placeholders(count)

    # === CRUD Operations ===

    def create(self, spec: RuleCreate) -> AutomationRule:
        """Validate and insert a new rule.

        Raises:
            RuleValidationError: If ``spec`` violates a rule invariant.
        """
        spec.validate()
        rule_id = spec.id or str(uuid4())
        now = _iso(_now())

        self.conn.execute(
            f"""
            INSERT INTO automation_rules (
                id, owner_id, repo_owner, repo_name, target_file, is_private,
                max_commits_per_day, start_time, end_time, days_of_week, timezone,
                commit_phrases, status, stats_last_reset, created_at, updated_at
            ) VALUES ({self._ph(16)})
            """,
            (
                rule_id,
                spec.owner_id,
                spec.repo_owner,
                spec.repo_name,
                spec.target_file,
                1 if spec.is_private else 0,
                spec.max_commits_per_day,
                spec.start_time,
                spec.end_time,
                json.dumps(sorted(set(spec.days_of_week))),
                spec.timezone or "UTC",
                json.dumps(list(spec.commit_phrases)),
                RuleStatus(spec.status).value,
                now,
                now,
                now,
            ),
        )
        self.conn.commit()
        logger.info("rule_created", rule_id=rule_id, repository=f"{spec.repo_owner}/{spec.repo_name}")
        return self.get(rule_id)  # type: ignore[return-value]

    def get(self, rule_id: str) -> AutomationRule | None:
        cursor = self.conn.execute(f"{_SELECT} WHERE id = {self._ph(1)}", (rule_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_rule(row)

    def list_all(self, owner_id: str | None = None) -> list[AutomationRule]:
        """List rules, optionally restricted to one owner."""
        if owner_id is None:
            cursor = self.conn.execute(f"{_SELECT} ORDER BY created_at")
        else:
            cursor = self.conn.execute(
                f"{_SELECT} WHERE owner_id = {self._ph(1)} ORDER BY created_at", (owner_id,)
            )
        return [self._row_to_rule(row) for row in cursor.fetchall()]

    def set_status(self, rule_id: str, status: RuleStatus | str) -> bool:
        cursor = self.conn.execute(
            f"UPDATE automation_rules SET status = {self._ph(1)}, updated_at = {self._ph(1)} "
            f"WHERE id = {self._ph(1)}",
            (RuleStatus(status).value, _iso(_now()), rule_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    # === Scheduling Operations ===

    def list_eligible_rules(self, now: datetime, plausible_days: frozenset[int] | None = None) -> list[AutomationRule]:
        """Active rules that are not waiting for re-authentication.

        When ``plausible_days`` is given (every civil weekday that is
        "today" somewhere at ``now``), rules scheduled on none of them are
        dropped. The filter can only remove rules that cannot be in
        their window anywhere on Earth.
        """
        cursor = self.conn.execute(
            f"{_SELECT} WHERE status = {self._ph(1)} AND needs_reauth = 0 ORDER BY created_at",
            (RuleStatus.ACTIVE.value,),
        )
        rules = [self._row_to_rule(row) for row in cursor.fetchall()]
        if plausible_days is None:
            return rules
        return [rule for rule in rules if rule.days_of_week & plausible_days]

    def count_successful_today(self, rule_id: str, local_midnight_utc: datetime) -> int:
        """Count attempts that used quota since the rule's local midnight.

        Successes count, and so do attempts whose outcome is unknown: still
        ``pending`` (the write may have landed before the record was lost)
        or expired by the stale sweep. Known failures do not count.
        Attempts are dated by ``scheduled_at``, the instant of the tick
        that decided to commit.
        """
        cursor = self.conn.execute(
            f"""
            SELECT COUNT(*) FROM commit_attempts
            WHERE rule_id = {self._ph(1)}
              AND (status IN ('success', 'pending')
                   OR (status = 'failed' AND error_message = {self._ph(1)}))
              AND scheduled_at >= {self._ph(1)}
            """,
            (rule_id, OUTCOME_UNKNOWN_MESSAGE, _iso(local_midnight_utc)),
        )
        return int(cursor.fetchone()[0])

    # === Post-commit Operations ===

    def increment_stats(self, rule_id: str) -> bool:
        """Add one commit to every counter in a single statement."""
        cursor = self.conn.execute(
            f"""
            UPDATE automation_rules
            SET total_commits = total_commits + 1,
                commits_this_week = commits_this_week + 1,
                commits_this_month = commits_this_month + 1,
                updated_at = {self._ph(1)}
            WHERE id = {self._ph(1)}
            """,
            (_iso(_now()), rule_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def update_last_commit(self, rule_id: str, last_commit: LastCommit) -> bool:
        cursor = self.conn.execute(
            f"""
            UPDATE automation_rules
            SET last_commit_at = {self._ph(1)}, last_commit_message = {self._ph(1)},
                last_commit_sha = {self._ph(1)}, updated_at = {self._ph(1)}
            WHERE id = {self._ph(1)}
            """,
            (
                _iso(last_commit.timestamp),
                last_commit.message,
                last_commit.sha,
                _iso(_now()),
                rule_id,
            ),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def flag_reauth(self, rule_id: str, reason: str) -> bool:
        """Suppress further attempts until the credential is replaced."""
        cursor = self.conn.execute(
            f"UPDATE automation_rules SET needs_reauth = 1, reauth_reason = {self._ph(1)}, "
            f"updated_at = {self._ph(1)} WHERE id = {self._ph(1)}",
            (reason, _iso(_now()), rule_id),
        )
        self.conn.commit()
        logger.warning("rule_needs_reauth", rule_id=rule_id, reason=reason)
        return cursor.rowcount > 0

    def clear_reauth(self, owner_id: str) -> int:
        """Clear the re-auth flag on every rule of ``owner_id``."""
        cursor = self.conn.execute(
            f"UPDATE automation_rules SET needs_reauth = 0, reauth_reason = NULL, "
            f"updated_at = {self._ph(1)} WHERE owner_id = {self._ph(1)} AND needs_reauth = 1",
            (_iso(_now()), owner_id),
        )
        self.conn.commit()
        return cursor.rowcount

    # === Maintenance ===

    def stop_all_for_owner(self, owner_id: str) -> int:
        """Force-stop every active rule of ``owner_id``; paused rules stay paused."""
        cursor = self.conn.execute(
            f"UPDATE automation_rules SET status = {self._ph(1)}, updated_at = {self._ph(1)} "
            f"WHERE owner_id = {self._ph(1)} AND status = {self._ph(1)}",
            (RuleStatus.STOPPED.value, _iso(_now()), owner_id, RuleStatus.ACTIVE.value),
        )
        self.conn.commit()
        if cursor.rowcount:
            logger.info("owner_rules_stopped", owner_id=owner_id, count=cursor.rowcount)
        return cursor.rowcount

    def rollover_statistics(self, now: datetime) -> int:
        """Reset weekly and monthly counters whose period has ended.

        Periods are UTC calendar periods: ISO weeks (starting Monday) and
        calendar months, compared against ``stats_last_reset``. Counters only
        roll forward: a ``now`` at or before the last reset changes nothing.

        Returns:
            Number of rules whose counters were reset
        """
        cursor = self.conn.execute(
            "SELECT id, stats_last_reset FROM automation_rules"
        )
        rows = cursor.fetchall()
        now_iso = _iso(now)
        current = _parse(now_iso) or now
        rolled = 0
        for row in rows:
            rule_id, last_reset_text = row[0], row[1]
            last_reset = _parse(last_reset_text) or current
            if current <= last_reset:
                continue
            new_week = last_reset.isocalendar()[:2] != current.isocalendar()[:2]
            new_month = (last_reset.year, last_reset.month) != (current.year, current.month)
            if not (new_week or new_month):
                continue
            set_parts = []
            if new_week:
                set_parts.append("commits_this_week = 0")
            if new_month:
                set_parts.append("commits_this_month = 0")
            self.conn.execute(
                f"UPDATE automation_rules SET {', '.join(set_parts)}, "
                f"stats_last_reset = {self._ph(1)} WHERE id = {self._ph(1)}",
                (now_iso, rule_id),
            )
            rolled += 1
        if rolled:
            self.conn.commit()
            logger.info("statistics_rolled_over", count=rolled)
        return rolled

    # === Helpers ===

    def _row_to_rule(self, row: Any) -> AutomationRule:
        data = _row_dict(row, _RULE_COLUMNS)
        last_commit = None
        if data["last_commit_at"] and data["last_commit_sha"]:
            last_commit = LastCommit(
                timestamp=_parse(data["last_commit_at"]),  # type: ignore[arg-type]
                message=data["last_commit_message"] or "",
                sha=data["last_commit_sha"],
            )
        return AutomationRule(
            id=data["id"],
            owner_id=data["owner_id"],
            repo_owner=data["repo_owner"],
            repo_name=data["repo_name"],
            target_file=data["target_file"],
            is_private=bool(data["is_private"]),
            max_commits_per_day=int(data["max_commits_per_day"]),
            time_range=TimeRange(data["start_time"], data["end_time"]),
            days_of_week=frozenset(int(d) for d in _json_list(data["days_of_week"])),
            timezone=data["timezone"] or "UTC",
            commit_phrases=[str(p) for p in _json_list(data["commit_phrases"])],
            status=RuleStatus(data["status"]),
            last_commit=last_commit,
            statistics=CommitStatistics(
                total_commits=int(data["total_commits"]),
                commits_this_week=int(data["commits_this_week"]),
                commits_this_month=int(data["commits_this_month"]),
                last_reset=_parse(data["stats_last_reset"]),
            ),
            needs_reauth=bool(data["needs_reauth"]),
            reauth_reason=data["reauth_reason"],
            created_at=_parse(data["created_at"]),
            updated_at=_parse(data["updated_at"]),
        )


__all__ = ["RuleCreate", "RuleRepository", "MAX_COMMITS_PER_DAY", "MAX_PHRASES", "MAX_PHRASE_LENGTH"]
