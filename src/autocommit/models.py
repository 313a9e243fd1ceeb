"""Domain models for automation rules and commit attempts.

Manifesto:
    The scheduler, executor and repositories pass typed dataclasses
    between each other instead of raw rows, so every invariant has one
    place to live.

Tables (from schema/01_automation.sql):
    - automation_rules: rule definitions + runtime statistics
    - commit_attempts: append-only execution log
    - rule_locks: per-rule execution locks

Tags:
    models, dataclasses, automation-rule, attempt-record

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from autocommit.core.errors import RuleValidationError


def parse_hhmm(value: str, field_name: str = "time") -> int:
    """Convert a 24-hour ``"HH:MM"`` string to minutes since local midnight.

    Raises:
        RuleValidationError: If the string is not a valid 24-hour time.
    """
    try:
        hours_text, minutes_text = value.split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except (AttributeError, ValueError):
        raise RuleValidationError(field_name, f"expected HH:MM, got {value!r}") from None
    if len(minutes_text) != 2 or not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise RuleValidationError(field_name, f"expected HH:MM, got {value!r}")
    return hours * 60 + minutes


class RuleStatus(str, Enum):
    """Lifecycle status of a rule; only ACTIVE rules are evaluated."""

    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"


class AttemptStatus(str, Enum):
    """Status of a commit attempt record."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# automation_rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeRange:
    """Local daily window, ``"HH:MM"`` strings, inclusive on both ends."""

    start_time: str = "09:00"
    end_time: str = "17:00"

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minute(self) -> int:
        return parse_hhmm(self.end_time)


@dataclass
class LastCommit:
    """Most recent successful commit of a rule."""

    timestamp: datetime
    message: str
    sha: str


@dataclass
class CommitStatistics:
    """Aggregate counters maintained by the engine."""

    total_commits: int = 0
    commits_this_week: int = 0
    commits_this_month: int = 0
    last_reset: datetime | None = None


@dataclass
class AutomationRule:
    """Automation rule row (``automation_rules``)."""

    id: str
    owner_id: str
    repo_owner: str
    repo_name: str
    max_commits_per_day: int
    time_range: TimeRange
    days_of_week: frozenset[int]
    commit_phrases: list[str]
    target_file: str = "README.md"
    is_private: bool = False
    timezone: str = "UTC"
    status: RuleStatus = RuleStatus.ACTIVE
    last_commit: LastCommit | None = None
    statistics: CommitStatistics = field(default_factory=CommitStatistics)
    needs_reauth: bool = False
    reauth_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_repo_name(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    @property
    def start_minute(self) -> int:
        return self.time_range.start_minute

    @property
    def end_minute(self) -> int:
        return self.time_range.end_minute


# ---------------------------------------------------------------------------
# commit_attempts
# ---------------------------------------------------------------------------


@dataclass
class CommitAttemptRecord:
    """Commit attempt log row (``commit_attempts``).

    ``commit_message`` holds the clean phrase; the attribution suffix only
    travels upstream.
    """

    id: str
    rule_id: str
    owner_id: str
    repo_name: str
    file_name: str
    status: AttemptStatus
    scheduled_at: datetime
    timezone: str
    day_of_week: int
    commit_message: str | None = None
    commit_sha: str | None = None
    error_message: str | None = None
    error_code: str | None = None
    executed_at: datetime | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Evaluation / provider values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LocalClock:
    """Civil time of an instant in a rule's zone.

    ``timezone`` is the zone actually used; ``fell_back`` is True when the
    configured zone could not be resolved and UTC was used instead.
    """

    weekday: int  # 0 = Sunday .. 6 = Saturday
    minute_of_day: int
    local_date: date
    timezone: str
    fell_back: bool = False


@dataclass(frozen=True)
class FileState:
    """Remote file content plus its revision marker (None if absent)."""

    content: str = ""
    revision: str | None = None

    @property
    def exists(self) -> bool:
        return self.revision is not None


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a successful upstream write."""

    commit_id: str
    committed_at: datetime | None = None


__all__ = [
    "parse_hhmm",
    "RuleStatus",
    "AttemptStatus",
    "TimeRange",
    "LastCommit",
    "CommitStatistics",
    "AutomationRule",
    "CommitAttemptRecord",
    "LocalClock",
    "FileState",
    "WriteResult",
]
