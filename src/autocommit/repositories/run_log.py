"""Run log - append-only record of commit attempts.

Every attempt is opened as ``pending`` before the provider is contacted
and finalized exactly once with a conditional UPDATE, so a record can
never flip from ``success`` to ``failed`` (or back)::

    open(AttemptCreate) ──► pending ──finalize()──► success | failed
                               │
                               └─ expire_stale_pending(before) ──► failed ("outcome unknown")

``success`` rows, open ``pending`` rows and expired rows count toward the
daily quota: a write may have landed upstream before the record was lost.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

from autocommit.core.dialect import Dialect, SQLiteDialect
from autocommit.core.errors import FailureCode
from autocommit.core.logging import get_logger
from autocommit.core.protocols import Connection
from autocommit.models import AttemptStatus, CommitAttemptRecord
from autocommit.repositories._helpers import _iso, _now, _parse, _row_dict

logger = get_logger(__name__)

OUTCOME_UNKNOWN_MESSAGE = "outcome unknown"

_ATTEMPT_COLUMNS = [
    "id",
    "rule_id",
    "owner_id",
    "repo_name",
    "file_name",
    "commit_message",
    "commit_sha",
    "status",
    "error_message",
    "error_code",
    "scheduled_at",
    "executed_at",
    "timezone",
    "day_of_week",
    "created_at",
]
_SELECT = f"SELECT {', '.join(_ATTEMPT_COLUMNS)} FROM commit_attempts"


@dataclass
class AttemptCreate:
    """DTO for opening a pending attempt record."""

    rule_id: str
    owner_id: str
    repo_name: str
    file_name: str
    scheduled_at: datetime
    timezone: str
    day_of_week: int
    commit_message: str | None = None


@dataclass
class AttemptOutcome:
    """Fields written when an attempt is finalized."""

    executed_at: datetime
    commit_message: str | None = None
    commit_sha: str | None = None
    error_message: str | None = None
    error_code: FailureCode | None = None


class RunLogRepository:
    """Repository for ``commit_attempts``.

    Example:
        >>> log = RunLogRepository(conn)
        >>> attempt_id = log.open(AttemptCreate(...))
        >>> log.finalize(attempt_id, AttemptStatus.SUCCESS, AttemptOutcome(
        ...     executed_at=now, commit_message="Update notes", commit_sha="abc"))
        True
    """

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def _ph(self, count: int) -> str:
        return self.dialect.placeholders(count)

    def open(self, spec: AttemptCreate) -> str:
        """Insert a ``pending`` record and return its id."""
        attempt_id = str(uuid4())
        self.conn.execute(
            f"""
            INSERT INTO commit_attempts (
                id, rule_id, owner_id, repo_name, file_name, commit_message,
                status, scheduled_at, timezone, day_of_week, created_at
            ) VALUES ({self._ph(11)})
            """,
            (
                attempt_id,
                spec.rule_id,
                spec.owner_id,
                spec.repo_name,
                spec.file_name,
                spec.commit_message,
                AttemptStatus.PENDING.value,
                _iso(spec.scheduled_at),
                spec.timezone,
                spec.day_of_week,
                _iso(_now()),
            ),
        )
        self.conn.commit()
        return attempt_id

    def finalize(
        self,
        attempt_id: str,
        status: AttemptStatus | str,
        outcome: AttemptOutcome,
    ) -> bool:
        """Move a pending record to ``success`` or ``failed``.

        Returns:
            True if the record was pending and is now final, False if it
            was already finalized (the record is left untouched).

        Raises:
            ValueError: If ``status`` is not a final status.
        """
        status = AttemptStatus(status)
        if status is AttemptStatus.PENDING:
            raise ValueError("an attempt can only be finalized as success or failed")

        error_code = outcome.error_code.value if outcome.error_code else None
        if status is AttemptStatus.SUCCESS:
            error_code = None

        cursor = self.conn.execute(
            f"""
            UPDATE commit_attempts
            SET status = {self._ph(1)}, executed_at = {self._ph(1)},
                commit_message = COALESCE({self._ph(1)}, commit_message),
                commit_sha = {self._ph(1)}, error_message = {self._ph(1)},
                error_code = {self._ph(1)}
            WHERE id = {self._ph(1)} AND status = 'pending'
            """,
            (
                status.value,
                _iso(outcome.executed_at),
                outcome.commit_message,
                outcome.commit_sha,
                outcome.error_message,
                error_code,
                attempt_id,
            ),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            logger.warning("attempt_already_final", attempt_id=attempt_id, status=status.value)
            return False
        return True

    def get(self, attempt_id: str) -> CommitAttemptRecord | None:
        cursor = self.conn.execute(f"{_SELECT} WHERE id = {self._ph(1)}", (attempt_id,))
        row = cursor.fetchone()
        return self._row_to_attempt(row) if row else None

    def list_for_rule(self, rule_id: str, limit: int = 50) -> list[CommitAttemptRecord]:
        """Most recent attempts of a rule, newest first."""
        cursor = self.conn.execute(
            f"{_SELECT} WHERE rule_id = {self._ph(1)} ORDER BY created_at DESC LIMIT {self._ph(1)}",
            (rule_id, limit),
        )
        return [self._row_to_attempt(row) for row in cursor.fetchall()]

    def count_by_status(self, rule_id: str) -> dict[str, int]:
        cursor = self.conn.execute(
            f"SELECT status, COUNT(*) FROM commit_attempts WHERE rule_id = {self._ph(1)} GROUP BY status",
            (rule_id,),
        )
        return {row[0]: int(row[1]) for row in cursor.fetchall()}

    def expire_stale_pending(self, before: datetime) -> int:
        """Close pending records created before ``before`` as outcome unknown.

        A pending record this old belongs to a tick that crashed or lost
        its process mid-attempt, possibly after the upstream write landed.
        The record is finalized as failed with ``OUTCOME_UNKNOWN_MESSAGE``
        and keeps counting toward the daily quota.
        """
        cursor = self.conn.execute(
            f"""
            UPDATE commit_attempts
            SET status = 'failed', executed_at = {self._ph(1)},
                error_message = {self._ph(1)}, error_code = {self._ph(1)}
            WHERE status = 'pending' AND created_at < {self._ph(1)}
            """,
            (_iso(_now()), OUTCOME_UNKNOWN_MESSAGE, FailureCode.UNKNOWN.value, _iso(before)),
        )
        self.conn.commit()
        if cursor.rowcount:
            logger.warning("stale_attempts_expired", count=cursor.rowcount)
        return cursor.rowcount

    def _row_to_attempt(self, row: Any) -> CommitAttemptRecord:
        data = _row_dict(row, _ATTEMPT_COLUMNS)
        return CommitAttemptRecord(
            id=data["id"],
            rule_id=data["rule_id"],
            owner_id=data["owner_id"],
            repo_name=data["repo_name"],
            file_name=data["file_name"],
            status=AttemptStatus(data["status"]),
            scheduled_at=_parse(data["scheduled_at"]),  # type: ignore[arg-type]
            timezone=data["timezone"],
            day_of_week=int(data["day_of_week"]),
            commit_message=data["commit_message"],
            commit_sha=data["commit_sha"],
            error_message=data["error_message"],
            error_code=data["error_code"],
            executed_at=_parse(data["executed_at"]),
            created_at=_parse(data["created_at"]),
        )


__all__ = ["OUTCOME_UNKNOWN_MESSAGE", "AttemptCreate", "AttemptOutcome", "RunLogRepository"]
