"""Per-rule execution locks.

Manifesto:
    A rule must never have two attempts in flight at once, whether the
    second comes from an overlapping tick in this process or from another
    scheduler instance. The lock is a row in ``rule_locks``; INSERT-or-
    ignore gives atomic conflict detection and a TTL keeps a crashed
    holder from blocking the rule forever.

Tags:
    scheduling, locks, TTL, concurrency, at-most-once

Doc-Types:
    api-reference, architecture-diagram


    Lock flow::

        tick A ── acquire_rule_lock(r1) ──► INSERT OK ──► evaluate ──► release
        tick B ── acquire_rule_lock(r1) ──► row exists ──► skip (LOCKED)

    Unlike a refreshable lease, acquiring a lock that this very instance
    already holds also fails: two ticks of one process are two attempts.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from autocommit.core.dialect import Dialect, SQLiteDialect
from autocommit.core.logging import get_logger
from autocommit.core.protocols import Connection
from autocommit.repositories._helpers import _iso

logger = get_logger(__name__)


class LockManager:
    """Database-backed rule locks with TTL.

    Example:
        >>> manager = LockManager(conn, instance_id="scheduler-1")
        >>> if manager.acquire_rule_lock("rule-123"):
        ...     try:
        ...         ...  # evaluate and execute
        ...     finally:
        ...         manager.release_rule_lock("rule-123")
    """

    def __init__(
        self,
        conn: Connection,
        dialect: Dialect | None = None,
        instance_id: str | None = None,
    ) -> None:
        """Initialize lock manager.

        Args:
            conn: Database connection
            dialect: SQL dialect for portable queries
            instance_id: Identifier of this scheduler instance.
                        Auto-generated if not provided.
        """
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()
        self.instance_id = instance_id or str(uuid4())

    def _ph(self, index: int) -> str:
        """Dialect placeholder at 1-based position."""
        return self.dialect.placeholder(index - 1)

    def acquire_rule_lock(self, rule_id: str, ttl_seconds: int = 300) -> bool:
        """Acquire the exclusive lock for a rule.

        Returns:
            True if acquired, False if any holder (this instance included)
            has an unexpired lock
        """
        now = datetime.now(UTC)
        expires = now + timedelta(seconds=ttl_seconds)

        self.conn.execute(
            f"DELETE FROM rule_locks WHERE rule_id = {self._ph(1)} AND expires_at < {self._ph(2)}",
            (rule_id, _iso(now)),
        )
        insert_sql = self.dialect.insert_or_ignore(
            "rule_locks", ["rule_id", "locked_by", "locked_at", "expires_at"]
        )
        cursor = self.conn.execute(
            insert_sql, (rule_id, self.instance_id, _iso(now), _iso(expires))
        )
        self.conn.commit()

        if cursor.rowcount > 0:
            logger.debug("rule_lock_acquired", rule_id=rule_id, instance_id=self.instance_id)
            return True

        logger.debug("rule_lock_held", rule_id=rule_id, holder=self.get_lock_holder(rule_id))
        return False

    def release_rule_lock(self, rule_id: str) -> bool:
        """Release the rule lock if this instance holds it."""
        cursor = self.conn.execute(
            f"DELETE FROM rule_locks WHERE rule_id = {self._ph(1)} AND locked_by = {self._ph(2)}",
            (rule_id, self.instance_id),
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def is_locked(self, rule_id: str) -> bool:
        """Check if a rule is locked by any instance."""
        return self.get_lock_holder(rule_id) is not None

    def get_lock_holder(self, rule_id: str) -> str | None:
        cursor = self.conn.execute(
            f"SELECT locked_by FROM rule_locks WHERE rule_id = {self._ph(1)} AND expires_at > {self._ph(2)}",
            (rule_id, _iso(datetime.now(UTC))),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    # === Maintenance ===

    def cleanup_expired_locks(self) -> int:
        """Remove locks left behind by crashed instances."""
        cursor = self.conn.execute(
            f"DELETE FROM rule_locks WHERE expires_at < {self._ph(1)}",
            (_iso(datetime.now(UTC)),),
        )
        self.conn.commit()
        count = cursor.rowcount
        if count > 0:
            logger.info("expired_locks_cleaned", count=count)
        return count

    def list_active_locks(self) -> list[dict[str, Any]]:
        cursor = self.conn.execute(
            f"""
            SELECT rule_id, locked_by, locked_at, expires_at
            FROM rule_locks
            WHERE expires_at > {self._ph(1)}
            ORDER BY locked_at
            """,
            (_iso(datetime.now(UTC)),),
        )
        return [
            {
                "rule_id": row[0],
                "locked_by": row[1],
                "locked_at": row[2],
                "expires_at": row[3],
            }
            for row in cursor.fetchall()
        ]


__all__ = ["LockManager"]
