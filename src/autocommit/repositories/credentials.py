"""Owner credential store.

Holds one provider access token per owner. Disconnecting an owner deletes
the token and force-stops every rule the owner has, so no tick attempts a
commit with a credential that is gone.
"""

from __future__ import annotations

from autocommit.core.dialect import Dialect, SQLiteDialect
from autocommit.core.logging import get_logger
from autocommit.core.protocols import Connection
from autocommit.repositories._helpers import _iso, _now
from autocommit.repositories.rules import RuleRepository

logger = get_logger(__name__)


class CredentialRepository:
    """Repository for ``owner_credentials``."""

    def __init__(self, conn: Connection, dialect: Dialect | None = None) -> None:
        self.conn = conn
        self.dialect: Dialect = dialect or SQLiteDialect()

    def _ph(self, count: int) -> str:
        return self.dialect.placeholders(count)

    def set_token(self, owner_id: str, token: str) -> None:
        """Store (or replace) the token and clear any pending re-auth flags."""
        if not token:
            raise ValueError("token must not be empty")
        now = _iso(_now())
        cursor = self.conn.execute(
            f"UPDATE owner_credentials SET access_token = {self._ph(1)}, updated_at = {self._ph(1)} "
            f"WHERE owner_id = {self._ph(1)}",
            (token, now, owner_id),
        )
        if cursor.rowcount == 0:
            self.conn.execute(
                f"INSERT INTO owner_credentials (owner_id, access_token, updated_at) VALUES ({self._ph(3)})",
                (owner_id, token, now),
            )
        self.conn.commit()
        RuleRepository(self.conn, self.dialect).clear_reauth(owner_id)
        logger.info("credential_stored", owner_id=owner_id)

    def get_token(self, owner_id: str) -> str | None:
        cursor = self.conn.execute(
            f"SELECT access_token FROM owner_credentials WHERE owner_id = {self._ph(1)}",
            (owner_id,),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def disconnect(self, owner_id: str) -> int:
        """Delete the owner's token and stop their active rules.

        Returns:
            Number of rules stopped
        """
        self.conn.execute(
            f"DELETE FROM owner_credentials WHERE owner_id = {self._ph(1)}", (owner_id,)
        )
        self.conn.commit()
        stopped = RuleRepository(self.conn, self.dialect).stop_all_for_owner(owner_id)
        logger.info("credential_disconnected", owner_id=owner_id, rules_stopped=stopped)
        return stopped


__all__ = ["CredentialRepository"]
