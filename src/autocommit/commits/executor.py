"""Commit executor - one attempt, one record.

Manifesto:
    An attempt is recorded before the provider is contacted and finalized
    exactly once afterwards, whatever happens in between. The quota is
    derived from those records, so a lost record means a wrong quota.

Tags:
    commits, executor, attempt-log, at-most-once, provider-errors

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  CommitExecutor.execute(rule, token)                                         │
│                                                                              │
│   1. run_log.open(...)                 → pending record                      │
│   2. gateway.read_file(...)            → FileState(content, revision)        │
│   3. generator.generate(phrases, content)                                    │
│   4. gateway.write_file(..., revision) → WriteResult(commit_id)              │
│   5a. success: finalize(success) → increment_stats → update_last_commit      │
│   5b. failure: AuthError → flag_reauth; finalize(failed, code)               │
│                                                                              │
│   Every gateway call is bounded by asyncio.wait_for(request_timeout).        │
│   No retry inside a tick: transient failures wait for the next tick.         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

from autocommit.commits.content import Clock, ContentGenerator, utc_now
from autocommit.commits.gateway import RepositoryGateway
from autocommit.core.errors import (
    AuthError,
    AutocommitError,
    FailureCode,
    PersistenceError,
    ProviderTimeoutError,
    failure_code_for,
    is_retryable,
)
from autocommit.core.logging import get_logger
from autocommit.models import AttemptStatus, AutomationRule, LastCommit, LocalClock
from autocommit.repositories.rules import RuleRepository
from autocommit.repositories.run_log import AttemptCreate, AttemptOutcome, RunLogRepository
from autocommit.scheduling.window import local_clock as compute_local_clock

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ExecutionResult:
    """What one attempt did, returned to the scheduler for logging and stats."""

    rule_id: str
    attempt_id: str
    success: bool
    phrase: str | None = None
    commit_sha: str | None = None
    error_code: FailureCode | None = None
    error_message: str | None = None
    retryable: bool = False


class CommitExecutor:
    """Performs a single commit attempt for a rule.

    Args:
        gateway: Provider access (GitHubGateway or a fake)
        rules: Rule repository for statistics and the re-auth flag
        run_log: Attempt log
        generator: Builds the new file content and message
        request_timeout: Upper bound in seconds for each gateway call
        clock: Source of "now" for record timestamps
    """

    def __init__(
        self,
        gateway: RepositoryGateway,
        rules: RuleRepository,
        run_log: RunLogRepository,
        generator: ContentGenerator | None = None,
        request_timeout: float = 15.0,
        clock: Clock = utc_now,
    ) -> None:
        self.gateway = gateway
        self.rules = rules
        self.run_log = run_log
        self.generator = generator or ContentGenerator(clock=clock)
        self.request_timeout = request_timeout
        self.clock = clock

    async def execute(
        self,
        rule: AutomationRule,
        credential_token: str,
        local_clock: LocalClock | None = None,
        scheduled_at: datetime | None = None,
    ) -> ExecutionResult:
        """Run one attempt and return its result.

        Provider failures are recorded and returned, never raised.

        Args:
            local_clock: The rule's local time as evaluated by the caller
            scheduled_at: Instant of the tick that decided to commit; the
                record is dated by it so it lands in the quota day that
                was just evaluated. Defaults to the executor clock.

        Raises:
            PersistenceError: If the attempt record cannot be opened or
                finalized. After a landed write the pending record remains
                and keeps counting toward the quota.
        """
        scheduled_at = scheduled_at or self.clock()
        clock = local_clock or compute_local_clock(scheduled_at, rule.timezone)

        try:
            attempt_id = self.run_log.open(
                AttemptCreate(
                    rule_id=rule.id,
                    owner_id=rule.owner_id,
                    repo_name=rule.full_repo_name,
                    file_name=rule.target_file,
                    scheduled_at=scheduled_at,
                    timezone=clock.timezone,
                    day_of_week=clock.weekday,
                )
            )
        except Exception as e:
            raise PersistenceError(
                f"Could not open attempt record: {e}", cause=e
            ).with_context(rule_id=rule.id) from e

        try:
            state = await self._bounded(
                self.gateway.read_file(
                    rule.repo_owner, rule.repo_name, rule.target_file, credential_token
                ),
                "read_file",
            )
            generated = self.generator.generate(rule.commit_phrases, state.content)
            written = await self._bounded(
                self.gateway.write_file(
                    rule.repo_owner,
                    rule.repo_name,
                    rule.target_file,
                    generated.content,
                    generated.message,
                    state.revision,
                    credential_token,
                ),
                "write_file",
            )
        except Exception as e:
            return self._record_failure(rule, attempt_id, e)

        executed_at = self.clock()
        try:
            self.run_log.finalize(
                attempt_id,
                AttemptStatus.SUCCESS,
                AttemptOutcome(
                    executed_at=executed_at,
                    commit_message=generated.phrase,
                    commit_sha=written.commit_id,
                ),
            )
            self.rules.increment_stats(rule.id)
            self.rules.update_last_commit(
                rule.id,
                LastCommit(timestamp=executed_at, message=generated.phrase, sha=written.commit_id),
            )
        except Exception as e:
            logger.error(
                "commit_bookkeeping_failed",
                rule_id=rule.id,
                attempt_id=attempt_id,
                commit_sha=written.commit_id,
                error=str(e),
            )
            raise PersistenceError(
                f"Commit {written.commit_id} landed but was not recorded: {e}", cause=e
            ).with_context(rule_id=rule.id, repository=rule.full_repo_name) from e

        logger.info(
            "commit_succeeded",
            rule_id=rule.id,
            repository=rule.full_repo_name,
            commit_sha=written.commit_id,
            phrase=generated.phrase,
        )
        return ExecutionResult(
            rule_id=rule.id,
            attempt_id=attempt_id,
            success=True,
            phrase=generated.phrase,
            commit_sha=written.commit_id,
        )

    async def _bounded(self, call: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.request_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{operation} exceeded {self.request_timeout}s", cause=e
            ) from e

    def _record_failure(
        self, rule: AutomationRule, attempt_id: str, error: Exception
    ) -> ExecutionResult:
        code = failure_code_for(error)
        message = error.message if isinstance(error, AutocommitError) else str(error) or type(error).__name__
        if isinstance(error, AutocommitError):
            error.with_context(rule_id=rule.id, owner_id=rule.owner_id)
            logger.warning("commit_failed", **error.to_dict())
        else:
            logger.exception("commit_failed", rule_id=rule.id, error=message)

        try:
            if isinstance(error, AuthError):
                self.rules.flag_reauth(rule.id, message)
            self.run_log.finalize(
                attempt_id,
                AttemptStatus.FAILED,
                AttemptOutcome(executed_at=self.clock(), error_message=message, error_code=code),
            )
        except Exception as e:
            raise PersistenceError(
                f"Could not record failed attempt {attempt_id}: {e}", cause=e
            ).with_context(rule_id=rule.id) from e

        return ExecutionResult(
            rule_id=rule.id,
            attempt_id=attempt_id,
            success=False,
            error_code=code,
            error_message=message,
            retryable=is_retryable(error),
        )


__all__ = ["ExecutionResult", "CommitExecutor"]
