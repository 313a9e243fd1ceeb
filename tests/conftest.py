"""
Shared pytest fixtures for autocommit tests.

Provides:
- An in-memory SQLite connection with the bundled schema applied
- A mutable fixed clock
- A fake repository gateway with in-memory files
- Repositories, executor and scheduler wired against those fakes
- A ``make_rule`` factory with sensible defaults
"""

from __future__ import annotations

import random
import sys
from typing import Any

import pytest
import structlog

from autocommit.commits.content import ContentGenerator
from autocommit.commits.executor import CommitExecutor
from autocommit.core.sqlite_conn import SqliteConnection
from autocommit.repositories import (
    CredentialRepository,
    RuleCreate,
    RuleRepository,
    RunLogRepository,
)
from autocommit.scheduling.lock_manager import LockManager
from autocommit.scheduling.policy import CommitDecisionPolicy, EagerPacing
from autocommit.scheduling.service import RuleScheduler
from tests._support import FakeGateway, FixedClock

# =============================================================================
# Test isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any global structlog configuration a test installed."""
    yield
    structlog.reset_defaults()
    # Module-level loggers cache their first configuration; drop that cache.
    for name, module in list(sys.modules.items()):
        if not name.startswith("autocommit"):
            continue
        for value in list(vars(module).values()):
            if isinstance(value, structlog._config.BoundLoggerLazyProxy):
                value.__dict__.pop("bind", None)


# =============================================================================
# Database / repositories
# =============================================================================


@pytest.fixture
def conn():
    """In-memory SQLite database with the autocommit schema."""
    connection = SqliteConnection(":memory:")
    connection.apply_schema()
    yield connection
    connection.close()


@pytest.fixture
def rules(conn) -> RuleRepository:
    return RuleRepository(conn)


@pytest.fixture
def run_log(conn) -> RunLogRepository:
    return RunLogRepository(conn)


@pytest.fixture
def credentials(conn) -> CredentialRepository:
    return CredentialRepository(conn)


@pytest.fixture
def lock_manager(conn) -> LockManager:
    return LockManager(conn, instance_id="test-instance")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_rule(rules, credentials):
    """Create (and return) a rule; stores a token for its owner by default."""

    def _make(*, with_token: bool = True, **overrides: Any):
        spec = {
            "owner_id": "owner-1",
            "repo_owner": "octo",
            "repo_name": "hello",
            "max_commits_per_day": 3,
            "start_time": "09:00",
            "end_time": "17:00",
            "days_of_week": [1, 2, 3, 4, 5],
            "commit_phrases": ["Update notes"],
            "timezone": "UTC",
        }
        spec.update(overrides)
        rule = rules.create(RuleCreate(**spec))
        if with_token:
            credentials.set_token(rule.owner_id, "token-" + rule.owner_id)
        return rule

    return _make


# =============================================================================
# Executor / scheduler
# =============================================================================


class _IdleBackend:
    """Backend that never ticks on its own."""

    name = "idle"

    def __init__(self) -> None:
        self.started = False

    def start(self, tick_callback, interval_seconds: float = 60.0) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def health(self) -> dict:
        return {"healthy": self.started, "backend": self.name, "tick_count": 0, "last_tick": None}


@pytest.fixture
def executor(gateway, rules, run_log, clock) -> CommitExecutor:
    return CommitExecutor(
        gateway=gateway,
        rules=rules,
        run_log=run_log,
        generator=ContentGenerator(random.Random(7), clock=clock, attribution="via autocommit"),
        request_timeout=5.0,
        clock=clock,
    )


@pytest.fixture
def make_scheduler(conn, rules, run_log, credentials, executor, clock):
    """Build a RuleScheduler; eager pacing unless a policy is given."""

    def _make(
        policy: CommitDecisionPolicy | None = None,
        instance_id: str = "test-instance",
        **kwargs: Any,
    ) -> RuleScheduler:
        return RuleScheduler(
            backend=_IdleBackend(),
            rules=rules,
            run_log=run_log,
            credentials=credentials,
            lock_manager=LockManager(conn, instance_id=instance_id),
            executor=executor,
            policy=policy or CommitDecisionPolicy(EagerPacing()),
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def scheduler(make_scheduler) -> RuleScheduler:
    return make_scheduler()
