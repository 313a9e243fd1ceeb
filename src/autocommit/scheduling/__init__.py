"""Scheduling package: time windows, commit pacing and the tick driver.

Manifesto:
    Deciding whether a rule commits "now" needs more than a cron line. It
    needs the rule's own time zone (DST included), a daily quota counted
    from local midnight, randomized pacing across the window, and a lock
    so two ticks never commit for the same rule at once.

Quick Start::

    from autocommit.scheduling import create_scheduler

    scheduler = create_scheduler(conn, settings=get_settings())
    scheduler.start()             # thread backend, one tick per interval
    report = await scheduler.tick()

Guardrails:
    ❌ Evaluating a window with a cached UTC offset
    ✅ ``local_clock(now_utc, timezone)`` through zoneinfo on every tick
    ❌ Constructing scheduler components individually
    ✅ ``create_scheduler(conn, settings)`` factory function

Tags:
    scheduling, time-window, pacing, locks, beat-as-poller

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from .lock_manager import LockManager
from .policy import (
    CommitDecisionPolicy,
    EagerPacing,
    PacingStrategy,
    ProbabilisticPacing,
    build_policy,
)
from .protocol import BackendHealth, SchedulerBackend
from .service import (
    RuleOutcome,
    RuleResult,
    RuleScheduler,
    SchedulerHealth,
    SchedulerStats,
    TickReport,
)
from .thread_backend import ThreadSchedulerBackend
from .window import TimeWindowEvaluator, in_window, local_clock, local_midnight_utc

if TYPE_CHECKING:
    from autocommit.commits.gateway import RepositoryGateway
    from autocommit.core.protocols import Connection
    from autocommit.core.settings import AutocommitSettings

__all__ = [
    "SchedulerBackend",
    "BackendHealth",
    "ThreadSchedulerBackend",
    "LockManager",
    "PacingStrategy",
    "ProbabilisticPacing",
    "EagerPacing",
    "CommitDecisionPolicy",
    "build_policy",
    "TimeWindowEvaluator",
    "local_clock",
    "in_window",
    "local_midnight_utc",
    "RuleOutcome",
    "RuleResult",
    "TickReport",
    "SchedulerStats",
    "SchedulerHealth",
    "RuleScheduler",
    "create_scheduler",
]


def create_scheduler(
    conn: Connection,
    settings: AutocommitSettings | None = None,
    gateway: RepositoryGateway | None = None,
    backend: SchedulerBackend | None = None,
    random_source: random.Random | None = None,
) -> RuleScheduler:
    """Wire a complete RuleScheduler from settings.

    Args:
        conn: Database connection with the schema applied
        settings: Engine settings (defaults to ``get_settings()``)
        gateway: Provider gateway (defaults to a GitHubGateway from settings)
        backend: Timing backend (defaults to ThreadSchedulerBackend)
        random_source: RNG shared by pacing and phrase selection

    Example:
        >>> scheduler = create_scheduler(conn)
        >>> scheduler.start()
    """
    from autocommit.commits.content import ContentGenerator
    from autocommit.commits.executor import CommitExecutor
    from autocommit.commits.gateway import GitHubGateway
    from autocommit.core.dialect import get_dialect
    from autocommit.core.settings import get_settings
    from autocommit.repositories import (
        CredentialRepository,
        RuleRepository,
        RunLogRepository,
    )

    settings = settings or get_settings()
    rng = random_source or random.Random()
    dialect = get_dialect(settings.sql_dialect)

    rules = RuleRepository(conn, dialect)
    run_log = RunLogRepository(conn, dialect)
    gateway = gateway or GitHubGateway(
        base_url=settings.github_api_url,
        user_agent=settings.user_agent,
        timeout=settings.request_timeout_seconds,
    )
    executor = CommitExecutor(
        gateway=gateway,
        rules=rules,
        run_log=run_log,
        generator=ContentGenerator(random_source=rng, attribution=settings.commit_attribution),
        request_timeout=settings.request_timeout_seconds,
    )
    policy = build_policy(
        settings.pacing_mode,
        tick_interval_minutes=settings.tick_interval_minutes,
        random_source=rng,
        max_probability=settings.max_pacing_probability,
    )

    return RuleScheduler(
        backend=backend or ThreadSchedulerBackend(),
        rules=rules,
        run_log=run_log,
        credentials=CredentialRepository(conn, dialect),
        lock_manager=LockManager(conn, dialect, instance_id=settings.instance_id),
        executor=executor,
        policy=policy,
        interval_seconds=settings.tick_interval_seconds,
        max_concurrent_rules=settings.max_concurrent_rules,
        lock_ttl_seconds=settings.lock_ttl_seconds,
        stale_attempt_minutes=settings.stale_attempt_minutes,
    )
