"""Rule scheduler - the tick driver.

Manifesto:
    The RuleScheduler combines a timing backend, the rule repository, the
    per-rule lock, the decision policy and the commit executor. The
    beat-as-poller pattern keeps timing out of rule evaluation, so a test
    (or an operator) can call ``tick()`` directly with any instant.

Tags:
    scheduling, orchestrator, beat-as-poller, fan-out, service

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  RULE SCHEDULER                                                               │
│                                                                               │
│   tick(now)                                                                   │
│     │  process-level guard (non-blocking): overlapping tick → skipped=True    │
│     ├── maintenance: cleanup_expired_locks, expire_stale_pending,             │
│     │                rollover_statistics                                      │
│     ├── list_eligible_rules(now)  (active, no re-auth, plausible weekday)     │
│     └── asyncio.gather(... per rule, bounded by a semaphore ...)              │
│                                                                               │
│   per rule:                                                                   │
│     acquire_rule_lock ── held ──► LOCKED                                      │
│       │                                                                       │
│       ├── local_clock(now, rule.timezone)                                     │
│       ├── weekday not scheduled ─────────► NOT_SCHEDULED_DAY                  │
│       ├── minute outside [start, end] ───► OUTSIDE_WINDOW                     │
│       ├── count_successful_today ≥ max ──► QUOTA_REACHED                      │
│       ├── policy declines ───────────────► DEFERRED                           │
│       ├── no credential ─────────────────► NO_CREDENTIAL                      │
│       └── executor.execute ──────────────► COMMITTED | FAILED                 │
│     release_rule_lock                                                         │
│                                                                               │
│   Any exception inside one rule becomes ERROR for that rule only.             │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from autocommit.commits.content import Clock, utc_now
from autocommit.core.errors import FailureCode
from autocommit.core.logging import LogContext, get_logger
from autocommit.models import AutomationRule
from autocommit.repositories.credentials import CredentialRepository
from autocommit.repositories.rules import RuleRepository
from autocommit.repositories.run_log import RunLogRepository
from autocommit.scheduling.lock_manager import LockManager
from autocommit.scheduling.policy import CommitDecisionPolicy
from autocommit.scheduling.protocol import BackendHealth, SchedulerBackend
from autocommit.scheduling.window import TimeWindowEvaluator, plausible_weekdays

if TYPE_CHECKING:
    from autocommit.commits.executor import CommitExecutor

logger = get_logger(__name__)


class RuleOutcome(str, Enum):
    """What happened to one rule on one tick."""

    COMMITTED = "committed"
    FAILED = "failed"
    NOT_SCHEDULED_DAY = "not_scheduled_day"
    OUTSIDE_WINDOW = "outside_window"
    QUOTA_REACHED = "quota_reached"
    DEFERRED = "deferred"
    LOCKED = "locked"
    NO_CREDENTIAL = "no_credential"
    ERROR = "error"


@dataclass
class RuleResult:
    """Outcome of one rule on one tick."""

    rule_id: str
    outcome: RuleOutcome
    detail: str | None = None
    commit_sha: str | None = None
    error_code: FailureCode | None = None
    today_count: int | None = None


@dataclass
class TickReport:
    """Summary of one tick."""

    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    error: str | None = None
    maintenance: dict[str, int] = field(default_factory=dict)
    results: list[RuleResult] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return dict(Counter(result.outcome.value for result in self.results))

    @property
    def committed(self) -> list[RuleResult]:
        return [r for r in self.results if r.outcome is RuleOutcome.COMMITTED]

    def result_for(self, rule_id: str) -> RuleResult | None:
        return next((r for r in self.results if r.rule_id == rule_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "skipped": self.skipped,
            "error": self.error,
            "maintenance": self.maintenance,
            "counts": self.counts,
            "results": [
                {
                    "rule_id": r.rule_id,
                    "outcome": r.outcome.value,
                    "detail": r.detail,
                    "commit_sha": r.commit_sha,
                    "error_code": r.error_code.value if r.error_code else None,
                }
                for r in self.results
            ],
        }


@dataclass
class SchedulerStats:
    """Statistics for the scheduler since start (or last reset)."""

    tick_count: int = 0
    ticks_skipped: int = 0
    rules_evaluated: int = 0
    commits_succeeded: int = 0
    commits_failed: int = 0
    rules_errored: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None


@dataclass
class SchedulerHealth:
    """Health status for the scheduler."""

    healthy: bool
    backend: BackendHealth | dict
    rules_active: int = 0
    active_locks: int = 0
    last_tick: datetime | None = None
    stats: SchedulerStats = field(default_factory=SchedulerStats)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend.to_dict() if isinstance(self.backend, BackendHealth) else self.backend,
            "rules_active": self.rules_active,
            "active_locks": self.active_locks,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "stats": {
                "tick_count": self.stats.tick_count,
                "ticks_skipped": self.stats.ticks_skipped,
                "rules_evaluated": self.stats.rules_evaluated,
                "commits_succeeded": self.stats.commits_succeeded,
                "commits_failed": self.stats.commits_failed,
                "rules_errored": self.stats.rules_errored,
                "last_error": self.stats.last_error,
            },
        }


class RuleScheduler:
    """Periodic evaluator of every active automation rule.

    Example:
        >>> scheduler = RuleScheduler(
        ...     backend=ThreadSchedulerBackend(),
        ...     rules=RuleRepository(conn),
        ...     run_log=RunLogRepository(conn),
        ...     credentials=CredentialRepository(conn),
        ...     lock_manager=LockManager(conn),
        ...     executor=executor,
        ... )
        >>> scheduler.start()
        >>> report = await scheduler.tick()   # manual "trigger now"
        >>> scheduler.stop()
    """

    def __init__(
        self,
        backend: SchedulerBackend,
        rules: RuleRepository,
        run_log: RunLogRepository,
        credentials: CredentialRepository,
        lock_manager: LockManager,
        executor: CommitExecutor,
        policy: CommitDecisionPolicy | None = None,
        evaluator: TimeWindowEvaluator | None = None,
        *,
        interval_seconds: float = 60.0,
        max_concurrent_rules: int = 8,
        lock_ttl_seconds: int = 300,
        stale_attempt_minutes: int = 30,
        clock: Clock = utc_now,
    ) -> None:
        self.backend = backend
        self.rules = rules
        self.run_log = run_log
        self.credentials = credentials
        self.lock_manager = lock_manager
        self.executor = executor
        self.policy = policy or CommitDecisionPolicy()
        self.evaluator = evaluator or TimeWindowEvaluator()
        self.interval = interval_seconds
        self.max_concurrent_rules = max(1, max_concurrent_rules)
        self.lock_ttl_seconds = lock_ttl_seconds
        self.stale_attempt_minutes = stale_attempt_minutes
        self.clock = clock

        self._stats = SchedulerStats()
        self._running = False
        self._tick_guard = threading.Lock()

    # === Lifecycle ===

    def start(self) -> None:
        if self._running:
            logger.warning("scheduler_already_running")
            return
        logger.info("scheduler_starting", backend=self.backend.name, interval_seconds=self.interval)
        self.backend.start(self.tick, self.interval)
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self.backend.stop()
        self._running = False
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # === Tick Processing ===

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Evaluate every eligible rule once.

        Never raises. A tick that starts while another tick of this
        scheduler is still running returns immediately with
        ``skipped=True``.
        """
        now = now or self.clock()
        if not self._tick_guard.acquire(blocking=False):
            self._stats.ticks_skipped += 1
            logger.info("tick_skipped", reason="previous tick still running")
            return TickReport(started_at=now, finished_at=now, skipped=True)

        try:
            self._stats.tick_count += 1
            self._stats.last_tick = now
            report = TickReport(started_at=now)
            async with LogContext(tick_at=now.isoformat()):
                await self._run_tick(now, report)
            report.finished_at = self.clock()
            logger.info("tick_completed", **report.counts)
            return report
        finally:
            self._tick_guard.release()

    async def _run_tick(self, now: datetime, report: TickReport) -> None:
        report.maintenance = self._maintenance(now)

        try:
            eligible = self.rules.list_eligible_rules(now, plausible_weekdays(now))
        except Exception as e:
            report.error = f"rule load failed: {e}"
            self._stats.last_error = report.error
            logger.exception("tick_failed", stage="load_rules")
            return

        if not eligible:
            logger.debug("no_eligible_rules")
            return

        semaphore = asyncio.Semaphore(self.max_concurrent_rules)
        report.results = list(
            await asyncio.gather(*(self._process_rule(rule, now, semaphore) for rule in eligible))
        )

    def _maintenance(self, now: datetime) -> dict[str, int]:
        done: dict[str, int] = {}
        steps = (
            ("expired_locks", self.lock_manager.cleanup_expired_locks),
            (
                "stale_attempts",
                lambda: self.run_log.expire_stale_pending(
                    now - timedelta(minutes=self.stale_attempt_minutes)
                ),
            ),
            ("stats_rolled_over", lambda: self.rules.rollover_statistics(now)),
        )
        for name, step in steps:
            try:
                done[name] = step()
            except Exception:
                logger.exception("maintenance_failed", step=name)
        return done

    async def _process_rule(
        self, rule: AutomationRule, now: datetime, semaphore: asyncio.Semaphore
    ) -> RuleResult:
        async with semaphore:
            async with LogContext(rule_id=rule.id):
                self._stats.rules_evaluated += 1
                try:
                    result = await self._evaluate_rule(rule, now)
                except Exception as e:
                    self._stats.rules_errored += 1
                    self._stats.last_error = f"{rule.id}: {e}"
                    logger.exception("rule_failed", repository=rule.full_repo_name)
                    return RuleResult(rule.id, RuleOutcome.ERROR, detail=str(e))

                if result.outcome is RuleOutcome.COMMITTED:
                    self._stats.commits_succeeded += 1
                elif result.outcome is RuleOutcome.FAILED:
                    self._stats.commits_failed += 1
                else:
                    logger.debug("rule_skipped", outcome=result.outcome.value, detail=result.detail)
                return result

    async def _evaluate_rule(self, rule: AutomationRule, now: datetime) -> RuleResult:
        if not self.lock_manager.acquire_rule_lock(rule.id, self.lock_ttl_seconds):
            return RuleResult(rule.id, RuleOutcome.LOCKED, detail="attempt already in flight")

        try:
            clock = self.evaluator.local_clock(now, rule)
            if clock.weekday not in rule.days_of_week:
                return RuleResult(rule.id, RuleOutcome.NOT_SCHEDULED_DAY, detail=f"weekday {clock.weekday}")
            if not self.evaluator.in_window(clock, rule):
                return RuleResult(
                    rule.id,
                    RuleOutcome.OUTSIDE_WINDOW,
                    detail=f"local minute {clock.minute_of_day} ({clock.timezone})",
                )

            today = self.rules.count_successful_today(
                rule.id, self.evaluator.local_midnight_utc(now, rule)
            )
            if today >= rule.max_commits_per_day:
                return RuleResult(rule.id, RuleOutcome.QUOTA_REACHED, today_count=today)

            if not self.policy.should_commit(
                today,
                rule.max_commits_per_day,
                in_window=True,
                minutes_remaining=self.evaluator.minutes_remaining(clock, rule),
            ):
                return RuleResult(rule.id, RuleOutcome.DEFERRED, today_count=today)

            token = self.credentials.get_token(rule.owner_id)
            if not token:
                logger.warning("rule_without_credential", owner_id=rule.owner_id)
                return RuleResult(rule.id, RuleOutcome.NO_CREDENTIAL, today_count=today)

            execution = await self.executor.execute(
                rule, token, local_clock=clock, scheduled_at=now
            )
            if execution.success:
                return RuleResult(
                    rule.id,
                    RuleOutcome.COMMITTED,
                    commit_sha=execution.commit_sha,
                    today_count=today + 1,
                )
            return RuleResult(
                rule.id,
                RuleOutcome.FAILED,
                detail=execution.error_message,
                error_code=execution.error_code,
                today_count=today,
            )
        finally:
            self.lock_manager.release_rule_lock(rule.id)

    # === Health & Stats ===

    def health(self) -> SchedulerHealth:
        backend_health = self.backend.health()
        return SchedulerHealth(
            healthy=self._running and backend_health.get("healthy", False),
            backend=backend_health,
            rules_active=len(self.rules.list_eligible_rules(self.clock())),
            active_locks=len(self.lock_manager.list_active_locks()),
            last_tick=self._stats.last_tick,
            stats=self._stats,
        )

    def get_stats(self) -> SchedulerStats:
        return self._stats

    def reset_stats(self) -> None:
        self._stats = SchedulerStats()


__all__ = [
    "RuleOutcome",
    "RuleResult",
    "TickReport",
    "SchedulerStats",
    "SchedulerHealth",
    "RuleScheduler",
]
