"""Commit decision policy.

Manifesto:
    Whether a rule commits on a given tick is one policy with a pluggable
    pacing strategy, not a family of near-identical code paths switched on
    an environment flag. The hard rules (window, cap, first commit of the
    day) are fixed; only the pacing of additional commits varies.

Decision order::

    1. not in window                 → no
    2. successes today >= max        → no (hard cap)
    3. successes today == 0          → yes (first commit of the day)
    4. otherwise                     → strategy.should_commit_additional(...)

Strategies:
    ProbabilisticPacing  random trial with
                         p = min(max_p, remaining_commits / minutes_left * tick_minutes)
    EagerPacing          commit on every eligible tick (deterministic, for
                         development and tests)

Tags:
    scheduling, policy, pacing, strategy, randomness
"""

from __future__ import annotations

import random
from typing import Protocol, runtime_checkable

from autocommit.core.settings import PacingMode


@runtime_checkable
class PacingStrategy(Protocol):
    """Decides whether to attempt one more commit after the first of the day."""

    name: str

    def should_commit_additional(
        self,
        today_success_count: int,
        max_per_day: int,
        minutes_remaining: int,
    ) -> bool:
        ...


class ProbabilisticPacing:
    """Random pacing that spreads the remaining quota across the window.

    The probability rises as the window narrows or as more commits remain
    unfilled, and never exceeds ``max_probability``, so a single tick never
    guarantees an additional commit. With ``minutes_remaining == 0`` (the
    closing boundary minute) the maximum probability applies.

    Args:
        tick_interval_minutes: Scheduler period in minutes
        random_source: Injected RNG (seed it in tests)
        max_probability: Upper bound of the per-tick probability
    """

    name = "probabilistic"

    def __init__(
        self,
        tick_interval_minutes: float = 1.0,
        random_source: random.Random | None = None,
        max_probability: float = 0.5,
    ) -> None:
        self.tick_interval_minutes = tick_interval_minutes
        self.random = random_source or random.Random()
        self.max_probability = max_probability

    def probability(
        self,
        today_success_count: int,
        max_per_day: int,
        minutes_remaining: int,
    ) -> float:
        remaining_commits = max_per_day - today_success_count
        if remaining_commits <= 0:
            return 0.0
        if minutes_remaining <= 0:
            return self.max_probability
        raw = remaining_commits / minutes_remaining * self.tick_interval_minutes
        return min(self.max_probability, raw)

    def should_commit_additional(
        self,
        today_success_count: int,
        max_per_day: int,
        minutes_remaining: int,
    ) -> bool:
        p = self.probability(today_success_count, max_per_day, minutes_remaining)
        return self.random.random() < p


class EagerPacing:
    """Commit on every tick where the rule is eligible."""

    name = "eager"

    def should_commit_additional(
        self,
        today_success_count: int,
        max_per_day: int,
        minutes_remaining: int,
    ) -> bool:
        return True


class CommitDecisionPolicy:
    """Decides whether a rule attempts a commit on this tick.

    Example:
        >>> policy = CommitDecisionPolicy(EagerPacing())
        >>> policy.should_commit(0, 3, in_window=True, minutes_remaining=120)
        True
        >>> policy.should_commit(3, 3, in_window=True, minutes_remaining=120)
        False
    """

    def __init__(self, strategy: PacingStrategy | None = None) -> None:
        self.strategy = strategy or ProbabilisticPacing()

    def should_commit(
        self,
        today_success_count: int,
        max_per_day: int,
        in_window: bool,
        minutes_remaining: int,
    ) -> bool:
        if not in_window:
            return False
        if today_success_count >= max_per_day:
            return False
        if today_success_count == 0:
            return True
        return self.strategy.should_commit_additional(
            today_success_count, max_per_day, minutes_remaining
        )


def build_policy(
    mode: PacingMode | str = PacingMode.PROBABILISTIC,
    *,
    tick_interval_minutes: float = 1.0,
    random_source: random.Random | None = None,
    max_probability: float = 0.5,
) -> CommitDecisionPolicy:
    """Create a policy for the configured pacing mode."""
    mode = PacingMode(mode)
    if mode is PacingMode.EAGER:
        return CommitDecisionPolicy(EagerPacing())
    return CommitDecisionPolicy(
        ProbabilisticPacing(
            tick_interval_minutes=tick_interval_minutes,
            random_source=random_source,
            max_probability=max_probability,
        )
    )


__all__ = [
    "PacingStrategy",
    "ProbabilisticPacing",
    "EagerPacing",
    "CommitDecisionPolicy",
    "build_policy",
]
