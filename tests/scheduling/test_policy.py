"""Tests for the commit decision policy and pacing strategies."""

import random

import pytest

from autocommit.core.settings import PacingMode
from autocommit.scheduling.policy import (
    CommitDecisionPolicy,
    EagerPacing,
    PacingStrategy,
    ProbabilisticPacing,
    build_policy,
)
from tests._support import FixedRandom


def _policies():
    return [
        CommitDecisionPolicy(EagerPacing()),
        CommitDecisionPolicy(ProbabilisticPacing(random_source=FixedRandom(0.0))),
        CommitDecisionPolicy(ProbabilisticPacing(random_source=FixedRandom(0.999))),
    ]


class TestHardRules:
    @pytest.mark.parametrize("policy", _policies())
    @pytest.mark.parametrize("count,maximum", [(1, 1), (3, 3), (5, 3), (50, 50)])
    def test_cap_reached_never_commits(self, policy, count, maximum):
        for minutes in (0, 1, 60, 600):
            assert policy.should_commit(count, maximum, True, minutes) is False

    @pytest.mark.parametrize("policy", _policies())
    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_outside_window_never_commits(self, policy, count):
        assert policy.should_commit(count, 3, False, 120) is False

    @pytest.mark.parametrize("policy", _policies())
    @pytest.mark.parametrize("minutes", [0, 1, 480])
    def test_first_commit_of_the_day_always_attempted(self, policy, minutes):
        assert policy.should_commit(0, 3, True, minutes) is True


class TestProbabilisticPacing:
    def test_probability_spreads_remaining_commits(self):
        pacing = ProbabilisticPacing(tick_interval_minutes=1.0)
        assert pacing.probability(1, 3, 120) == pytest.approx(2 / 120)

    def test_probability_scales_with_tick_interval(self):
        pacing = ProbabilisticPacing(tick_interval_minutes=5.0)
        assert pacing.probability(1, 3, 120) == pytest.approx(10 / 120)

    def test_probability_capped(self):
        pacing = ProbabilisticPacing(tick_interval_minutes=1.0)
        assert pacing.probability(1, 50, 10) == 0.5

    def test_window_closing_minute_uses_max_probability(self):
        pacing = ProbabilisticPacing(max_probability=0.4)
        assert pacing.probability(1, 3, 0) == 0.4

    def test_no_remaining_commits(self):
        assert ProbabilisticPacing().probability(3, 3, 60) == 0.0

    def test_trial_uses_injected_random_source(self):
        low = ProbabilisticPacing(random_source=FixedRandom(0.4))
        high = ProbabilisticPacing(random_source=FixedRandom(0.6))
        assert low.should_commit_additional(1, 50, 10) is True
        assert high.should_commit_additional(1, 50, 10) is False

    def test_seeded_runs_are_reproducible(self):
        def run(seed):
            pacing = ProbabilisticPacing(random_source=random.Random(seed))
            return [pacing.should_commit_additional(1, 10, 30) for _ in range(50)]

        assert run(42) == run(42)

    def test_daily_count_never_exceeds_cap(self):
        policy = CommitDecisionPolicy(ProbabilisticPacing(random_source=random.Random(1)))
        count = 0
        for minutes_left in range(480, -1, -1):
            if policy.should_commit(count, 4, True, minutes_left):
                count += 1
        assert 1 <= count <= 4


class TestBuildPolicy:
    def test_eager(self):
        policy = build_policy(PacingMode.EAGER)
        assert isinstance(policy.strategy, EagerPacing)
        assert policy.should_commit(2, 3, True, 100) is True

    def test_probabilistic_from_string(self):
        policy = build_policy("probabilistic", tick_interval_minutes=2.0, max_probability=0.3)
        assert isinstance(policy.strategy, ProbabilisticPacing)
        assert policy.strategy.tick_interval_minutes == 2.0
        assert policy.strategy.max_probability == 0.3

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            build_policy("reckless")

    def test_strategies_satisfy_protocol(self):
        assert isinstance(EagerPacing(), PacingStrategy)
        assert isinstance(ProbabilisticPacing(), PacingStrategy)
