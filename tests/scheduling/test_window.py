"""Tests for time window evaluation."""

from datetime import UTC, datetime, timedelta

import pytest

from autocommit.core.errors import RuleValidationError
from autocommit.models import AutomationRule, TimeRange
from autocommit.scheduling import window
from autocommit.scheduling.window import (
    TimeWindowEvaluator,
    civil_weekday,
    in_window,
    local_clock,
    local_midnight_utc,
    minutes_remaining,
    parse_hhmm,
    plausible_weekdays,
    resolve_timezone,
)


def _rule(start="09:00", end="17:00", days=(0, 1, 2, 3, 4, 5, 6), tz="UTC") -> AutomationRule:
    return AutomationRule(
        id="r1",
        owner_id="o1",
        repo_owner="octo",
        repo_name="hello",
        max_commits_per_day=3,
        time_range=TimeRange(start, end),
        days_of_week=frozenset(days),
        commit_phrases=["Update"],
        timezone=tz,
    )


class TestParseHHMM:
    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("09:05", 545), ("9:05", 545), ("23:59", 1439)],
    )
    def test_valid(self, value, expected):
        assert parse_hhmm(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "09:60", "0905", "ab:cd", "09:5", "", None])
    def test_invalid(self, value):
        with pytest.raises(RuleValidationError):
            parse_hhmm(value, "start_time")


class TestTimezoneResolution:
    def test_known_zone(self):
        zone, fell_back = resolve_timezone("Europe/Berlin")
        assert zone.key == "Europe/Berlin"
        assert fell_back is False

    @pytest.mark.parametrize("name", ["Mars/Olympus_Mons", "", None, "../etc/passwd"])
    def test_unknown_zone_falls_back_to_utc(self, name):
        zone, fell_back = resolve_timezone(name)
        assert zone.key == "UTC"
        assert fell_back is True

    def test_fallback_reported_on_clock(self):
        clock = local_clock(datetime(2025, 1, 15, 14, 30, tzinfo=UTC), "Nowhere/City")
        assert clock.timezone == "UTC"
        assert clock.fell_back is True
        assert clock.minute_of_day == 14 * 60 + 30

    def test_evaluator_warns_once_per_zone(self, monkeypatch):
        warnings = []

        class _Recorder:
            def warning(self, event, **kw):
                warnings.append((event, kw))

        monkeypatch.setattr(window, "logger", _Recorder())
        evaluator = TimeWindowEvaluator()
        rule = _rule(tz="Nowhere/City")
        now = datetime(2025, 1, 15, 14, 30, tzinfo=UTC)

        for _ in range(3):
            evaluator.local_clock(now, rule)

        assert len(warnings) == 1
        assert warnings[0][0] == "timezone_fallback"
        assert warnings[0][1]["configured_timezone"] == "Nowhere/City"


class TestLocalClock:
    def test_weekday_sunday_is_zero(self):
        assert civil_weekday(datetime(2025, 1, 12)) == 0  # Sunday
        assert civil_weekday(datetime(2025, 1, 18)) == 6  # Saturday

    def test_converts_to_local_wall_clock(self):
        clock = local_clock(datetime(2025, 1, 15, 14, 30, tzinfo=UTC), "America/New_York")
        assert clock.minute_of_day == 9 * 60 + 30
        assert clock.weekday == 3
        assert clock.timezone == "America/New_York"
        assert clock.fell_back is False

    def test_local_date_can_differ_from_utc_date(self):
        clock = local_clock(datetime(2025, 1, 15, 23, 30, tzinfo=UTC), "Asia/Tokyo")
        assert clock.weekday == 4  # Thursday in Tokyo
        assert clock.minute_of_day == 8 * 60 + 30
        assert clock.local_date.isoformat() == "2025-01-16"

    def test_naive_input_treated_as_utc(self):
        clock = local_clock(datetime(2025, 1, 15, 14, 30), "UTC")
        assert clock.minute_of_day == 14 * 60 + 30


class TestInWindow:
    @pytest.mark.parametrize(
        "minute,expected",
        [(8 * 60 + 59, False), (9 * 60, True), (12 * 60, True), (17 * 60, True), (17 * 60 + 1, False)],
    )
    def test_boundaries_are_inclusive(self, minute, expected):
        assert in_window(3, minute, _rule()) is expected

    def test_unscheduled_weekday(self):
        assert in_window(0, 12 * 60, _rule(days=(1, 2, 3, 4, 5))) is False

    def test_full_day_window(self):
        rule = _rule(start="00:00", end="23:59")
        assert in_window(3, 0, rule)
        assert in_window(3, 1439, rule)

    def test_minutes_remaining(self):
        rule = _rule()
        assert minutes_remaining(9 * 60, rule) == 480
        assert minutes_remaining(17 * 60, rule) == 0
        assert minutes_remaining(18 * 60, rule) == 0


class TestLocalMidnight:
    def test_new_york_winter(self):
        midnight = local_midnight_utc(datetime(2025, 1, 15, 14, 30, tzinfo=UTC), "America/New_York")
        assert midnight == datetime(2025, 1, 15, 5, 0, tzinfo=UTC)

    def test_before_local_midnight_uses_previous_local_day(self):
        # 03:00 UTC is still Jan 14 in New York
        midnight = local_midnight_utc(datetime(2025, 1, 15, 3, 0, tzinfo=UTC), "America/New_York")
        assert midnight == datetime(2025, 1, 14, 5, 0, tzinfo=UTC)

    def test_east_of_utc(self):
        midnight = local_midnight_utc(datetime(2025, 1, 15, 23, 30, tzinfo=UTC), "Asia/Tokyo")
        assert midnight == datetime(2025, 1, 15, 15, 0, tzinfo=UTC)

    def test_unknown_zone_uses_utc_midnight(self):
        midnight = local_midnight_utc(datetime(2025, 1, 15, 14, 30, tzinfo=UTC), "Nowhere/City")
        assert midnight == datetime(2025, 1, 15, tzinfo=UTC)


class TestDaylightSavingTransitions:
    """America/New_York: spring forward 2025-03-09, fall back 2025-11-02."""

    def _in_window_minutes(self, start_utc, hours, rule):
        minutes = []
        for offset in range(hours * 60):
            now = start_utc + timedelta(minutes=offset)
            clock = local_clock(now, rule.timezone)
            if in_window(clock.weekday, clock.minute_of_day, rule):
                minutes.append(clock.minute_of_day)
        return minutes

    def test_spring_forward_only_existing_minutes_are_in_window(self):
        rule = _rule(start="01:30", end="02:30", tz="America/New_York")
        minutes = self._in_window_minutes(datetime(2025, 3, 9, 5, 0, tzinfo=UTC), 4, rule)

        # 01:30..01:59 EST exist; 02:00..02:30 never appear on the wall clock
        assert minutes == list(range(90, 120))

    def test_spring_forward_jumps_from_0159_to_0300(self):
        before = local_clock(datetime(2025, 3, 9, 6, 59, tzinfo=UTC), "America/New_York")
        after = local_clock(datetime(2025, 3, 9, 7, 0, tzinfo=UTC), "America/New_York")
        assert before.minute_of_day == 1 * 60 + 59
        assert after.minute_of_day == 3 * 60

    def test_fall_back_repeated_hour_is_in_window_twice(self):
        rule = _rule(start="01:00", end="01:59", tz="America/New_York")
        minutes = self._in_window_minutes(datetime(2025, 11, 2, 4, 0, tzinfo=UTC), 4, rule)

        assert len(minutes) == 120
        assert sorted(set(minutes)) == list(range(60, 120))

    def test_quota_day_starts_at_local_midnight_on_transition_dates(self):
        spring = local_midnight_utc(datetime(2025, 3, 9, 12, 0, tzinfo=UTC), "America/New_York")
        fall = local_midnight_utc(datetime(2025, 11, 2, 12, 0, tzinfo=UTC), "America/New_York")
        assert spring == datetime(2025, 3, 9, 5, 0, tzinfo=UTC)  # EST midnight
        assert fall == datetime(2025, 11, 2, 4, 0, tzinfo=UTC)  # EDT midnight


class TestPlausibleWeekdays:
    @pytest.mark.parametrize(
        "zone", ["Pacific/Kiritimati", "Etc/GMT+12", "UTC", "America/Los_Angeles", "Asia/Kolkata"]
    )
    def test_contains_every_local_weekday(self, zone):
        start = datetime(2025, 1, 12, 0, 0, tzinfo=UTC)
        for hour in range(0, 7 * 24, 5):
            now = start + timedelta(hours=hour)
            assert local_clock(now, zone).weekday in plausible_weekdays(now)

    def test_is_a_strict_subset_of_the_week(self):
        assert len(plausible_weekdays(datetime(2025, 1, 15, 12, 0, tzinfo=UTC))) < 7
