"""Time window evaluation in a rule's own time zone.

Converts an absolute UTC instant into the civil weekday and minute-of-day
of a rule's IANA zone, and tests that local time against the rule's
inclusive ``[start, end]`` window and day-of-week set.

Conversion always goes *from* the UTC instant *to* the local wall clock
through :mod:`zoneinfo`, so the offset in force at that instant is used
and DST transitions need no special casing:

    Spring forward (e.g. America/New_York, 2nd Sunday of March)
        Local clocks jump 01:59 → 03:00. A window of 01:30–02:30 is
        in-window for 01:30–01:59 only; 02:00–02:59 is never observed.
    Fall back (1st Sunday of November)
        Local 01:00–01:59 occurs twice. Both passes are in-window; the
        daily quota, counted from local midnight, caps the commits.

Unknown zone names fall back to UTC. The fallback is logged once per
zone name per evaluator and reported on :class:`LocalClock.fell_back`
so it lands on the attempt record.

Overnight windows (start after end) are rejected at rule creation and
are never wrapped here.
"""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from autocommit.core.logging import get_logger
from autocommit.models import AutomationRule, LocalClock, parse_hhmm

logger = get_logger(__name__)

MINUTES_PER_DAY = 24 * 60


def _as_utc(now_utc: datetime) -> datetime:
    if now_utc.tzinfo is None:
        return now_utc.replace(tzinfo=UTC)
    return now_utc.astimezone(UTC)


def resolve_timezone(name: str | None) -> tuple[ZoneInfo, bool]:
    """Return ``(zone, fell_back)`` for an IANA zone name.

    Empty, malformed or unknown names resolve to UTC with ``fell_back=True``.
    """
    if not name:
        return ZoneInfo("UTC"), True
    try:
        return ZoneInfo(name), False
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return ZoneInfo("UTC"), True


def civil_weekday(moment: datetime) -> int:
    """Weekday index with 0 = Sunday .. 6 = Saturday."""
    return moment.isoweekday() % 7


def local_clock(now_utc: datetime, timezone: str | None) -> LocalClock:
    """Civil weekday and minute-of-day of ``now_utc`` in ``timezone``."""
    zone, fell_back = resolve_timezone(timezone)
    local = _as_utc(now_utc).astimezone(zone)
    return LocalClock(
        weekday=civil_weekday(local),
        minute_of_day=local.hour * 60 + local.minute,
        local_date=local.date(),
        timezone=zone.key,
        fell_back=fell_back,
    )


def in_window(weekday: int, minute_of_day: int, rule: AutomationRule) -> bool:
    """True iff the weekday is scheduled and the minute is within the window.

    Both window boundaries are inclusive.
    """
    if weekday not in rule.days_of_week:
        return False
    return rule.start_minute <= minute_of_day <= rule.end_minute


def minutes_remaining(minute_of_day: int, rule: AutomationRule) -> int:
    """Minutes left until the window closes (0 at or after the end)."""
    return max(rule.end_minute - minute_of_day, 0)


def local_midnight_utc(now_utc: datetime, timezone: str | None) -> datetime:
    """UTC instant at which the rule's current local calendar day began.

    If local midnight does not exist (a DST gap at 00:00), zoneinfo's
    ``fold=0`` resolution yields the transition instant, which is the
    first instant of the local date.
    """
    zone, _ = resolve_timezone(timezone)
    local = _as_utc(now_utc).astimezone(zone)
    midnight = datetime.combine(local.date(), time(0, 0), tzinfo=zone)
    return midnight.astimezone(UTC)


def plausible_weekdays(now_utc: datetime) -> frozenset[int]:
    """Every civil weekday that is "today" somewhere on Earth at ``now_utc``.

    Zone offsets span UTC-12 to UTC+14, so any rule's local weekday is
    in this set. Used only as a pre-filter; never a false negative.
    """
    now = _as_utc(now_utc)
    return frozenset(
        civil_weekday(now + timedelta(hours=offset)) for offset in (-12, 0, 14)
    )


class TimeWindowEvaluator:
    """Rule-aware wrapper around the window functions.

    Owns the set of zone names already reported as unresolvable so a
    misconfigured rule produces one warning per evaluator instead of one
    per tick.

    Example:
        >>> evaluator = TimeWindowEvaluator()
        >>> clock = evaluator.local_clock(now, rule)
        >>> evaluator.in_window(clock, rule)
        True
    """

    def __init__(self) -> None:
        self._reported_fallbacks: set[str] = set()

    def local_clock(self, now_utc: datetime, rule: AutomationRule) -> LocalClock:
        clock = local_clock(now_utc, rule.timezone)
        if clock.fell_back and rule.timezone not in self._reported_fallbacks:
            self._reported_fallbacks.add(rule.timezone)
            logger.warning(
                "timezone_fallback",
                rule_id=rule.id,
                configured_timezone=rule.timezone,
                used_timezone=clock.timezone,
            )
        return clock

    def in_window(self, clock: LocalClock, rule: AutomationRule) -> bool:
        return in_window(clock.weekday, clock.minute_of_day, rule)

    def minutes_remaining(self, clock: LocalClock, rule: AutomationRule) -> int:
        return minutes_remaining(clock.minute_of_day, rule)

    def local_midnight_utc(self, now_utc: datetime, rule: AutomationRule) -> datetime:
        return local_midnight_utc(now_utc, rule.timezone)


__all__ = [
    "MINUTES_PER_DAY",
    "parse_hhmm",
    "resolve_timezone",
    "civil_weekday",
    "local_clock",
    "in_window",
    "minutes_remaining",
    "local_midnight_utc",
    "plausible_weekdays",
    "TimeWindowEvaluator",
]
