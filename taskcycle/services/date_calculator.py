"""Pure date arithmetic for recurrence patterns.

Nothing in this module touches storage, so every function can be called any
number of times, from creation and from previews alike.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, timedelta

from taskcycle.domain.entities import RecurrenceEntity
from taskcycle.domain.enums import DayOfWeek
from taskcycle.domain.errors import ConfigurationError

DEFAULT_TARGET_DAYS = 1
DEFAULT_LIMIT_DAYS = 7
_MONTH_SEARCH_LIMIT = 12


def next_by_interval(previous: date, interval: int) -> date:
    if interval < 1:
        raise ConfigurationError(f"Recurrence interval must be at least one day, got {interval}")
    return previous + timedelta(days=interval)


def next_weekday(previous: date, days_of_week: Iterable[DayOfWeek | str]) -> date:
    """Next listed weekday strictly after ``previous``.

    Weeks are contiguous seven-day blocks, so finishing the current week and
    wrapping to the first listed weekday of the following one is the same as
    walking forward day by day.
    """
    weekdays = _weekday_indexes(days_of_week)
    candidate = previous + timedelta(days=1)
    for _ in range(7):
        if candidate.weekday() in weekdays:
            return candidate
        candidate += timedelta(days=1)
    raise ConfigurationError("days_of_week produced no match")  # pragma: no cover


def next_month_day(previous: date, days_of_month: Iterable[int]) -> date:
    """Next listed day-of-month after ``previous``.

    A listed day that does not exist in a month (30 in February) is skipped,
    never clamped to the month end.
    """
    days = _month_days(days_of_month)
    last_day = _days_in_month(previous.year, previous.month)
    for day in days:
        if previous.day < day <= last_day:
            return previous.replace(day=day)

    year, month = previous.year, previous.month
    for _ in range(_MONTH_SEARCH_LIMIT):
        year, month = _next_month(year, month)
        last_day = _days_in_month(year, month)
        for day in days:
            if day <= last_day:
                return date(year, month, day)
    raise ConfigurationError(f"days_of_month {days} never match a calendar date")  # pragma: no cover


def first_match_on_or_after(day: date, recurrence: RecurrenceEntity) -> date:
    if recurrence.days_of_week:
        if day.weekday() in _weekday_indexes(recurrence.days_of_week):
            return day
        return next_weekday(day, recurrence.days_of_week)
    if recurrence.days_of_month:
        days = _month_days(recurrence.days_of_month)
        if day.day in days:
            return day
        return next_month_day(day, days)
    return day


def distributed_offset(index: int, interval: int, max_occurrences: int) -> int:
    """``round(index * interval / max_occurrences)`` with halves rounded up."""
    if max_occurrences < 1:
        raise ConfigurationError("max_occurrences must be positive to distribute a period")
    return (2 * index * interval + max_occurrences) // (2 * max_occurrences)


def habit_target_offset(interval: int) -> int:
    """``floor(interval * 0.6)``, kept in integers."""
    return interval * 3 // 5


class RecurrenceDateCalculator:
    def next_occurrence_date(self, previous: date, recurrence: RecurrenceEntity) -> date:
        if recurrence.days_of_week:
            return next_weekday(previous, recurrence.days_of_week)
        if recurrence.days_of_month:
            return next_month_day(previous, recurrence.days_of_month)
        if recurrence.interval:
            return next_by_interval(previous, recurrence.interval)
        return previous + timedelta(days=1)

    def occurrence_window(self, start: date, recurrence: RecurrenceEntity) -> tuple[date, date]:
        """Target and limit dates for an occurrence starting on ``start``."""
        if recurrence.interval:
            return (
                start + timedelta(days=habit_target_offset(recurrence.interval)),
                start + timedelta(days=recurrence.interval),
            )
        if recurrence.has_day_pattern:
            limit = self.next_occurrence_date(start, recurrence)
            gap = (limit - start).days
            return start + timedelta(days=max(1, habit_target_offset(gap))), limit
        return (
            start + timedelta(days=DEFAULT_TARGET_DAYS),
            start + timedelta(days=DEFAULT_LIMIT_DAYS),
        )

    def matching_dates(self, start: date, recurrence: RecurrenceEntity) -> Iterator[date]:
        """Endless ascending stream of dates matching the pattern from ``start``."""
        if recurrence.has_day_pattern:
            current = first_match_on_or_after(start, recurrence)
            while True:
                yield current
                current = self.next_occurrence_date(current, recurrence)
        step = recurrence.interval or 1
        current = start
        while True:
            yield current
            current = next_by_interval(current, step)


def _weekday_indexes(days_of_week: Iterable[DayOfWeek | str]) -> frozenset[int]:
    days = list(days_of_week)
    try:
        indexes = frozenset(DayOfWeek(day).weekday for day in days)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown day of week in {days!r}") from exc
    if not indexes:
        raise ConfigurationError("days_of_week must list at least one day")
    return indexes


def _month_days(days_of_month: Iterable[int]) -> list[int]:
    days = sorted(set(days_of_month))
    if not days:
        raise ConfigurationError("days_of_month must list at least one day")
    if days[0] < 1 or days[-1] > 31:
        raise ConfigurationError(f"days_of_month must be within 1..31, got {days}")
    return days


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day
