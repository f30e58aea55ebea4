"""Next-occurrence calculation for recurrence rules.

Everything here is pure: no I/O, no clock reads, no shared state. Dates are
plain ``datetime.date`` values on the caller's reference calendar.

Monthly and yearly rules step on the anchor's grid (anchor month plus a whole
number of intervals), so a Feb 29 anchor comes back to Feb 29 in the next
leap year and a day-31 rule returns to the 31st after a short month.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Callable

from .enums import TerminationReason, Weekday
from .errors import InvalidRule
from .rules import (
    LAST_WEEK,
    DailyRule,
    MonthlyByDateRule,
    MonthlyByWeekdayRule,
    NextOccurrence,
    RecurrenceRule,
    Terminated,
    Violation,
    WeeklyRule,
    YearlyRule,
)
from .validation import ensure_valid

ONE_DAY = timedelta(days=1)


def compute_next_occurrence(
    rule: RecurrenceRule,
    occurrence_count: int,
    anchor: date,
    last: date,
) -> NextOccurrence:
    """Return the first occurrence strictly after ``last``, or ``Terminated``.

    ``occurrence_count`` is the number of occurrences already produced,
    ``last`` included.
    """
    ensure_valid(rule, anchor)
    candidate = _skip_weekend(rule, _base_candidate(rule, anchor, last))
    return _check_termination(rule, occurrence_count, candidate)


def first_occurrence(rule: RecurrenceRule, anchor: date) -> NextOccurrence:
    """Earliest date on or after ``anchor`` that satisfies the rule."""
    ensure_valid(rule, anchor)
    if isinstance(rule, DailyRule):
        candidate = anchor
    else:
        candidate = _base_candidate(rule, anchor, anchor - ONE_DAY)
    return _check_termination(rule, 0, _skip_weekend(rule, candidate))


def upcoming_occurrences(rule: RecurrenceRule, anchor: date, limit: int) -> list[date]:
    occurrences: list[date] = []
    outcome = first_occurrence(rule, anchor)
    while len(occurrences) < limit and isinstance(outcome, date):
        occurrences.append(outcome)
        outcome = compute_next_occurrence(rule, len(occurrences), anchor, outcome)
    return occurrences


def _base_candidate(rule: RecurrenceRule, anchor: date, last: date) -> date:
    match rule:
        case DailyRule():
            return last + timedelta(days=rule.interval)
        case WeeklyRule():
            return _next_weekly(rule, anchor, last)
        case MonthlyByDateRule():
            day = rule.day_of_month
            return _next_on_grid(
                rule, anchor, last, rule.interval,
                lambda year, month: date(year, month, min(day, _days_in_month(year, month))),
            )
        case MonthlyByWeekdayRule():
            weekday = Weekday.of(anchor)
            week = rule.week_of_month
            return _next_on_grid(
                rule, anchor, last, rule.interval,
                lambda year, month: _nth_weekday(year, month, weekday, week),
            )
        case YearlyRule():
            return _next_on_grid(
                rule, anchor, last, rule.interval * 12,
                lambda year, month: date(year, month, min(anchor.day, _days_in_month(year, month))),
            )
    raise InvalidRule([Violation("type", f"Unsupported recurrence rule {type(rule).__name__}")])


def _next_weekly(rule: WeeklyRule, anchor: date, last: date) -> date:
    # Week 0 is the Sunday-started calendar week containing the anchor.
    week_start = _week_start(anchor)
    candidate = last + ONE_DAY
    for _ in range(rule.interval * 7 + 7):
        week_index = (candidate - week_start).days // 7
        if Weekday.of(candidate) in rule.days_of_week and week_index % rule.interval == 0:
            return candidate
        candidate += ONE_DAY
    raise InvalidRule([Violation("days_of_week", "No matching weekday found")])


def _next_on_grid(
    rule: RecurrenceRule,
    anchor: date,
    last: date,
    step_months: int,
    build: Callable[[int, int], date],
) -> date:
    elapsed = (last.year - anchor.year) * 12 + last.month - anchor.month
    step = max(elapsed // step_months - 1, 0)
    while True:
        year, month = _shift_month(anchor.year, anchor.month, step * step_months)
        candidate = _skip_weekend(rule, build(year, month))
        if candidate > last:
            return candidate
        step += 1


def _nth_weekday(year: int, month: int, weekday: Weekday, week: int) -> date:
    if week == LAST_WEEK:
        return _last_weekday(year, month, weekday)
    offset = (weekday - Weekday.of(date(year, month, 1))) % 7
    day = 1 + offset + (week - 1) * 7
    if day > _days_in_month(year, month):
        return _last_weekday(year, month, weekday)
    return date(year, month, day)


def _last_weekday(year: int, month: int, weekday: Weekday) -> date:
    last = date(year, month, _days_in_month(year, month))
    return last - timedelta(days=(Weekday.of(last) - weekday) % 7)


def _skip_weekend(rule: RecurrenceRule, value: date) -> date:
    if not rule.skip_weekends:
        return value
    if value.weekday() == 5:
        return value + timedelta(days=2)
    if value.weekday() == 6:
        return value + ONE_DAY
    return value


def _check_termination(rule: RecurrenceRule, occurrence_count: int, candidate: date) -> NextOccurrence:
    if rule.end_date is not None and candidate > rule.end_date:
        return Terminated(TerminationReason.END_DATE)
    if rule.max_occurrences is not None and occurrence_count + 1 > rule.max_occurrences:
        return Terminated(TerminationReason.MAX_OCCURRENCES)
    return candidate


def _week_start(value: date) -> date:
    return value - timedelta(days=Weekday.of(value))


def _shift_month(year: int, month: int, months: int) -> tuple[int, int]:
    total = month - 1 + months
    return year + total // 12, total % 12 + 1


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day
