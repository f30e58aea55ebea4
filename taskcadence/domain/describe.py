from __future__ import annotations

from datetime import date
from typing import Optional

from .enums import Weekday
from .rules import (
    LAST_WEEK,
    DailyRule,
    MonthlyByDateRule,
    MonthlyByWeekdayRule,
    RecurrenceRule,
    WeeklyRule,
    YearlyRule,
)

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def describe_rule(rule: RecurrenceRule, anchor: Optional[date] = None) -> str:
    """Human-readable text for ``rule``, stable for equal rule values.

    Monthly-by-weekday and yearly rules take their weekday or month/day from
    the anchor; without one the text falls back to the bare period.
    """
    parts = [_describe_pattern(rule, anchor)]
    if rule.skip_weekends:
        parts.append("skipping weekends")
    if rule.end_date is not None:
        parts.append(f"until {rule.end_date.isoformat()}")
    if rule.max_occurrences is not None:
        parts.append("once" if rule.max_occurrences == 1 else f"{rule.max_occurrences} times")
    return ", ".join(parts)


def _describe_pattern(rule: RecurrenceRule, anchor: Optional[date]) -> str:
    match rule:
        case DailyRule():
            return "Daily" if rule.interval == 1 else f"Every {rule.interval} days"
        case WeeklyRule():
            days = ", ".join(day.full_name for day in sorted(rule.days_of_week))
            return f"{_every(rule.interval, 'week', 'Weekly')} on {days}"
        case MonthlyByDateRule():
            text = f"{_every(rule.interval, 'month')} on the {ordinal(rule.day_of_month)}"
            if rule.day_of_month > 28:
                text += " (last day in shorter months)"
            return text
        case MonthlyByWeekdayRule():
            position = "last" if rule.week_of_month == LAST_WEEK else ordinal(rule.week_of_month)
            if anchor is None:
                return f"{_every(rule.interval, 'month')} in the {position} week"
            return f"{_every(rule.interval, 'month')} on the {position} {Weekday.of(anchor).full_name}"
        case YearlyRule():
            text = _every(rule.interval, "year", "Yearly")
            if anchor is None:
                return text
            text += f" on {_MONTH_ABBR[anchor.month - 1]} {anchor.day}"
            if anchor.month == 2 and anchor.day == 29:
                text += " (Feb 28 in non-leap years)"
            return text
    return "Custom recurrence"


def _every(interval: int, unit: str, single: str | None = None) -> str:
    if interval == 1:
        return single or f"Every {unit}"
    return f"Every {interval} {unit}s"


def ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"
